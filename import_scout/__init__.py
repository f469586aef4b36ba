"""Import opportunity research: sourcing, demand, compliance, landed cost and market facets."""

from .config import ConfigManager, Settings
from .pipeline import ResearchPipeline, pricing_from_sourcing
from .storage import InMemorySessionStore, SqlSessionStore, create_session_store

__all__ = [
    "ConfigManager",
    "InMemorySessionStore",
    "ResearchPipeline",
    "Settings",
    "SqlSessionStore",
    "create_session_store",
    "pricing_from_sourcing",
]
