"""HTTP surface over the research pipeline stage entry points."""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from core.context import ResearchContext, ResearchContextManager
from core.errors import NotFoundError, ResearchError

from .config import Settings
from .models import (
    ImpositiveReport,
    MarketReport,
    OpportunityReport,
    PricingContext,
    RegulationReport,
    SessionInit,
    SourcingResult,
    TrendReport,
)
from .pipeline import ResearchPipeline

logger = structlog.get_logger(__name__)


class InitiateRequest(BaseModel):
    raw_query: str = Field(..., min_length=1)
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)


class SourcingRequest(BaseModel):
    normalized_query: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=2, max_length=2)
    country_name: Optional[str] = None


class TrendsRequest(BaseModel):
    keywords: List[str] = Field(..., min_length=1)
    geo: str = Field(..., min_length=2, max_length=2)
    use_regional_language: bool = False


class RegulationRequest(BaseModel):
    hs_code: str
    country_code: str = Field(..., min_length=2, max_length=2)
    regulatory_flags: List[str] = Field(default_factory=list)
    import_regulations: List[str] = Field(default_factory=list)
    impositive_regulations: List[str] = Field(default_factory=list)


class TaxRequest(BaseModel):
    hs_code: str
    product_name: str
    country_code: str = Field(..., min_length=2, max_length=2)
    pricing: PricingContext = Field(default_factory=PricingContext)
    impositive_regulations: List[str] = Field(default_factory=list)


class MarketRequest(BaseModel):
    market_terms: List[str] = Field(..., min_length=1)
    country_code: str = Field(..., min_length=2, max_length=2)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def create_app(pipeline: Optional[ResearchPipeline] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the app; without an injected pipeline one is created from the environment at startup."""
    settings = settings or (pipeline.settings if pipeline else Settings.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.pipeline is None
        if owned:
            app.state.pipeline = ResearchPipeline.from_settings(settings.validate())
        logger.info("api.started", owned_pipeline=owned)
        yield
        if owned:
            await app.state.pipeline.close()
        logger.info("api.stopped")

    app = FastAPI(title="Import Scout", version="0.1.0", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin] if settings.cors_origin else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ResearchError)
    async def research_error_handler(request: Request, exc: ResearchError) -> JSONResponse:
        logger.warning("api.research_error", path=request.url.path, code=exc.code, message=exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    def get_pipeline(request: Request) -> ResearchPipeline:
        return request.app.state.pipeline

    def bind(request: Request, session_id: Optional[str] = None) -> ResearchContextManager:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        return ResearchContextManager(
            ResearchContext(request_id=request_id, session_id=session_id, client_ip=client_ip(request))
        )

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.post("/sessions", response_model=SessionInit)
    async def initiate(body: InitiateRequest, request: Request) -> SessionInit:
        with bind(request):
            return await get_pipeline(request).initiate_session(body.raw_query, body.country_code, client_ip(request))

    @app.post("/sessions/{session_id}/sourcing", response_model=SourcingResult)
    async def sourcing(session_id: str, body: SourcingRequest, request: Request) -> SourcingResult:
        with bind(request, session_id):
            return await get_pipeline(request).run_sourcing(
                body.normalized_query, body.country_code, session_id, body.country_name
            )

    @app.post("/sessions/{session_id}/trends", response_model=TrendReport)
    async def trends(session_id: str, body: TrendsRequest, request: Request) -> TrendReport:
        with bind(request, session_id):
            return await get_pipeline(request).run_trends(
                body.keywords, body.geo, session_id, body.use_regional_language
            )

    @app.post("/sessions/{session_id}/regulation", response_model=RegulationReport)
    async def regulation(session_id: str, body: RegulationRequest, request: Request) -> RegulationReport:
        with bind(request, session_id):
            return await get_pipeline(request).run_regulation(
                body.hs_code,
                body.country_code,
                body.regulatory_flags,
                body.import_regulations,
                body.impositive_regulations,
                session_id,
            )

    @app.post("/sessions/{session_id}/tax", response_model=ImpositiveReport)
    async def tax(session_id: str, body: TaxRequest, request: Request) -> ImpositiveReport:
        with bind(request, session_id):
            return await get_pipeline(request).run_tax(
                body.hs_code,
                body.product_name,
                body.country_code,
                body.pricing,
                body.impositive_regulations,
                session_id,
            )

    @app.post("/sessions/{session_id}/market", response_model=MarketReport)
    async def market(session_id: str, body: MarketRequest, request: Request) -> MarketReport:
        with bind(request, session_id):
            return await get_pipeline(request).run_market(body.market_terms, body.country_code, session_id)

    @app.post("/sessions/{session_id}/opportunity", response_model=OpportunityReport)
    async def synthesize(session_id: str, request: Request) -> OpportunityReport:
        with bind(request, session_id):
            return await get_pipeline(request).synthesize_opportunity(session_id)

    @app.get("/sessions/{session_id}/opportunity", response_model=OpportunityReport)
    async def get_opportunity(session_id: str, request: Request) -> OpportunityReport:
        report = await get_pipeline(request).get_opportunity(session_id)
        if report is None:
            raise NotFoundError("No opportunity assessment for this session", session_id=session_id)
        return report

    @app.get("/sessions/{session_id}")
    async def session_data(session_id: str, request: Request) -> Dict[str, Any]:
        return {"session_id": session_id, "data": await get_pipeline(request).get_session_data(session_id)}

    return app


__all__ = ["client_ip", "create_app"]
