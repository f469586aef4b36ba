"""Country reference data: names, currencies, languages and official domains."""
from __future__ import annotations

from typing import Dict, List, Tuple

COUNTRY_NAMES: Dict[str, str] = {
    "US": "United States", "CA": "Canada", "GB": "United Kingdom", "AU": "Australia",
    "NZ": "New Zealand", "DE": "Germany", "FR": "France", "IT": "Italy", "ES": "Spain",
    "NL": "Netherlands", "PT": "Portugal", "IE": "Ireland", "AT": "Austria", "BE": "Belgium",
    "FI": "Finland", "GR": "Greece", "JP": "Japan", "CN": "China", "KR": "South Korea",
    "IN": "India", "BR": "Brazil", "MX": "Mexico", "AR": "Argentina", "CL": "Chile",
    "CO": "Colombia", "PE": "Peru", "UY": "Uruguay", "PY": "Paraguay", "BO": "Bolivia",
    "EC": "Ecuador", "VE": "Venezuela", "CR": "Costa Rica", "PA": "Panama",
    "DO": "Dominican Republic", "GT": "Guatemala", "ZA": "South Africa", "NG": "Nigeria",
    "EG": "Egypt", "KE": "Kenya", "TH": "Thailand", "VN": "Vietnam", "PH": "Philippines",
    "MY": "Malaysia", "SG": "Singapore", "ID": "Indonesia", "TR": "Turkey", "PL": "Poland",
    "CZ": "Czech Republic", "HU": "Hungary", "RO": "Romania", "BG": "Bulgaria",
    "SE": "Sweden", "NO": "Norway", "DK": "Denmark", "CH": "Switzerland",
    "SA": "Saudi Arabia", "AE": "United Arab Emirates", "IL": "Israel", "TW": "Taiwan",
    "HK": "Hong Kong", "PK": "Pakistan", "BD": "Bangladesh", "RU": "Russia",
}

COUNTRY_TO_CURRENCY: Dict[str, str] = {
    "US": "USD", "CA": "CAD", "GB": "GBP", "AU": "AUD", "NZ": "NZD",
    "DE": "EUR", "FR": "EUR", "IT": "EUR", "ES": "EUR", "NL": "EUR", "PT": "EUR",
    "IE": "EUR", "AT": "EUR", "BE": "EUR", "FI": "EUR", "GR": "EUR",
    "JP": "JPY", "CN": "CNY", "KR": "KRW", "IN": "INR", "BR": "BRL",
    "MX": "MXN", "AR": "ARS", "CL": "CLP", "CO": "COP", "PE": "PEN",
    "ZA": "ZAR", "NG": "NGN", "EG": "EGP", "KE": "KES",
    "TH": "THB", "VN": "VND", "PH": "PHP", "MY": "MYR", "SG": "SGD", "ID": "IDR",
    "TR": "TRY", "PL": "PLN", "CZ": "CZK", "HU": "HUF", "RO": "RON", "BG": "BGN",
    "SE": "SEK", "NO": "NOK", "DK": "DKK", "CH": "CHF",
    "SA": "SAR", "AE": "AED", "IL": "ILS",
    "TW": "TWD", "HK": "HKD", "PK": "PKR", "BD": "BDT", "RU": "RUB",
    "UY": "UYU", "PY": "PYG", "BO": "BOB", "EC": "USD", "VE": "VES", "CR": "CRC",
    "PA": "PAB", "DO": "DOP", "GT": "GTQ",
}

_LANGUAGE_NAMES = {
    "en": "English", "es": "Spanish", "pt": "Portuguese", "fr": "French", "de": "German",
    "it": "Italian", "nl": "Dutch", "ja": "Japanese", "zh": "Chinese", "ko": "Korean",
    "hi": "Hindi", "th": "Thai", "vi": "Vietnamese", "id": "Indonesian", "ms": "Malay",
    "tr": "Turkish", "pl": "Polish", "cs": "Czech", "hu": "Hungarian", "ro": "Romanian",
    "bg": "Bulgarian", "sv": "Swedish", "no": "Norwegian", "da": "Danish", "fi": "Finnish",
    "el": "Greek", "ar": "Arabic", "he": "Hebrew", "ru": "Russian", "ur": "Urdu",
    "bn": "Bengali", "tl": "Filipino",
}

COUNTRY_LANGUAGE: Dict[str, str] = {
    "US": "en", "CA": "en", "GB": "en", "AU": "en", "NZ": "en", "IE": "en", "ZA": "en",
    "NG": "en", "KE": "en", "SG": "en", "DE": "de", "AT": "de", "CH": "de", "FR": "fr",
    "BE": "fr", "IT": "it", "ES": "es", "MX": "es", "AR": "es", "CL": "es", "CO": "es",
    "PE": "es", "UY": "es", "PY": "es", "BO": "es", "EC": "es", "VE": "es", "CR": "es",
    "PA": "es", "DO": "es", "GT": "es", "BR": "pt", "PT": "pt", "NL": "nl", "JP": "ja",
    "CN": "zh", "TW": "zh", "HK": "zh", "KR": "ko", "IN": "hi", "TH": "th", "VN": "vi",
    "ID": "id", "MY": "ms", "PH": "tl", "TR": "tr", "PL": "pl", "CZ": "cs", "HU": "hu",
    "RO": "ro", "BG": "bg", "SE": "sv", "NO": "no", "DK": "da", "FI": "fi", "GR": "el",
    "SA": "ar", "AE": "ar", "EG": "ar", "IL": "he", "RU": "ru", "PK": "ur", "BD": "bn",
}

CUSTOMS_DOMAINS: Dict[str, List[str]] = {
    "US": ["cbp.gov", "trade.gov", "census.gov", "usitc.gov"],
    "GB": ["gov.uk", "hmrc.gov.uk"],
    "DE": ["zoll.de", "bmwk.de"],
    "FR": ["douane.gouv.fr", "entreprises.gouv.fr"],
    "ES": ["agenciatributaria.es", "aeat.es"],
    "IT": ["agenziadogane.it"],
    "CA": ["cbsa-asfc.gc.ca"],
    "AU": ["abf.gov.au", "austrade.gov.au"],
    "NZ": ["customs.govt.nz"],
    "JP": ["customs.go.jp"],
    "CN": ["customs.gov.cn"],
    "IN": ["cbic.gov.in"],
    "BR": ["gov.br"],
    "MX": ["gob.mx"],
    "AR": ["argentina.gob.ar"],
    "CL": ["aduana.cl"],
    "SG": ["customs.gov.sg"],
    "HK": ["customs.gov.hk"],
    "KR": ["customs.go.kr"],
    "TW": ["customs.gov.tw"],
    "TH": ["customs.go.th"],
    "MY": ["customs.gov.my"],
    "ID": ["beacukai.go.id"],
    "PH": ["customs.gov.ph"],
    "VN": ["customs.gov.vn"],
    "AE": ["government.ae"],
    "SA": ["customs.gov.sa"],
    "TR": ["ticaret.gov.tr"],
    "ZA": ["sars.gov.za"],
    "PL": ["gov.pl"],
    "NL": ["government.nl"],
    "SE": ["tullverket.se"],
    "NO": ["toll.no"],
    "DK": ["skat.dk"],
    "FI": ["tulli.fi"],
    "CH": ["bazg.admin.ch"],
    "IE": ["revenue.ie"],
    "RU": ["customs.gov.ru"],
    "BE": ["belgium.be"],
    "AT": ["bmf.gv.at"],
    "PT": ["portaldasfinancas.gov.pt"],
    "GR": ["gsis.gr"],
    "CZ": ["celnisprava.cz"],
    "HU": ["nav.gov.hu"],
    "RO": ["anaf.ro"],
    "BG": ["customs.bg"],
}

TAX_DOMAINS: Dict[str, List[str]] = {
    "US": ["cbp.gov", "trade.gov", "usitc.gov", "irs.gov"],
    "GB": ["gov.uk", "hmrc.gov.uk", "trade.gov.uk"],
    "DE": ["zoll.de", "bmf.de"],
    "FR": ["douane.gouv.fr", "impots.gouv.fr"],
    "ES": ["agenciatributaria.es", "aeat.es"],
    "IT": ["agenziadogane.it", "agenziaentrate.gov.it"],
    "CA": ["cbsa-asfc.gc.ca", "canada.ca"],
    "AU": ["abf.gov.au", "ato.gov.au"],
    "JP": ["customs.go.jp", "nta.go.jp"],
    "CN": ["customs.gov.cn", "chinatax.gov.cn"],
    "IN": ["cbic.gov.in", "incometaxindia.gov.in"],
    "BR": ["gov.br", "receita.fazenda.gov.br"],
    "MX": ["gob.mx", "sat.gob.mx"],
    "AR": ["argentina.gob.ar", "afip.gob.ar"],
    "CL": ["aduana.cl", "sii.cl"],
    "KR": ["customs.go.kr", "nts.go.kr"],
    "SG": ["customs.gov.sg", "iras.gov.sg"],
    "NZ": ["customs.govt.nz", "ird.govt.nz"],
    "CO": ["dian.gov.co"],
    "PE": ["sunat.gob.pe"],
    "PH": ["customs.gov.ph", "bir.gov.ph"],
    "TH": ["customs.go.th", "rd.go.th"],
    "MY": ["customs.gov.my", "hasil.gov.my"],
    "ID": ["beacukai.go.id", "pajak.go.id"],
    "VN": ["customs.gov.vn"],
    "AE": ["government.ae", "tax.gov.ae"],
    "SA": ["customs.gov.sa", "gazt.gov.sa"],
    "TR": ["ticaret.gov.tr", "gib.gov.tr"],
    "ZA": ["sars.gov.za"],
    "PL": ["gov.pl", "podatki.gov.pl"],
    "NL": ["government.nl", "belastingdienst.nl"],
    "SE": ["tullverket.se", "skatteverket.se"],
    "NO": ["toll.no", "skatteetaten.no"],
    "DK": ["skat.dk", "toldst.dk"],
    "FI": ["tulli.fi", "vero.fi"],
    "AT": ["bmf.gv.at"],
    "CH": ["bazg.admin.ch", "estv.admin.ch"],
    "IE": ["revenue.ie"],
    "PT": ["portaldasfinancas.gov.pt"],
    "CZ": ["celnisprava.cz"],
    "HU": ["nav.gov.hu"],
    "RO": ["anaf.ro"],
}


def country_name(country_code: str) -> str:
    code = country_code.upper()
    return COUNTRY_NAMES.get(code, code)


def currency_for_country(country_code: str) -> str:
    return COUNTRY_TO_CURRENCY.get(country_code.upper(), "USD")


def country_language(country_code: str) -> Tuple[str, str]:
    """Return ``(language_code, language_name)`` for a country, English by default."""
    code = COUNTRY_LANGUAGE.get(country_code.upper(), "en")
    return code, _LANGUAGE_NAMES.get(code, code)


def customs_domains(country_code: str) -> List[str]:
    code = country_code.upper()
    return list(CUSTOMS_DOMAINS.get(code, [f"{code.lower()}.gov"]))


def tax_domains(country_code: str) -> List[str]:
    return list(TAX_DOMAINS.get(country_code.upper(), []))
