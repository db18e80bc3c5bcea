"""FastAPI adapter over the cached registry lookups."""
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from portor.auth.captcha import CaptchaSolver
from portor.auth.session import SessionAcquirer
from portor.config import config
from portor.errors import (
    MalformedDocumentError,
    NoSessionError,
    RecordNotFoundError,
    RegistryError,
    UpstreamUnavailableError,
    ValidationError,
)
from portor.fetch.client import RegistryClient
from portor.jobs.lookup import RegistryLookup
from portor.parse.models import SearchCriteria
from portor.store.cache import ResultCache

logger = logging.getLogger(__name__)

# Status codes per error kind; anything else is a 500
ERROR_STATUS = {
    ValidationError: 400,
    RecordNotFoundError: 404,
    MalformedDocumentError: 502,
    NoSessionError: 503,
    UpstreamUnavailableError: 503,
}


def build_lookup() -> RegistryLookup:
    """Wire solver, session acquirer, client and the two caches from config."""
    client = RegistryClient(SessionAcquirer(CaptchaSolver()))
    return RegistryLookup(
        client,
        detail_cache=ResultCache(
            config.DETAIL_CACHE_MAX_ENTRIES, config.DETAIL_CACHE_TTL_SECONDS, name="detail"
        ),
        search_cache=ResultCache(
            config.SEARCH_CACHE_MAX_ENTRIES, config.SEARCH_CACHE_TTL_SECONDS, name="search"
        ),
        cache_enabled=config.CACHE_ENABLED,
    )


def error_response(error: RegistryError) -> JSONResponse:
    status_code = next(
        (status for kind, status in ERROR_STATUS.items() if isinstance(error, kind)),
        500,
    )
    if isinstance(error, ValidationError):
        return JSONResponse(
            status_code=status_code,
            content={
                "errors": [
                    {
                        "source": {"parameter": e["parameter"]},
                        "code": "invalidParameter",
                        "title": "Invalid parameter",
                        "detail": e["detail"],
                    }
                    for e in error.errors
                ]
            },
        )
    return JSONResponse(status_code=status_code, content={})


def create_app(lookup: Optional[RegistryLookup] = None) -> FastAPI:
    """Build the API; tests pass their own lookup."""
    app = FastAPI(title="Portor API", version="1.0.0")
    app.state.lookup = lookup or build_lookup()
    detail_cache_control = f"public, immutable, max-age={int(config.DETAIL_CACHE_TTL_SECONDS)}"
    search_cache_control = f"public, immutable, max-age={int(config.SEARCH_CACHE_TTL_SECONDS)}"

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
        if isinstance(exc, (NoSessionError, UpstreamUnavailableError)):
            logger.warning(f"{request.url.path}: registry unavailable: {exc}")
        elif isinstance(exc, MalformedDocumentError):
            logger.error(f"{request.url.path}: detail page layout changed: {exc}")
        return error_response(exc)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs", status_code=302)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "cache_enabled": app.state.lookup.cache_enabled,
        }

    @app.get("/v1/")
    async def get_sole_proprietorship(portorId: str = "", id: str = "", vatId: str = ""):
        """
        Detail record of one sole proprietorship.
        portorId is the registry's own id, id the 8-digit MBO, vatId the
        owner's 11-digit OIB.
        """
        criteria = SearchCriteria.for_lookup(registry_id=portorId, business_id=id, owner_vat_id=vatId)
        tenant = await app.state.lookup.get_tenant(criteria)
        return JSONResponse(
            content={"data": tenant.as_record()},
            headers={"Cache-Control": detail_cache_control},
        )

    @app.get("/v1/search")
    async def search(query: str = "", name: str = "", id: str = "", page: int = 1):
        """Search by name, MBO or OIB; 100 results per page."""
        result = await app.state.lookup.search(query or name or id, page=page)
        return JSONResponse(
            content=result.model_dump(by_alias=True),
            headers={"Cache-Control": search_cache_control},
        )

    return app
