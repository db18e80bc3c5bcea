"""Cached lookup workflows: single-record detail and paginated search."""
import logging

from portor.errors import RecordNotFoundError, ValidationError
from portor.fetch.client import PAGE_SIZE, RegistryClient
from portor.parse.extractor import extract_tenant
from portor.parse.models import SearchCriteria, SearchPage, TenantDetail
from portor.store.cache import ResultCache

logger = logging.getLogger(__name__)


class RegistryLookup:
    """Front door of the scraper: validates, consults the caches, runs the registry workflow."""

    def __init__(
        self,
        client: RegistryClient,
        detail_cache: ResultCache,
        search_cache: ResultCache,
        cache_enabled: bool = True,
    ):
        self.client = client
        self.detail_cache = detail_cache
        self.search_cache = search_cache
        self.cache_enabled = cache_enabled

    async def get_tenant(self, criteria: SearchCriteria) -> TenantDetail:
        """Fetch the detail record of the first proprietorship matching the criteria."""
        cache_key = ResultCache.make_key(
            registry_id=criteria.registry_id,
            business_id=criteria.business_id,
            owner_vat_id=criteria.owner_vat_id,
        )
        if self.cache_enabled:
            cached = self.detail_cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Detail cache hit for {cache_key}")
                return cached

        listing = await self.client.search(criteria, page=1)
        session = listing.session
        if not listing.records:
            if session is not None:
                await session.aclose()
            raise RecordNotFoundError("no sole proprietorship matches the criteria")

        registry_id = listing.records[0].registry_id
        if session is None:
            # Registry id given directly: the detail page still needs a searched session
            session = await self.client.open_session(criteria)

        async with session:
            html_content = await self.client.fetch_detail_page(session, registry_id)

        tenant = extract_tenant(html_content)
        self.detail_cache.set(cache_key, tenant)
        logger.info(f"Fetched detail for registry id {registry_id}")
        return tenant

    async def search(self, query: str, page: int = 1) -> SearchPage:
        """Search by name, business id or owner VAT id; one page of 100 rows."""
        query = (query or "").strip()
        if not query:
            raise ValidationError([{"parameter": "query", "detail": "Must not be empty"}])

        cache_key = ResultCache.make_key(query=query, page=page)
        if self.cache_enabled:
            cached = self.search_cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Search cache hit for {cache_key}")
                return cached

        listing = await self.client.search(SearchCriteria.from_query(query), page=page)
        if listing.session is not None:
            await listing.session.aclose()

        result = SearchPage(data=listing.records, total_results=listing.total_results, page_size=PAGE_SIZE)
        self.search_cache.set(cache_key, result)
        return result
