"""Registry client: advanced-search submission, listing query, detail pages."""
import logging
from typing import Any

import httpx

from portor.auth.session import SessionAcquirer, SessionHandle, connect_retry
from portor.errors import UpstreamUnavailableError, ValidationError
from portor.fetch.endpoints import LISTING_PATH, SEARCH_FORM_PATH, get_detail_path
from portor.parse.models import ListingResult, SearchCriteria, SummaryRecord

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
LISTING_COLUMNS = 6
SESSION_INVALIDATED_STATUS = 303

# Status checkboxes: every state is included so the registry filters on nothing
_ALL_STATES_ON = {
    "obrtStanjeURadu": "true",
    "_obrtStanjeURadu": "on",
    "obrtStanjePrivObust": "true",
    "_obrtStanjePrivObust": "on",
    "obrtStanjeMirovanje": "true",
    "_obrtStanjeMirovanje": "on",
    "obrtStanjeBezPocetka": "true",
    "_obrtStanjeBezPocetka": "on",
    "obrtStanjeOdjava": "true",
    "_obrtStanjeOdjava": "on",
    "obrtStanjePreseljen": "true",
    "_obrtStanjePreseljen": "on",
    "pogonStanjeURadu": "true",
    "_pogonStanjeURadu": "on",
    "pogonStanjePrivObust": "true",
    "_pogonStanjePrivObust": "on",
    "pogonStanjeBezPocetka": "true",
    "_pogonStanjeBezPocetka": "on",
}

_EMPTY_FILTERS = (
    "obrtObavljanje", "obrtVrsta", "obrtBrojObrtnice", "obrtTduId", "obrtBrRegUloska",
    "obrtUlica", "obrtKucniBroj", "obrtNaseljeId", "obrtOpcinaIliGradId", "obrtZupanijaId",
    "obrtEmail", "obrtWwwAdresa",
    "vlasnikImePrezime", "vlasnikUlica", "vlasnikKucniBroj", "vlasnikNaseljeId",
    "vlasnikOpcinaIliGradId", "vlasnikZupanijaId",
    "pogonNaziv", "pogonObavljanje", "pogonUlica", "pogonKucniBroj", "pogonNaseljeId",
    "pogonOpcinaIliGradId", "pogonZupanijaId", "pogonEmail", "pogonWwwAdresa",
)


def build_search_form(criteria: SearchCriteria, captcha_text: str) -> dict[str, str]:
    """Full advanced-search form; unused filters are sent empty."""
    form = {name: "" for name in _EMPTY_FILTERS}
    form.update(_ALL_STATES_ON)
    form.update({
        "napredna": "1",
        "obrtNaziv": criteria.business_name,
        "obrtMbo": criteria.business_id,
        "vlasnikOib": criteria.owner_vat_id,
        "_pretraziVlasnikaUPasivi": "on",
        "_djelatnostIdLista": "1",
        "_pretezitaDjelatnost": "on",
        "kontrolniBroj": captcha_text,
        "trazi": "Traži",
    })
    return form


def build_listing_query(page: int) -> dict[str, str]:
    """DataTables parameters for one page of results."""
    query = {
        "sEcho": "1",
        "iColumns": str(LISTING_COLUMNS),
        "sColumns": "",
        "iDisplayStart": str((page - 1) * PAGE_SIZE),
        "iDisplayLength": str(PAGE_SIZE),
        "iSortingCols": "1",
        "iSortCol_0": "0",
        "sSortDir_0": "asc",
        "iRecordsTotal": "0",
        "sortKolona": "nazivPogona",
        "sortSmjer": "asc",
    }
    for column in range(LISTING_COLUMNS):
        query[f"mDataProp_{column}"] = str(column)
        query[f"bSortable_{column}"] = "true" if column < 2 else "false"
    return query


def _cell(row: list[Any], index: int) -> str:
    value = row[index]
    return "" if value is None else str(value)


def parse_listing(payload: Any, page: int) -> tuple[list[SummaryRecord], int]:
    """
    Map listing rows to SummaryRecords.
    Columns 0, 1, 3, 4, 5 hold registry id, excerpt id, business id, name and
    status; column 2 is ignored. The reported total only counts rows from the
    current offset onward.
    """
    try:
        rows = payload["aaData"]
        reported_total = int(payload["iTotalDisplayRecords"])
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamUnavailableError(f"malformed listing response: {e}") from e

    if not isinstance(rows, list):
        raise UpstreamUnavailableError("malformed listing response: aaData is not a list")

    records = []
    for row in rows:
        if not isinstance(row, list) or len(row) != LISTING_COLUMNS:
            raise UpstreamUnavailableError(f"malformed listing row: {row!r}")
        records.append(SummaryRecord(
            registry_id=_cell(row, 0),
            excerpt_id=_cell(row, 1),
            business_id=_cell(row, 3),
            name=_cell(row, 4),
            status=_cell(row, 5),
        ))

    return records, (page - 1) * PAGE_SIZE + reported_total


class RegistryClient:
    """Runs the search workflow against the registry with a fresh session per lookup."""

    def __init__(self, acquirer: SessionAcquirer):
        self.acquirer = acquirer

    async def open_session(self, criteria: SearchCriteria) -> SessionHandle:
        """Acquire a session and submit the advanced-search form on it."""
        session = await self.acquirer.acquire()
        try:
            await self._submit_search(session, criteria)
        except BaseException:
            await session.aclose()
            raise
        return session

    async def search(self, criteria: SearchCriteria, page: int = 1) -> ListingResult:
        """
        Return one page of summary records and the session that produced it.
        A registry id skips the search: it is returned as a one-record
        listing without a session and validated by the detail fetch.
        """
        if page < 1:
            raise ValidationError([{"parameter": "page", "detail": "Must be a positive integer"}])

        if criteria.registry_id:
            return ListingResult(
                records=[SummaryRecord(registry_id=criteria.registry_id)],
                total_results=1,
            )

        session = await self.open_session(criteria)
        try:
            records, total_results = await self._fetch_listing(session, page)
        except BaseException:
            await session.aclose()
            raise

        logger.info(f"Listing page {page}: {len(records)} records, {total_results} total")
        return ListingResult(records=records, total_results=total_results, session=session)

    async def fetch_detail_page(self, session: SessionHandle, registry_id: str) -> str:
        """Fetch the detail page HTML for a registry id."""
        try:
            response = await self._get(session, get_detail_path(registry_id))
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"detail request failed: {e}") from e

        if response.status_code == SESSION_INVALIDATED_STATUS:
            raise UpstreamUnavailableError("session invalidated while fetching detail page")
        if response.status_code >= 500:
            raise UpstreamUnavailableError(f"detail page returned {response.status_code}")

        return response.text

    async def _submit_search(self, session: SessionHandle, criteria: SearchCriteria) -> None:
        form = build_search_form(criteria, session.captcha_text)
        try:
            response = await session.client.post(SEARCH_FORM_PATH, data=form, follow_redirects=True)
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"search form submission failed: {e}") from e
        # The registry answers with an HTML page whose content is not needed
        logger.debug(f"Search form submitted, status {response.status_code}")

    async def _fetch_listing(self, session: SessionHandle, page: int) -> tuple[list[SummaryRecord], int]:
        try:
            response = await session.client.post(LISTING_PATH, data=build_listing_query(page))
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"listing request failed: {e}") from e

        if response.status_code == SESSION_INVALIDATED_STATUS:
            raise UpstreamUnavailableError("session invalidated while fetching listing")
        if not response.content:
            raise UpstreamUnavailableError("no response")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(f"listing response is not JSON: {e}") from e

        return parse_listing(payload, page)

    @connect_retry
    async def _get(self, session: SessionHandle, path: str) -> httpx.Response:
        return await session.client.get(path)
