"""Data models for registry queries and extracted records."""
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from portor.auth.session import SessionHandle
from portor.errors import ValidationError

BUSINESS_ID_PATTERN = re.compile(r"^\d{8}$")
OWNER_VAT_ID_PATTERN = re.compile(r"^\d{11}$")


class SearchCriteria(BaseModel):
    """Identifying parameters of one registry query.

    Only one field is authoritative: ``registry_id`` wins over ``business_id``,
    which wins over ``owner_vat_id``, which wins over ``business_name``.
    """

    model_config = ConfigDict(frozen=True)

    business_id: str = ""
    owner_vat_id: str = ""
    business_name: str = ""
    registry_id: str = ""

    @classmethod
    def for_lookup(
        cls,
        registry_id: str = "",
        business_id: str = "",
        owner_vat_id: str = "",
    ) -> "SearchCriteria":
        """Build criteria for a single-record lookup, validating id formats."""
        registry_id = (registry_id or "").strip()
        business_id = (business_id or "").strip()
        owner_vat_id = (owner_vat_id or "").strip()

        if not registry_id and not business_id and not owner_vat_id:
            raise ValidationError([
                {"parameter": "vatId", "detail": "Must be present if id not given"},
                {"parameter": "id", "detail": "Must be present if vatId not given"},
            ])

        errors = []
        if owner_vat_id and not OWNER_VAT_ID_PATTERN.match(owner_vat_id):
            errors.append({"parameter": "vatId", "detail": "Must be 11 digits"})
        if business_id and not BUSINESS_ID_PATTERN.match(business_id):
            errors.append({"parameter": "id", "detail": "Must be 8 digits"})
        if errors:
            raise ValidationError(errors)

        if registry_id:
            return cls(registry_id=registry_id)
        if business_id:
            return cls(business_id=business_id)
        return cls(owner_vat_id=owner_vat_id)

    @classmethod
    def from_query(cls, query: str) -> "SearchCriteria":
        """Classify a free-text search query by its shape."""
        query = (query or "").strip()
        if BUSINESS_ID_PATTERN.match(query):
            return cls(business_id=query)
        if OWNER_VAT_ID_PATTERN.match(query):
            return cls(owner_vat_id=query)
        return cls(business_name=query)


class SummaryRecord(BaseModel):
    """One row of a search listing, published with the registry's field names."""

    model_config = ConfigDict(frozen=True)

    registry_id: str = Field(serialization_alias="portorId")
    excerpt_id: str = Field(default="", serialization_alias="excerptId")
    business_id: str = Field(default="", serialization_alias="id")
    name: str = ""
    status: str = ""


class ListingResult(BaseModel):
    """Search listing plus the session that produced it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    records: list[SummaryRecord] = Field(default_factory=list)
    total_results: int = 0
    # None when the registry id short-circuited the search
    session: Optional[SessionHandle] = None


class TenantDetail(BaseModel):
    """Normalized sole proprietorship record extracted from a detail page."""

    model_config = ConfigDict(frozen=True)

    business: dict[str, str] = Field(default_factory=dict)
    owner: Optional[dict[str, str]] = None
    activities: Optional[list[dict[str, str]]] = None

    def as_record(self) -> dict[str, Any]:
        """Flatten into the published shape: business fields at top level."""
        record: dict[str, Any] = dict(self.business)
        if self.owner is not None:
            record["vlasnik"] = dict(self.owner)
        if self.activities is not None:
            record["djelatnosti"] = [dict(activity) for activity in self.activities]
        return record


class SearchPage(BaseModel):
    """Published search result for one page of listings."""

    model_config = ConfigDict(frozen=True)

    data: list[SummaryRecord] = Field(default_factory=list)
    total_results: int = Field(default=0, serialization_alias="totalResults")
    page_size: int = Field(default=100, serialization_alias="pageSize")
