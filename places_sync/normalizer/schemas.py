"""
Data schemas for cached business listings.

Pydantic models providing type safety, validation, and serialization
for records reconciled from the places provider.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Default clock: current timezone-aware UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GeoPoint(BaseModel):
    """Latitude/longitude pair; (0, 0) when the provider omits it."""

    latitude: float = 0.0
    longitude: float = 0.0


class OpeningHours(BaseModel):
    """Opening hours summary attached by detail enrichment."""

    open_now: Optional[bool] = None
    weekday_text: list[str] = Field(default_factory=list)


class BusinessRecord(BaseModel):
    """
    Canonical cached business listing.

    ``id`` is the provider's place identifier and the store's primary key.
    ``updated_at`` is set on every write; ``None`` marks a record that has
    never been persisted (for example a provisional search shell).
    """

    id: str = Field(..., description="Provider place identifier")
    name: str = Field(..., description="Business display name")
    rating: float = Field(0.0, description="Average rating", ge=0)
    review_count: int = Field(0, description="Number of ratings", ge=0)
    address: str = Field("", description="Formatted address")
    location: GeoPoint = Field(default_factory=GeoPoint)
    categories: list[str] = Field(default_factory=list, description="Provider type tags")
    phone: Optional[str] = None
    website: Optional[str] = None
    business_status: Optional[str] = None
    opening_hours: Optional[OpeningHours] = None
    updated_at: Optional[datetime] = Field(None, description="Last write time (UTC)")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "ChIJN1t_tDeuEmsRUsoyG83frY4",
                "name": "Mile High Plumbing",
                "rating": 4.7,
                "review_count": 312,
                "address": "1234 Blake St, Denver, CO 80205, USA",
                "location": {"latitude": 39.7508, "longitude": -104.9966},
                "categories": ["plumber", "point_of_interest"],
                "phone": "(303) 555-0199",
                "website": "https://milehighplumbing.example",
                "business_status": "OPERATIONAL",
            }
        }
    }

    @field_validator("id", "name")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        """Ensure identity fields are non-empty."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("categories")
    @classmethod
    def dedupe_categories(cls, v: list[str]) -> list[str]:
        """Drop empty and repeated tags, keeping first occurrence."""
        seen: dict[str, None] = {}
        for tag in v:
            if tag and tag not in seen:
                seen[tag] = None
        return list(seen)

    @field_validator("updated_at")
    @classmethod
    def validate_updated_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    def with_timestamp(self, when: datetime) -> "BusinessRecord":
        """Copy of this record stamped with a new ``updated_at``."""
        return self.model_copy(update={"updated_at": ensure_utc(when)})

    def mapped_fields(self) -> dict[str, Any]:
        """All provider-mapped fields, excluding the write timestamp."""
        return self.model_dump(mode="python", exclude={"updated_at"})

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a JSON-compatible dictionary.

        Returns:
            dict: Record with timestamps rendered as ISO 8601 strings
        """
        return self.model_dump(mode="json")

    def __repr__(self) -> str:
        return (
            f"BusinessRecord(id={self.id!r}, name={self.name!r}, "
            f"updated_at={self.updated_at})"
        )


class LocationBias(BaseModel):
    """Circle biasing text-search results toward an area."""

    latitude: float
    longitude: float
    radius_meters: float = Field(50000.0, gt=0, le=50000.0)


class SearchQuery(BaseModel):
    """Ephemeral search request; never persisted."""

    keyword: str = ""
    location: str = ""
    location_bias: Optional[LocationBias] = None

    @field_validator("keyword", "location", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    def missing_fields(self) -> list[str]:
        """Names of required fields that are empty."""
        return [name for name in ("keyword", "location") if not getattr(self, name)]

    @property
    def text_query(self) -> str:
        """Upstream text query, e.g. ``"plumbers in Denver, CO"``."""
        return f"{self.keyword} in {self.location}"


class SyncStatus(str, Enum):
    """How the record synchronizer produced its answer."""

    FRESH = "fresh"  # Served from the store, no external call
    REFRESHED = "refreshed"  # Fetched and upserted
    STALE_FALLBACK = "stale_fallback"  # Fetch failed, stale record returned
    UNAVAILABLE = "unavailable"  # Fetch failed, nothing cached


class SyncResult(BaseModel):
    """Outcome of a single record synchronization."""

    place_id: str
    status: SyncStatus
    record: Optional[BusinessRecord] = None
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.record is not None

    @classmethod
    def unavailable(cls, place_id: str, error: Optional[str] = None) -> "SyncResult":
        return cls(place_id=place_id, status=SyncStatus.UNAVAILABLE, error=error)


class SearchResponse(BaseModel):
    """Aggregated search result in provider ranking order."""

    query: SearchQuery
    results: list[BusinessRecord] = Field(default_factory=list)
    enriched: int = 0
    degraded: int = 0
    skipped: int = 0

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        """Success payload: ``{"results": [...], "count": n, "metadata": {...}}``."""
        return {
            "results": [record.to_dict() for record in self.results],
            "count": self.count,
            "metadata": {
                "query": {"keyword": self.query.keyword, "location": self.query.location},
                "enriched": self.enriched,
                "degraded": self.degraded,
                "skipped": self.skipped,
            },
        }
