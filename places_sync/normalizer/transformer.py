"""
Provider adapter: maps raw places payloads into BusinessRecord objects.

The provider has shipped two response generations: the legacy web service
(``place_id``, ``formatted_address``, ``geometry.location``...) and the newer
Places API (``id``, ``displayName.text``, ``location.latitude``...). This module
is the only place that knows either set of field names.
"""

import math
from typing import Any, Optional

from pydantic import ValidationError

from ..utils.exceptions import DataNormalizationError
from .schemas import BusinessRecord, GeoPoint, OpeningHours

LEGACY = "legacy"
V1 = "v1"

# Keys that only appear in the newer payload generation
_V1_MARKERS = (
    "displayName",
    "formattedAddress",
    "userRatingCount",
    "websiteUri",
    "nationalPhoneNumber",
    "currentOpeningHours",
    "regularOpeningHours",
    "businessStatus",
)

# Keys that only appear in the legacy payload generation
_LEGACY_MARKERS = (
    "place_id",
    "formatted_address",
    "geometry",
    "user_ratings_total",
    "formatted_phone_number",
)


class PlaceTransformer:
    """
    Translate raw provider payloads into canonical records.

    Handles field lookup, type coercion and the defaulting rules for
    absent optional fields for both payload generations.
    """

    LEGACY_FIELD_MAP = {
        "id": ["place_id"],
        "name": ["name"],
        "rating": ["rating"],
        "review_count": ["user_ratings_total"],
        "address": ["formatted_address", "vicinity"],
        "latitude": ["geometry.location.lat"],
        "longitude": ["geometry.location.lng"],
        "categories": ["types"],
        "phone": ["formatted_phone_number", "international_phone_number"],
        "website": ["website"],
        "business_status": ["business_status"],
        "opening_hours": ["current_opening_hours", "opening_hours"],
        "open_now": ["open_now"],
        "weekday_text": ["weekday_text"],
    }

    V1_FIELD_MAP = {
        "id": ["id"],
        "name": ["displayName.text"],
        "rating": ["rating"],
        "review_count": ["userRatingCount"],
        "address": ["formattedAddress", "shortFormattedAddress"],
        "latitude": ["location.latitude"],
        "longitude": ["location.longitude"],
        "categories": ["types"],
        "phone": ["nationalPhoneNumber", "internationalPhoneNumber", "phoneNumber"],
        "website": ["websiteUri"],
        "business_status": ["businessStatus"],
        "opening_hours": ["currentOpeningHours", "regularOpeningHours"],
        "open_now": ["openNow"],
        "weekday_text": ["weekdayDescriptions"],
    }

    # Fields a provisional search shell carries before detail enrichment
    SHELL_FIELDS = (
        "id",
        "name",
        "rating",
        "review_count",
        "address",
        "location",
        "categories",
        "business_status",
    )

    @staticmethod
    def detect_source(raw: dict[str, Any]) -> str:
        """
        Identify which payload generation a raw place object belongs to.

        Args:
            raw: Single place object from a search or details response

        Returns:
            ``"v1"`` or ``"legacy"``
        """
        if any(key in raw for key in _V1_MARKERS):
            return V1
        if any(key in raw for key in _LEGACY_MARKERS):
            return LEGACY
        # v1 objects carry "id"; bare legacy detail results rarely omit place_id
        return V1 if "id" in raw else LEGACY

    @staticmethod
    def field_map(source: str) -> dict[str, list[str]]:
        return PlaceTransformer.V1_FIELD_MAP if source == V1 else PlaceTransformer.LEGACY_FIELD_MAP

    @staticmethod
    def to_record(
        raw: dict[str, Any],
        place_id: Optional[str] = None,
        fallback: Optional[BusinessRecord] = None,
    ) -> BusinessRecord:
        """
        Map a raw place object into a BusinessRecord.

        Fields absent from ``raw`` are taken from ``fallback`` when given
        (a provisional shell for the same place), otherwise defaulted.
        The returned record has no ``updated_at``.

        Args:
            raw: Raw provider place object
            place_id: Identifier to use when the payload omits it
            fallback: Record supplying values for fields ``raw`` lacks

        Returns:
            BusinessRecord: Normalized, unpersisted record

        Raises:
            DataNormalizationError: If ``id`` or ``name`` cannot be determined
        """
        if not isinstance(raw, dict):
            raise DataNormalizationError(
                "Place payload is not an object", value=raw
            )

        source = PlaceTransformer.detect_source(raw)
        extracted = PlaceTransformer._extract_fields(raw, source)

        fields: dict[str, Any] = fallback.mapped_fields() if fallback else {}
        fields.update(extracted)

        resolved_id = extracted.get("id") or place_id or fields.get("id")
        if not resolved_id:
            raise DataNormalizationError(
                "Missing required field: id", source=source, field="id"
            )
        fields["id"] = resolved_id

        if not fields.get("name"):
            raise DataNormalizationError(
                f"Missing required field: name for {resolved_id}",
                source=source,
                field="name",
            )

        try:
            return BusinessRecord(**fields)
        except ValidationError as e:
            raise DataNormalizationError(
                f"Invalid place payload for {resolved_id}: {e.error_count()} validation error(s)",
                source=source,
                value=str(e),
            ) from e

    @staticmethod
    def to_shell(raw: dict[str, Any]) -> BusinessRecord:
        """
        Map a raw search result into a provisional shell.

        Only base listing fields are kept; phone, website and opening
        hours are attached later by detail enrichment.
        """
        record = PlaceTransformer.to_record(raw)
        return BusinessRecord(
            **record.model_dump(mode="python", include=set(PlaceTransformer.SHELL_FIELDS))
        )

    @staticmethod
    def _extract_fields(raw: dict[str, Any], source: str) -> dict[str, Any]:
        """Collect every mapped field present in ``raw``."""
        field_map = PlaceTransformer.field_map(source)
        fields: dict[str, Any] = {}

        for key in ("id", "name", "address", "phone", "website", "business_status"):
            value = PlaceTransformer._extract_text(raw, field_map[key])
            if value is not None:
                fields[key] = value

        rating = PlaceTransformer._extract_numeric(raw, field_map["rating"])
        if rating is not None:
            fields["rating"] = max(rating, 0.0)

        review_count = PlaceTransformer._extract_numeric(raw, field_map["review_count"])
        if review_count is not None:
            fields["review_count"] = max(int(review_count), 0)

        latitude = PlaceTransformer._extract_numeric(raw, field_map["latitude"])
        longitude = PlaceTransformer._extract_numeric(raw, field_map["longitude"])
        if latitude is not None or longitude is not None:
            fields["location"] = GeoPoint(latitude=latitude or 0.0, longitude=longitude or 0.0)

        categories = PlaceTransformer._extract_field(raw, field_map["categories"])
        if isinstance(categories, list):
            fields["categories"] = [str(tag) for tag in categories if tag]

        hours = PlaceTransformer._extract_hours(raw, field_map)
        if hours is not None:
            fields["opening_hours"] = hours

        return fields

    @staticmethod
    def _extract_hours(raw: dict[str, Any], field_map: dict[str, list[str]]) -> Optional[OpeningHours]:
        hours = PlaceTransformer._extract_field(raw, field_map["opening_hours"])
        if not isinstance(hours, dict):
            return None

        open_now = PlaceTransformer._extract_field(hours, field_map["open_now"])
        weekday_text = PlaceTransformer._extract_field(hours, field_map["weekday_text"]) or []

        return OpeningHours(
            open_now=bool(open_now) if open_now is not None else None,
            weekday_text=[str(line) for line in weekday_text if line],
        )

    @staticmethod
    def _extract_field(data: dict[str, Any], paths: list[str]) -> Optional[Any]:
        """
        Return the first non-empty value found among dotted ``paths``.

        Args:
            data: Source dictionary
            paths: Candidate keys, nested levels separated by dots

        Returns:
            The value found, or None
        """
        for path in paths:
            value: Any = data
            for part in path.split("."):
                if not isinstance(value, dict) or part not in value:
                    value = None
                    break
                value = value[part]
            if value is not None and value != "":
                return value
        return None

    @staticmethod
    def _extract_text(data: dict[str, Any], paths: list[str]) -> Optional[str]:
        value = PlaceTransformer._extract_field(data, paths)
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def _extract_numeric(data: dict[str, Any], paths: list[str]) -> Optional[float]:
        """Extract a finite float, ignoring values that cannot be converted."""
        value = PlaceTransformer._extract_field(data, paths)
        if value is None or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None
