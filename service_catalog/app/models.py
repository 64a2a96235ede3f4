"""
Data models for the Catalog Service.
"""

from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field

from shared.errors import ValidationError


class DropdownKind(str, Enum):
    """Reference-data collections served through the dropdown cache."""
    ATTRIBUTES = "attributes"
    BRANDS = "brands"
    SIZES = "sizes"
    CATEGORIES = "categories"

    @classmethod
    def parse(cls, value: str) -> "DropdownKind":
        """Resolve a kind from its wire name."""
        try:
            return cls(value.lower())
        except ValueError:
            raise ValidationError(
                f"Unknown dropdown collection '{value}'",
                details={"known_kinds": [kind.value for kind in cls]},
            )


# kind value -> ordered records; records are opaque to the cache layer
DropdownPayload = Dict[str, List[Dict[str, Any]]]


def empty_payload() -> DropdownPayload:
    """Payload with an empty slot for every known kind."""
    return {kind.value: [] for kind in DropdownKind}


class DataSource(str, Enum):
    """Where a dropdown payload was served from."""
    CACHE = "cache"
    STORE = "store"
    NONE = "none"


class CacheWriteOutcome(str, Enum):
    """Advisory result of a cache write-back."""
    WRITTEN = "written"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_ATTEMPTED = "not_attempted"


class DropdownResult(BaseModel):
    """Result of a dropdown read."""
    success: bool = Field(..., description="Whether the payload was produced")
    data: Optional[DropdownPayload] = Field(None, description="Collections keyed by kind")
    message: str = Field("", description="Human readable status")
    source: DataSource = Field(DataSource.NONE, description="Cache or durable store")
    failed_kinds: List[str] = Field(default_factory=list, description="Kinds substituted with empty lists")
    cache_write: CacheWriteOutcome = Field(
        CacheWriteOutcome.NOT_ATTEMPTED,
        description="Advisory write-back outcome; never affects success",
    )


class PrewarmResult(BaseModel):
    """Result of a cache prewarm run."""
    success: bool = Field(..., description="Whether a payload was written")
    message: str = Field("", description="Human readable status")
    kinds_fetched: List[str] = Field(default_factory=list, description="Kinds fetched from the store")
    failed_kinds: List[str] = Field(default_factory=list, description="Kinds the store failed to return")
    carried_over_kinds: List[str] = Field(
        default_factory=list,
        description="Failed kinds filled from the previous cache entry",
    )
    ttl_seconds: Optional[int] = Field(None, description="TTL the payload was written with")
    cache_write: CacheWriteOutcome = Field(CacheWriteOutcome.NOT_ATTEMPTED)
    duration_ms: float = Field(0.0, description="Wall time of the run")
