from pydantic import BaseModel, Field, computed_field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime, timezone


UNKNOWN = "unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheEntry(BaseModel):
    """Metadata for one stored game. The id is the index key, not a field."""
    storage_location: str  # blob file name, relative to the storage dir
    size_bytes: int
    created_at: datetime
    last_accessed_at: datetime
    produced_by: str = UNKNOWN
    label: str = UNKNOWN


class EntrySummary(BaseModel):
    id: str
    label: str
    size_bytes: int
    size_kb: str
    created_at: datetime
    last_accessed_at: datetime
    produced_by: str

    @classmethod
    def from_entry(cls, game_id: str, entry: CacheEntry) -> "EntrySummary":
        return cls(
            id=game_id,
            label=entry.label,
            size_bytes=entry.size_bytes,
            size_kb=f"{entry.size_bytes / 1024:.1f}",
            created_at=entry.created_at,
            last_accessed_at=entry.last_accessed_at,
            produced_by=entry.produced_by,
        )


class GenerationRequest(BaseModel):
    id: str = Field(min_length=1)
    # Game design document; only a handful of summary fields are read
    design: Dict[str, Any]
    force_regenerate: bool = False


class GenerationStats(BaseModel):
    html_length: int
    # Reporting only, counted from the request payload
    factions: Optional[int] = None
    units: Optional[int] = None
    cached_at: Optional[datetime] = None


class GenerationResult(BaseModel):
    id: str
    html: str
    produced_by: str
    quality: Literal["cached", "fresh"]
    cached: bool
    latency_s: float = 0.0
    stats: GenerationStats

    @computed_field
    @property
    def play_url(self) -> str:
        return f"/play/{self.id}"


class StorageStats(BaseModel):
    directory: str
    cached_games: int
    total_size_bytes: int

    @property
    def total_size_mb(self) -> str:
        return f"{self.total_size_bytes / 1024 / 1024:.2f}"


class ModelsInfo(BaseModel):
    current_model: Optional[str]
    fallbacks: List[str] = []
