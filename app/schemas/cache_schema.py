from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CacheInvalidationResult(BaseModel):
    """What a cache invalidation pass did. Failures are reported, never raised."""

    success: bool
    invalidated_keys: List[str] = Field(default_factory=list)
    materialized_views_refreshed: List[str] = Field(default_factory=list)
    # True when the aggregate rebuild was handed to the background worker
    aggregate_refresh_scheduled: bool = False
    errors: List[str] = Field(default_factory=list)
    skipped: bool = False


class CacheStats(BaseModel):
    total_invalidations: int = 0
    failed_invalidations: int = 0
    average_invalidation_time_ms: float = 0.0
    materialized_view_refresh_count: int = 0
    last_full_refresh: Optional[datetime] = None
    failed_background_refreshes: int = 0
