"""Concrete status normalizers, one per provider payload variant.

1. OpenAIStatusNormalizer: OpenAI `video` objects (epoch created_at, 0-100 progress)
2. ReplicateStatusNormalizer: Replicate predictions (ISO created_at, no progress)

Both share the canonical status table. Raw statuses missing from the table
pass through unchanged so a provider adding a new state does not break
tracking.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional

from cutscene.core.models.job import StatusCode
from cutscene.core.models.normalized_status import NormalizedStatus
from cutscene.core.models.raw_status import (
    OpenAIVideoError,
    OpenAIVideoStatus,
    RawStatus,
    ReplicatePrediction,
)

STATUS_MAP = {
    "starting": StatusCode.queued,
    "pending": StatusCode.queued,
    "queued": StatusCode.queued,
    "processing": StatusCode.in_progress,
    "running": StatusCode.in_progress,
    "in_progress": StatusCode.in_progress,
    "succeeded": StatusCode.completed,
    "completed": StatusCode.completed,
    "failed": StatusCode.failed,
    "canceled": StatusCode.failed,
}


def canonical_status(raw_status: str) -> str:
    return STATUS_MAP.get(raw_status, raw_status)


def coerce_progress(value: Any) -> int:
    """Advisory progress as an int in 0..100; absent or non-numeric becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(max(0, min(100, number)))


def _whole_seconds(value: Optional[float | datetime], observed_at: float) -> int:
    if value is None:
        return int(observed_at)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def _finish(
    job_id: str,
    raw_status: str,
    progress: int,
    model: Optional[str],
    created_at: int,
    error: Optional[str],
) -> NormalizedStatus:
    status = canonical_status(raw_status)
    if status == StatusCode.completed:
        progress = 100
    return NormalizedStatus(
        job_id=job_id,
        status=status,
        raw_status=raw_status,
        progress=progress,
        model=model,
        created_at=created_at,
        error=error,
    )


class OpenAIStatusNormalizer:
    def can_handle(self, raw: RawStatus) -> bool:
        return isinstance(raw, OpenAIVideoStatus)

    def normalize(self, raw: OpenAIVideoStatus, observed_at: float) -> NormalizedStatus:
        error = raw.error
        if isinstance(error, OpenAIVideoError):
            error = error.message or error.code
        return _finish(
            job_id=raw.id,
            raw_status=raw.status,
            progress=coerce_progress(raw.progress),
            model=raw.model,
            created_at=_whole_seconds(raw.created_at, observed_at),
            error=error,
        )


class ReplicateStatusNormalizer:
    def can_handle(self, raw: RawStatus) -> bool:
        return isinstance(raw, ReplicatePrediction)

    def normalize(self, raw: ReplicatePrediction, observed_at: float) -> NormalizedStatus:
        # Replicate reports no percentage; extras may carry one from proxies
        extra = raw.model_extra or {}
        return _finish(
            job_id=raw.id,
            raw_status=raw.status,
            progress=coerce_progress(extra.get("progress")),
            model=raw.model or raw.version,
            created_at=_whole_seconds(raw.created_at, observed_at),
            error=raw.error,
        )
