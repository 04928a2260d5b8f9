"""Orchestrator for provider status normalizers.

Parses a provider payload into its tagged variant and hands it to the first
normalizer that can handle it.
"""

from typing import Any, List, Optional

from cutscene.core.exceptions import ValidationError
from cutscene.core.interfaces.normalizer import StatusNormalizer
from cutscene.core.managers.status_normalizers import (
    OpenAIStatusNormalizer,
    ReplicateStatusNormalizer,
)
from cutscene.core.models.normalized_status import NormalizedStatus
from cutscene.core.models.raw_status import RawStatus, parse_raw_status
from cutscene.core.settings import logger


class StatusNormalizationOrchestrator:
    def __init__(self, normalizers: Optional[List[StatusNormalizer]] = None):
        self._normalizers: List[StatusNormalizer] = normalizers or [
            OpenAIStatusNormalizer(),
            ReplicateStatusNormalizer(),
        ]

    def normalize(self, raw: RawStatus, observed_at: float) -> NormalizedStatus:
        for normalizer in self._normalizers:
            if normalizer.can_handle(raw):
                logger.debug(
                    f"[normalizer] using {normalizer.__class__.__name__} job_id={raw.id} raw_status={raw.status}"
                )
                return normalizer.normalize(raw, observed_at)
        raise ValidationError(
            f"No normalizer for payload type {type(raw).__name__}", job_id=getattr(raw, "id", None)
        )

    def normalize_payload(self, provider: str, payload: Any, observed_at: float) -> NormalizedStatus:
        """Parse an untyped payload (e.g. a create response) and normalize it."""
        return self.normalize(parse_raw_status(provider, payload), observed_at)
