"""Protocol for provider status normalizers.

Each provider's raw payload is mapped onto the canonical status record by one
normalizer, selected by the orchestrator in the Strategy pattern manner.
"""

from typing import Protocol

from cutscene.core.models.normalized_status import NormalizedStatus
from cutscene.core.models.raw_status import RawStatus


class StatusNormalizer(Protocol):
    def can_handle(self, raw: RawStatus) -> bool:
        """Check if this normalizer understands the given payload variant."""
        ...

    def normalize(self, raw: RawStatus, observed_at: float) -> NormalizedStatus:
        """Map a raw payload to the canonical record.

        Args:
            raw: Tagged provider payload
            observed_at: Epoch seconds of this observation, used as created_at
                when the provider omits a creation time
        """
        ...
