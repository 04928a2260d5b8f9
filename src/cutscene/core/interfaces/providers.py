"""VideoProviderPort: the three collaborators the tracker consumes per provider."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from cutscene.core.models.artifact import ContentPayload
from cutscene.core.models.job import GenerationRequest, Provider
from cutscene.core.models.raw_status import RawStatus


class VideoProviderPort(ABC):
    name: Provider

    @abstractmethod
    async def create(self, request: GenerationRequest) -> Dict[str, Any]:
        """Submit a generation request and return the provider's job payload.

        Raises ConfigurationError when credentials are missing and
        ValidationError when the request is not acceptable for this provider.
        """
        pass

    @abstractmethod
    async def status(self, job_id: str) -> RawStatus:
        """Return the provider-native status payload for a job."""
        pass

    @abstractmethod
    async def content(self, job_id: str) -> ContentPayload:
        """Return the rendered media. Raises NotReady while it is unavailable."""
        pass
