from abc import ABC, abstractmethod

from cutscene.core.models.artifact import Artifact, ContentPayload


class ArtifactStorePort(ABC):
    """Turns downloaded bytes into a releasable artifact handle."""

    @abstractmethod
    def materialize(self, job_id: str, payload: ContentPayload) -> Artifact:
        pass

    @abstractmethod
    def release(self, artifact: Artifact) -> None:
        """Release the artifact. Releasing twice is a no-op."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release everything still held and drop store-owned resources."""
        pass
