"""Filesystem-backed artifact store.

Each artifact is one file in a scratch directory; the handle is the file
name. Releasing deletes the file. A scratch directory the store created itself is
removed on close.
"""
from __future__ import annotations

import logging
import mimetypes
import os
import shutil
import tempfile
import uuid
from typing import Optional

from cutscene.core.interfaces.artifact_store import ArtifactStorePort
from cutscene.core.interfaces.clock import ClockPort
from cutscene.core.models.artifact import Artifact, ContentPayload

logger = logging.getLogger(__name__)


class TempDirArtifactStore(ArtifactStorePort):
    def __init__(self, clock: ClockPort, directory: Optional[str] = None) -> None:
        self._clock = clock
        self._owns_directory = directory is None
        self._directory = directory or tempfile.mkdtemp(prefix="cutscene-")
        os.makedirs(self._directory, exist_ok=True)
        self._live: set[str] = set()

    @property
    def directory(self) -> str:
        return self._directory

    @property
    def live_handles(self) -> set[str]:
        return set(self._live)

    def materialize(self, job_id: str, payload: ContentPayload) -> Artifact:
        extension = mimetypes.guess_extension(payload.content_type.split(";")[0].strip()) or ".bin"
        handle = f"{job_id}-{uuid.uuid4().hex[:8]}{extension}"
        path = os.path.join(self._directory, handle)
        with open(path, "wb") as f:
            f.write(payload.data)
        self._live.add(handle)
        logger.debug(
            f"[artifact:materialize] job_id={job_id} handle={handle} size={len(payload.data)}"
        )
        return Artifact(
            handle=handle,
            job_id=job_id,
            path=path,
            content_type=payload.content_type,
            size=len(payload.data),
            content_disposition=payload.content_disposition,
            created_at=self._clock.now(),
        )

    def release(self, artifact: Artifact) -> None:
        if artifact.handle not in self._live:
            return
        self._live.discard(artifact.handle)
        try:
            os.remove(artifact.path)
        except FileNotFoundError:
            pass
        logger.debug(f"[artifact:release] job_id={artifact.job_id} handle={artifact.handle}")

    def close(self) -> None:
        for handle in list(self._live):
            try:
                os.remove(os.path.join(self._directory, handle))
            except FileNotFoundError:
                pass
        self._live.clear()
        if self._owns_directory:
            shutil.rmtree(self._directory, ignore_errors=True)
            logger.debug(f"[artifact:close] removed directory={self._directory}")
