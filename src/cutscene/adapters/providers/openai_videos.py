"""OpenAI videos API (Sora) adapter.

Create, status and content calls are thin proxies over the REST endpoints;
the only shaping done here is defaulting and validating the request.
"""
from typing import Any, Dict, Optional

from pydantic import SecretStr

from cutscene.core.exceptions import ConfigurationError, NotReady, TransportError, ValidationError
from cutscene.core.interfaces.http_client import HttpClientPort
from cutscene.core.interfaces.providers import VideoProviderPort
from cutscene.core.models.artifact import ContentPayload
from cutscene.core.models.job import GenerationRequest, Provider
from cutscene.core.models.raw_status import RawStatus, parse_raw_status
from cutscene.core.settings import logger

DEFAULT_MODEL = "sora-2"
DEFAULT_SIZE = "1280x720"
DEFAULT_SECONDS = "8"
ALLOWED_SECONDS = ("4", "8", "12")


class OpenAIVideosAdapter(VideoProviderPort):
    name = Provider.openai

    def __init__(
        self,
        http_client: HttpClientPort,
        api_key: SecretStr | str | None,
        base_url: str = "https://api.openai.com/v1",
        variant: str = "video",
    ) -> None:
        self._http = http_client
        self._api_key = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._base = str(base_url).rstrip("/")
        self._variant = variant

    def _headers(self) -> Dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("Server is missing OPENAI_API_KEY configuration.")
        return {"Authorization": f"Bearer {self._api_key}"}

    def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
        prompt = (request.prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required.")

        seconds = str(request.seconds) if request.seconds is not None else DEFAULT_SECONDS
        if seconds not in ALLOWED_SECONDS:
            raise ValidationError(
                f"Invalid seconds value. Allowed options: {', '.join(ALLOWED_SECONDS)}."
            )

        payload: Dict[str, Any] = {
            "model": request.model or DEFAULT_MODEL,
            "prompt": prompt,
            "size": str(request.size) if request.size else DEFAULT_SIZE,
            "seconds": seconds,
        }
        remix_id = (request.remix_video_id or "").strip()
        if remix_id:
            payload["remix_video_id"] = remix_id
        reference = (request.input_reference or "").strip()
        if reference:
            payload["input_reference"] = reference
        return payload

    async def create(self, request: GenerationRequest) -> Dict[str, Any]:
        headers = self._headers()
        payload = self.build_payload(request)
        logger.debug(
            f"[openai:create] model={payload['model']} size={payload['size']} seconds={payload['seconds']}"
        )
        body = await self._http.post_json(f"{self._base}/videos", json=payload, headers=headers)
        parse_raw_status(self.name, body)
        # echo request parameters the response may omit, for display
        body.setdefault("seconds", payload["seconds"])
        body.setdefault("size", payload["size"])
        body.setdefault("model", payload["model"])
        return body

    async def status(self, job_id: str) -> RawStatus:
        if not job_id:
            raise ValidationError("Video id is required.")
        body = await self._http.get_json(f"{self._base}/videos/{job_id}", headers=self._headers())
        return parse_raw_status(self.name, body)

    async def content(self, job_id: str) -> ContentPayload:
        if not job_id:
            raise ValidationError("Video id is required.")
        try:
            return await self._http.get_bytes(
                f"{self._base}/videos/{job_id}/content",
                headers=self._headers(),
                params={"variant": self._variant},
            )
        except TransportError as exc:
            if exc.is_not_found:
                raise NotReady(job_id, message=exc.message) from exc
            raise

    def defaults(self) -> Dict[str, Optional[str]]:
        return {"model": DEFAULT_MODEL, "seconds": DEFAULT_SECONDS, "size": DEFAULT_SIZE}
