"""Replicate predictions adapter.

Replicate has no dedicated content endpoint: the prediction carries an output
URL once it succeeded, so `content` re-reads the prediction and downloads the
first usable output.
"""
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, SecretStr

from cutscene.core.exceptions import ConfigurationError, NotReady, ValidationError
from cutscene.core.interfaces.http_client import HttpClientPort
from cutscene.core.interfaces.providers import VideoProviderPort
from cutscene.core.managers.status_normalizers import canonical_status
from cutscene.core.models.artifact import ContentPayload
from cutscene.core.models.job import GenerationRequest, Provider, StatusCode
from cutscene.core.models.raw_status import RawStatus, parse_raw_status
from cutscene.core.settings import logger


class ReplicateModelSpec(BaseModel):
    seconds_options: Tuple[str, ...]
    default_seconds: str
    resolution_options: Tuple[str, ...]
    default_resolution: str
    aspect_ratio: Optional[str] = None
    supports_image_reference: bool = False

    model_config = {"frozen": True}


REPLICATE_VIDEO_MODELS: Dict[str, ReplicateModelSpec] = {
    "bytedance/seedance-1-pro": ReplicateModelSpec(
        seconds_options=("5", "10"),
        default_seconds="5",
        resolution_options=("1080p", "480p"),
        default_resolution="1080p",
        aspect_ratio="16:9",
        supports_image_reference=True,
    ),
}

DEFAULT_MODEL = "bytedance/seedance-1-pro"


def _coerce_option(value: Any, allowed: Tuple[str, ...], fallback: str) -> str:
    candidate = str(value) if value is not None else None
    if candidate and candidate in allowed:
        return candidate
    return fallback


def extract_output_url(output: Any) -> Optional[str]:
    """Find the first downloadable URL in a prediction output.

    Output may be a URL string, a list of them, or objects with url/uri/href.
    """
    def inspect(item: Any) -> Optional[str]:
        if not item:
            return None
        if isinstance(item, str):
            return item
        if isinstance(item, dict):
            for key in ("url", "uri", "href"):
                if isinstance(item.get(key), str):
                    return item[key]
        return None

    if isinstance(output, list):
        for item in output:
            candidate = inspect(item)
            if candidate:
                return candidate
        return None
    return inspect(output)


def model_defaults(model: str) -> Optional[Dict[str, str]]:
    spec = REPLICATE_VIDEO_MODELS.get(model)
    if spec is None:
        return None
    return {"seconds": spec.default_seconds, "size": spec.default_resolution}


class ReplicateAdapter(VideoProviderPort):
    name = Provider.replicate

    def __init__(
        self,
        http_client: HttpClientPort,
        api_token: SecretStr | str | None,
        base_url: str = "https://api.replicate.com/v1",
    ) -> None:
        self._http = http_client
        self._token = api_token.get_secret_value() if isinstance(api_token, SecretStr) else api_token
        self._base = str(base_url).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self._token:
            raise ConfigurationError("Server is missing REPLICATE_API_TOKEN configuration.")
        return {"Authorization": f"Bearer {self._token}"}

    def build_input(self, request: GenerationRequest) -> Tuple[str, Dict[str, Any]]:
        model = request.model or DEFAULT_MODEL
        spec = REPLICATE_VIDEO_MODELS.get(model)
        if spec is None:
            raise ValidationError(f'Unsupported Replicate model "{model}".')
        prompt = (request.prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required for Replicate generation.")

        duration = _coerce_option(request.seconds, spec.seconds_options, spec.default_seconds)
        resolution = _coerce_option(request.size, spec.resolution_options, spec.default_resolution)
        payload: Dict[str, Any] = {
            "prompt": prompt,
            "duration": int(duration),
            "resolution": resolution,
        }
        if spec.aspect_ratio:
            payload["aspect_ratio"] = spec.aspect_ratio
        if request.input_reference and spec.supports_image_reference:
            payload["image"] = request.input_reference
        return model, payload

    async def create(self, request: GenerationRequest) -> Dict[str, Any]:
        headers = self._headers()
        model, payload = self.build_input(request)
        logger.debug(
            f"[replicate:create] model={model} duration={payload['duration']} resolution={payload['resolution']}"
        )
        body = await self._http.post_json(
            f"{self._base}/models/{model}/predictions",
            json={"input": payload},
            headers=headers,
        )
        parse_raw_status(self.name, body)
        body.setdefault("model", model)
        return body

    async def status(self, job_id: str) -> RawStatus:
        if not job_id:
            raise ValidationError("Prediction id is required.")
        body = await self._http.get_json(f"{self._base}/predictions/{job_id}", headers=self._headers())
        return parse_raw_status(self.name, body)

    async def content(self, job_id: str) -> ContentPayload:
        prediction = await self.status(job_id)
        if canonical_status(prediction.status) != StatusCode.completed:
            raise NotReady(job_id, message=f"Prediction is {prediction.status}")

        file_url = extract_output_url(prediction.output)
        if not file_url:
            raise ValidationError(
                "Prediction completed but no downloadable output was provided.", job_id=job_id
            )
        logger.debug(f"[replicate:content] downloading job_id={job_id} url={file_url}")
        # delivery URLs are pre-signed; no auth header
        return await self._http.get_bytes(file_url)
