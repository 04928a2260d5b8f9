"""Provider-native status payloads as a tagged union.

Each provider adapter hands back its own payload shape. Parsing tags the
payload with the provider name so the normalizers can dispatch on a concrete
type instead of probing dictionaries.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from cutscene.core.exceptions import ValidationError


class OpenAIVideoError(BaseModel):
    code: Optional[str] = None
    message: Optional[str] = None


class OpenAIVideoStatus(BaseModel):
    """`video` object returned by the OpenAI videos API."""

    provider: Literal["openai"] = "openai"
    id: str
    status: str = "queued"
    progress: Any = None
    model: Optional[str] = None
    created_at: Optional[float] = None
    seconds: Optional[str] = None
    size: Optional[str] = None
    error: Optional[Union[OpenAIVideoError, str]] = None

    model_config = {"extra": "allow"}


class ReplicatePrediction(BaseModel):
    """Prediction object returned by the Replicate API."""

    provider: Literal["replicate"] = "replicate"
    id: str
    status: str = "starting"
    model: Optional[str] = None
    version: Optional[str] = None
    created_at: Optional[datetime] = None
    error: Optional[str] = None
    output: Any = None
    input: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


RawStatus = Annotated[
    Union[OpenAIVideoStatus, ReplicatePrediction], Field(discriminator="provider")
]

_raw_status_adapter: TypeAdapter[RawStatus] = TypeAdapter(RawStatus)


def parse_raw_status(provider: str, payload: Any) -> RawStatus:
    """Tag and validate a provider payload.

    Raises ValidationError when the payload is not an object or lacks an id.
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            f"Invalid {provider} payload: expected an object, got {type(payload).__name__}."
        )
    if not payload.get("id"):
        raise ValidationError(f"Invalid {provider} payload: missing job id.")
    # status may be explicitly null in some responses; fall back to defaults
    cleaned = {k: v for k, v in payload.items() if not (k == "status" and v is None)}
    cleaned["provider"] = provider
    try:
        return _raw_status_adapter.validate_python(cleaned)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {provider} payload received.", diagnostic=str(exc)
        ) from exc
