"""Vision-model image annotation (description, tags, dominant colors).

The annotator degrades in tiers:

    no credential configured   -> fixed mock annotation        (source=mock)
    model reply with JSON      -> validated model annotation   (source=model)
    model reply without JSON   -> raw-text degraded annotation (source=model)
    call failed / non-2xx      -> UpstreamError; callers substitute
                                  FAILURE_ANNOTATION            (source=fallback)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError, field_validator

from pixtag.color import normalize_hex_color
from pixtag.errors import InvalidColor, ParseError, UpstreamError
from pixtag.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class AnnotationSource(str, Enum):
    """Which tier produced an annotation. Diagnostic only, never persisted."""

    MOCK = "mock"
    MODEL = "model"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AnnotationResult:
    description: str
    tags: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    source: AnnotationSource = AnnotationSource.MODEL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "tags": list(self.tags),
            "colors": list(self.colors),
            "source": self.source.value,
        }


MOCK_ANNOTATION = AnnotationResult(
    description="A beautiful landscape with mountains and trees",
    tags=["landscape", "mountain", "nature", "outdoor", "scenic", "tree", "sky", "green"],
    colors=["#4A90E2", "#7ED321", "#F5A623"],
    source=AnnotationSource.MOCK,
)

FAILURE_ANNOTATION = AnnotationResult(
    description="Image analysis failed - using fallback description",
    tags=["image", "photo", "picture"],
    colors=["#808080"],
    source=AnnotationSource.FALLBACK,
)

PARSE_FALLBACK_TAGS = ["image", "photo"]
PLACEHOLDER_DESCRIPTION = "No description available"
PARSE_FALLBACK_COLORS = ["#808080", "#A0A0A0", "#606060"]

ANNOTATION_PROMPT = """Analyze this image and provide:
1. A one-sentence description
2. 5-10 relevant tags (comma-separated)
3. Top 3 dominant colors as hex codes (comma-separated)

Format your response as JSON:
{
  "description": "one sentence description",
  "tags": ["tag1", "tag2", ...],
  "colors": ["#RRGGBB", "#RRGGBB", "#RRGGBB"]
}"""


class VisionPayload(BaseModel):
    """Shape of the JSON object the model is asked to return."""

    description: Optional[str] = None
    tags: List[str] = []
    colors: List[str] = []

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = " ".join(str(value).split())
        return text or None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("tags must be a list of strings")
        tags: List[str] = []
        for item in value:
            if item is None:
                continue
            tag = str(item).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("colors", mode="before")
    @classmethod
    def _clean_colors(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("colors must be a list of hex strings")
        colors: List[str] = []
        for item in value:
            try:
                color = normalize_hex_color(str(item))
            except InvalidColor:
                continue
            if color not in colors:
                colors.append(color)
        return colors


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first balanced top-level JSON object embedded in ``text``.

    Each ``{`` is tried in order; the first position that decodes to a JSON
    object wins. Surrounding prose and code fences are ignored.
    """
    decoder = json.JSONDecoder()
    index = text.find("{")
    while index != -1:
        try:
            value, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        index = text.find("{", index + 1)
    raise ParseError("No JSON object found in response")


def degraded_annotation(raw_text: str, max_length: int = 200) -> AnnotationResult:
    """Annotation built from unparseable model text."""
    return AnnotationResult(
        description=raw_text.strip()[:max_length],
        tags=list(PARSE_FALLBACK_TAGS),
        colors=list(PARSE_FALLBACK_COLORS),
        source=AnnotationSource.MODEL,
    )


def parse_annotation_text(raw_text: str, max_length: int = 200) -> AnnotationResult:
    """Turn model reply text into an annotation, degrading when it holds no usable JSON."""
    try:
        payload = VisionPayload.model_validate(extract_json_object(raw_text))
    except (ParseError, ValidationError) as exc:
        logger.warning("Vision response not parseable, using raw text: %s", exc)
        return degraded_annotation(raw_text, max_length=max_length)

    # Fill gaps so a completed annotation is never empty.
    return AnnotationResult(
        description=payload.description or raw_text.strip()[:max_length],
        tags=payload.tags or list(PARSE_FALLBACK_TAGS),
        colors=payload.colors or list(PARSE_FALLBACK_COLORS),
        source=AnnotationSource.MODEL,
    )


class VisionAnnotator:
    """Annotate images through an OpenAI-compatible chat-completions endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = "gpt-4o",
        api_url: str = "https://api.openai.com/v1/chat/completions",
        max_tokens: int = 500,
        timeout: float = 60.0,
        description_fallback_length: int = 200,
        http_client: Optional[httpx.Client] = None,
    ):
        self.api_key = (api_key or "").strip() or None
        self.model = model
        self.api_url = api_url
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.description_fallback_length = description_fallback_length
        self._http_client = http_client

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, http_client: Optional[httpx.Client] = None) -> "VisionAnnotator":
        config = config or default_settings
        return cls(
            api_key=config.openai_api_key,
            model=config.vision_model,
            api_url=config.vision_api_url,
            max_tokens=config.vision_max_tokens,
            timeout=config.vision_timeout_seconds,
            description_fallback_length=config.description_fallback_length,
            http_client=http_client,
        )

    @property
    def mock_mode(self) -> bool:
        return self.api_key is None

    def build_request(self, image_url: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANNOTATION_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            "max_tokens": self.max_tokens,
        }

    def annotate(self, image_url: str) -> AnnotationResult:
        """Annotate the image at a publicly resolvable URL.

        Raises:
            UpstreamError: transport failure, timeout, non-success status or a
                reply without message content
        """
        if self.mock_mode:
            logger.info("No vision credential configured; returning mock annotation")
            return MOCK_ANNOTATION

        content = self._request_content(image_url)
        return parse_annotation_text(content, max_length=self.description_fallback_length)

    def _request_content(self, image_url: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = self.build_request(image_url)

        try:
            if self._http_client is not None:
                response = self._http_client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Vision request failed: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Vision API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError(f"Vision response missing content: {exc}", status_code=response.status_code) from exc

        if not isinstance(content, str) or not content.strip():
            raise UpstreamError("Vision response missing content", status_code=response.status_code)
        return content
