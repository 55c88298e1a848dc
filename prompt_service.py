"""External prompt services: image analysis, free-text parsing and optimization.

Each backend returns ``PromptSection`` values. Responses that are not a JSON
object carrying every schema key as a string are rejected outright.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, Protocol, Tuple, Type

import httpx
from google import genai
from google.genai import types
from openai import OpenAI

from errors import AnalysisError, ConfigurationError, ExternalServiceError
from image_utils import ImagePayload
from prompt_schema import PROMPT_FIELDS, WIRE_NAMES, PromptSection
from prompts_lib import (
    analyze_image_instruction,
    optimize_prompt_request,
    parse_prompt_instruction,
    parse_prompt_request,
)

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"
DEFAULT_OPENAI_MODEL = "gpt-4.1-2025-04-14"
DEFAULT_GROK_MODEL = "grok-4"
GROK_BASE_URL = "https://api.x.ai/v1"

SUPPORTED_SERVICES = ("gemini", "openai", "grok")


class PromptService(Protocol):
    def analyze_image(self, image: ImagePayload) -> PromptSection:
        ...

    def parse_free_text(self, raw_text: str) -> Tuple[PromptSection, str]:
        ...

    def optimize(self, section: PromptSection) -> PromptSection:
        ...


_JSON_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


def decode_json_response(
    text: Optional[str], error_cls: Type[ExternalServiceError] = ExternalServiceError
) -> Dict[str, Any]:
    """Decode a response body that must be one JSON object.

    A single surrounding Markdown fence is allowed; nothing else is salvaged.
    """

    if not text or not text.strip():
        raise error_cls("The prompt service returned an empty response.")
    body = text.strip()
    fence = _JSON_FENCE.match(body)
    if fence:
        body = fence.group(1)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise error_cls(f"The prompt service returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise error_cls("The prompt service returned JSON that is not an object.")
    return data


def section_from_response(
    data: Any, error_cls: Type[ExternalServiceError] = ExternalServiceError
) -> PromptSection:
    if not isinstance(data, dict):
        raise error_cls("The prompt service returned a malformed prompt.")
    missing = [wire for wire in WIRE_NAMES if not isinstance(data.get(wire), str)]
    if missing:
        raise error_cls(f"The prompt service response is missing fields: {', '.join(missing)}")
    return PromptSection(**{attr: data[wire] for attr, wire in PROMPT_FIELDS})


def parse_result_from_response(
    data: Dict[str, Any], error_cls: Type[ExternalServiceError] = ExternalServiceError
) -> Tuple[PromptSection, str]:
    title = data.get("title")
    if not isinstance(title, str):
        raise error_cls("The prompt service response is missing a title.")
    return section_from_response(data.get("prompt"), error_cls), title.strip()


def _section_schema() -> types.Schema:
    return types.Schema(
        type=types.Type.OBJECT,
        properties={wire: types.Schema(type=types.Type.STRING) for wire in WIRE_NAMES},
        required=list(WIRE_NAMES),
    )


class GeminiPromptService:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        client: Optional[Any] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _generate(
        self,
        contents: Any,
        config: types.GenerateContentConfig,
        error_cls: Type[ExternalServiceError],
    ) -> Dict[str, Any]:
        try:
            response = self._get_client().models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except Exception as exc:
            raise error_cls(f"Gemini API error: {exc}") from exc
        return decode_json_response(getattr(response, "text", None), error_cls)

    def analyze_image(self, image: ImagePayload) -> PromptSection:
        data = self._generate(
            [
                types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
                analyze_image_instruction,
            ],
            types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_section_schema(),
            ),
            AnalysisError,
        )
        return section_from_response(data, AnalysisError)

    def parse_free_text(self, raw_text: str) -> Tuple[PromptSection, str]:
        schema = types.Schema(
            type=types.Type.OBJECT,
            properties={
                "title": types.Schema(
                    type=types.Type.STRING,
                    description="A creative and relevant title for the template.",
                ),
                "prompt": _section_schema(),
            },
            required=["title", "prompt"],
        )
        data = self._generate(
            parse_prompt_request.format(raw_prompt=raw_text),
            types.GenerateContentConfig(
                system_instruction=parse_prompt_instruction,
                response_mime_type="application/json",
                response_schema=schema,
            ),
            ExternalServiceError,
        )
        return parse_result_from_response(data)

    def optimize(self, section: PromptSection) -> PromptSection:
        current = json.dumps(section.to_payload(), ensure_ascii=False)
        data = self._generate(
            optimize_prompt_request.format(current_prompt=current),
            types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=_section_schema(),
            ),
            ExternalServiceError,
        )
        return section_from_response(data)


class OpenAIPromptService:
    """Responses API backend, used for OpenAI and for Grok via the x.ai endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        base_url: Optional[str] = None,
        label: str = "OpenAI",
        client: Optional[Any] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.label = label
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            kwargs: Dict[str, Any] = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
                kwargs["timeout"] = httpx.Timeout(3600.0)
            self._client = OpenAI(**kwargs)
        return self._client

    def _respond(self, messages: list, error_cls: Type[ExternalServiceError]) -> Dict[str, Any]:
        try:
            response = self._get_client().responses.create(model=self.model, input=messages)
        except Exception as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            status_line = f" HTTP {status_code}" if status_code else ""
            raise error_cls(f"{self.label} API error{status_line}: {exc}") from exc
        return decode_json_response(getattr(response, "output_text", None), error_cls)

    def analyze_image(self, image: ImagePayload) -> PromptSection:
        data = self._respond(
            [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": analyze_image_instruction},
                        {"type": "input_image", "image_url": image.data_url, "detail": "high"},
                    ],
                }
            ],
            AnalysisError,
        )
        return section_from_response(data, AnalysisError)

    def parse_free_text(self, raw_text: str) -> Tuple[PromptSection, str]:
        data = self._respond(
            [
                {"role": "system", "content": parse_prompt_instruction},
                {"role": "user", "content": parse_prompt_request.format(raw_prompt=raw_text)},
            ],
            ExternalServiceError,
        )
        return parse_result_from_response(data)

    def optimize(self, section: PromptSection) -> PromptSection:
        current = json.dumps(section.to_payload(), ensure_ascii=False)
        data = self._respond(
            [{"role": "user", "content": optimize_prompt_request.format(current_prompt=current)}],
            ExternalServiceError,
        )
        return section_from_response(data)


def _normalize_service(value: Optional[str]) -> str:
    key = (value or "").strip().lower()
    if key in {"openai", "gpt"}:
        return "openai"
    if key in {"grok", "xai", "x.ai"}:
        return "grok"
    return "gemini"


def build_prompt_service(
    service: Optional[str],
    api_key: str,
    models: Optional[Dict[str, str]] = None,
) -> PromptService:
    service = _normalize_service(service)
    if not api_key:
        raise ConfigurationError(f"Missing API key for the {service} service. Add it in Settings.")
    models = models or {}

    logger.debug("Building %s prompt service", service)
    if service == "openai":
        return OpenAIPromptService(api_key, model=models.get("openai") or DEFAULT_OPENAI_MODEL)
    if service == "grok":
        return OpenAIPromptService(
            api_key,
            model=models.get("grok") or DEFAULT_GROK_MODEL,
            base_url=GROK_BASE_URL,
            label="Grok",
        )
    return GeminiPromptService(api_key, model=models.get("gemini") or DEFAULT_GEMINI_MODEL)
