# services/openai_service.py
from __future__ import annotations

import base64
import json
import re
import time
from typing import Any, Dict, Optional, Tuple, Type

import openai
from openai import OpenAI  # pip install openai>=1
from pydantic import BaseModel, ValidationError

from app.config import settings, require_openai
from app.core.logging import get_logger

logger = get_logger()

_JSON_HINT = (
    "Respond with exactly one valid JSON object, without explanation, "
    "without extra text, no markdown, no code fences."
)
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


def _pydantic_schema_dict(model: Type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema()  # pydantic v2


def _strip_markdown_fences(text: str) -> str:
    return _FENCE_RE.sub("", (text or "").strip())


def _extract_first_json(text: str) -> str:
    """
    Robuuste parser: pak het eerste {...}-blok en verwijder trailing commas.
    """
    text = _strip_markdown_fences(text)
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    candidate = m.group(0) if m else text.strip()
    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)  # trailing commas weg
    return candidate.strip()


def _to_jsonable(obj: Any) -> Any:
    """
    Zet OpenAI SDK objecten (bv. usage) om naar JSON-serialiseerbare dicts.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(x) for x in obj]
    if isinstance(obj, dict):
        return {k: _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, BaseModel):
        return _to_jsonable(obj.model_dump())
    return str(obj)


def image_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class OpenAIService:
    """
    JSON-gedwongen vision-service met Pydantic-validatie en structlog-logging.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        max_retries: int = 0,
        timeout_s: Optional[int] = None,
        client: Optional[OpenAI] = None,
    ):
        self.model = model or settings.OPENAI_VISION_MODEL
        self.max_retries = max_retries
        self.timeout_s = timeout_s or settings.EVENT_HTTP_TIMEOUT_S
        if client is None:
            require_openai()
            client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=self.timeout_s)
        self.client = client

    def _build_messages(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Dict[str, Any],
        image_url: str,
    ) -> list[dict]:
        schema_hint = json.dumps(schema, ensure_ascii=False)
        system = (
            f"{system_prompt}\n\n{_JSON_HINT}\n"
            f"The JSON must match this JSON Schema (Pydantic):\n{schema_hint}"
        )
        return [
            {"role": "system", "content": system},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": f"{user_prompt}\n\n{_JSON_HINT}"},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ]

    def generate_vision_json(
        self,
        system_prompt: str,
        user_prompt: str,
        image_bytes: bytes,
        response_model: Type[BaseModel],
        mime_type: str = "image/jpeg",
        action_type: str = "events.extract_from_image",
    ) -> Tuple[BaseModel, Dict[str, Any]]:
        """
        Returns: (parsed_model_instance, meta_dict)

        Raises RuntimeError once the retry budget is spent.
        """
        schema = _pydantic_schema_dict(response_model)
        messages = self._build_messages(
            system_prompt, user_prompt, schema, image_data_url(image_bytes, mime_type)
        )

        last_err: Optional[Exception] = None
        t0 = time.perf_counter()

        for attempt in range(self.max_retries + 1):
            try:
                completion = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.2,
                    response_format={"type": "json_object"},
                    timeout=self.timeout_s,
                )
                raw_text = completion.choices[0].message.content or ""
                usage_plain = _to_jsonable(getattr(completion, "usage", None))

                data = json.loads(_extract_first_json(raw_text))
                parsed = response_model.model_validate(data)

                duration_ms = int((time.perf_counter() - t0) * 1000)
                logger.info(
                    "openai_call_succeeded",
                    action_type=action_type,
                    model=self.model,
                    attempt=attempt,
                    usage=usage_plain,
                    duration_ms=duration_ms,
                )
                return parsed, {
                    "ok": True,
                    "model": self.model,
                    "raw_text": raw_text,
                    "usage": usage_plain,
                    "duration_ms": duration_ms,
                }

            except (ValidationError, json.JSONDecodeError) as e:
                last_err = e
                if attempt < self.max_retries:
                    time.sleep(0.7 * (2 ** attempt))
                continue

            except openai.OpenAIError as e:
                last_err = e
                if attempt < self.max_retries:
                    time.sleep(0.9 * (2 ** attempt))
                continue

        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.warning(
            "openai_call_failed",
            action_type=action_type,
            model=self.model,
            error=str(last_err),
            duration_ms=duration_ms,
        )
        raise RuntimeError(f"OpenAIService failed after retries: {last_err}")
