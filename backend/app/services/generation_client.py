from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import Settings


logger = logging.getLogger(__name__)

QUOTA_EXCEEDED_STATUS = 429
TEXT_GENERATION_METHOD = "generateContent"
MODEL_PAGE_SIZE = 100
MAX_MODEL_PAGES = 10


class GenerationBackendError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(GenerationBackendError):
    pass


@dataclass
class GenerationClient:
    """Thin async wrapper around the Gemini REST API."""

    settings: Settings
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.settings.gemini_base_url,
            timeout=self.settings.request_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.settings.gemini_api_key)

    async def close(self) -> None:
        await self._client.aclose()

    async def list_models(self) -> list[dict]:
        descriptors: list[dict] = []
        page_token = ""
        for _ in range(MAX_MODEL_PAGES):
            params: dict[str, Any] = {"pageSize": MODEL_PAGE_SIZE}
            if page_token:
                params["pageToken"] = page_token
            payload = await self._request_json("GET", "/models", params=params)
            if not isinstance(payload, dict):
                break
            models = payload.get("models", [])
            if isinstance(models, list):
                descriptors.extend(item for item in models if isinstance(item, dict))
            page_token = str(payload.get("nextPageToken") or "")
            if not page_token:
                break
        return descriptors

    async def generate(self, model: str, prompt: str) -> str:
        logger.debug("Requesting generation from %s (%d prompt chars)", model, len(prompt))
        payload = await self._request_json(
            "POST",
            f"/models/{model}:{TEXT_GENERATION_METHOD}",
            json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
        )
        text = _candidate_text(payload)
        if text is None:
            raise GenerationBackendError(f"Model {model} returned no candidate text.")
        return text

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if not self.configured:
            raise GenerationBackendError("Generation backend API key is not configured.")

        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"x-goog-api-key": self.settings.gemini_api_key},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == QUOTA_EXCEEDED_STATUS:
                raise QuotaExceededError("Generation backend quota exceeded.", status_code) from exc
            raise GenerationBackendError(
                f"Generation backend returned HTTP {status_code}.", status_code
            ) from exc
        except httpx.RequestError as exc:
            raise GenerationBackendError(f"Generation backend unreachable: {exc}") from exc
        except ValueError as exc:
            raise GenerationBackendError("Generation backend returned a non-JSON payload.") from exc


def supports_text_generation(descriptor: dict) -> bool:
    methods = descriptor.get("supportedGenerationMethods", [])
    return isinstance(methods, list) and TEXT_GENERATION_METHOD in methods


def short_model_name(name: str) -> str:
    return name.rsplit("/", 1)[-1]


def _candidate_text(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates", [])
    if not isinstance(candidates, list) or not candidates:
        return None

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content", {}) if isinstance(first.get("content"), dict) else {}
    parts = content.get("parts", [])
    if not isinstance(parts, list):
        return None

    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    if not texts:
        return None
    return "".join(texts)
