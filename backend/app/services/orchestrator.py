from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from pydantic import TypeAdapter, ValidationError

from app.schemas import (
    RESPONSE_SHAPES,
    ActivityListResult,
    AirQualityContext,
    GenerationResult,
    HealthAdvisoryResult,
    RequestKind,
    SummaryResult,
    TravelTipsResult,
    WeatherContext,
)
from app.services.fallbacks import synthesize_fallback
from app.services.generation_client import GenerationBackendError, QuotaExceededError
from app.services.prompt_builder import (
    MissingParametersError,
    build_prompt,
    build_travel_prompt,
    parse_travel_params,
    parse_weather_params,
)
from app.services.response_extractor import extract, is_unparsable


logger = logging.getLogger(__name__)

FAILURE_MESSAGES: dict[RequestKind, str] = {
    RequestKind.SUMMARY: "Failed to generate weather summary",
    RequestKind.ACTIVITY_LIST: "Failed to generate activity recommendations",
    RequestKind.HEALTH_ADVISORY: "Failed to generate health advisory",
    RequestKind.TRAVEL_TIPS: "Failed to generate travel tips",
}

_RESULT_ADAPTER: TypeAdapter[GenerationResult] = TypeAdapter(GenerationResult)


class TextGenerator(Protocol):
    async def generate(self, model: str, prompt: str) -> str: ...


class ModelSource(Protocol):
    @property
    def current(self) -> str: ...


@dataclass(frozen=True)
class AdvisoryOutcome:
    status_code: int
    body: dict
    source: Literal["model", "fallback", "error"] = field(default="model", compare=False)


@dataclass
class AdvisoryOrchestrator:
    generator: TextGenerator
    selector: ModelSource

    async def handle(self, kind: RequestKind, raw_params: Any) -> AdvisoryOutcome:
        if kind is RequestKind.TRAVEL_TIPS:
            return await self._handle_travel_tips(raw_params)

        try:
            ctx, aqi = parse_weather_params(kind, raw_params if isinstance(raw_params, Mapping) else {})
            prompt = build_prompt(kind, ctx, aqi)
        except MissingParametersError as exc:
            return _error(400, str(exc))

        model = self.selector.current
        try:
            raw = await self.generator.generate(model, prompt)
        except QuotaExceededError:
            logger.warning("Quota exceeded on %s for %s; serving fallback content", model, kind.value)
            return self._fallback(kind, ctx, aqi)
        except GenerationBackendError as exc:
            logger.error("Generation failed on %s for %s: %s", model, kind.value, exc)
            return _error(500, FAILURE_MESSAGES[kind])

        result = _to_result(kind, raw)
        if result is None:
            logger.warning("Unparsable %s output from %s: %.200r", kind.value, model, raw)
            return self._fallback(kind, ctx, aqi)
        return AdvisoryOutcome(status_code=200, body=result.to_body(), source="model")

    async def _handle_travel_tips(self, raw_params: Any) -> AdvisoryOutcome:
        try:
            request = parse_travel_params(raw_params)
        except MissingParametersError as exc:
            return _error(400, str(exc))

        model = self.selector.current
        try:
            tips = await self.generator.generate(model, build_travel_prompt(request))
        except GenerationBackendError as exc:
            logger.error("Travel tips generation failed on %s: %s", model, exc)
            return _error(500, FAILURE_MESSAGES[RequestKind.TRAVEL_TIPS])

        return AdvisoryOutcome(status_code=200, body=TravelTipsResult(text=tips).to_body(), source="model")

    def _fallback(self, kind: RequestKind, ctx: WeatherContext, aqi: AirQualityContext | None) -> AdvisoryOutcome:
        result = synthesize_fallback(kind, ctx, aqi)
        return AdvisoryOutcome(status_code=200, body=result.to_body(), source="fallback")


def _to_result(
    kind: RequestKind, raw: str
) -> SummaryResult | ActivityListResult | HealthAdvisoryResult | TravelTipsResult | None:
    extracted = extract(raw, RESPONSE_SHAPES[kind])
    if is_unparsable(extracted):
        return None

    payload: dict[str, Any] = {"kind": kind}
    if kind in (RequestKind.SUMMARY, RequestKind.TRAVEL_TIPS):
        payload["text"] = extracted
    elif kind is RequestKind.ACTIVITY_LIST:
        payload["entries"] = extracted
    else:
        payload["sections"] = extracted

    try:
        return _RESULT_ADAPTER.validate_python(payload)
    except ValidationError:
        return None


def _error(status_code: int, message: str) -> AdvisoryOutcome:
    return AdvisoryOutcome(status_code=status_code, body={"error": message}, source="error")
