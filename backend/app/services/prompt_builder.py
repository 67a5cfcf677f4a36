from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from app.schemas import ADVISORY_SECTION_TITLES, AirQualityContext, RequestKind, TravelTipsRequest, WeatherContext


class MissingParametersError(ValueError):
    pass


class InvalidParameterError(MissingParametersError):
    pass


REQUIRED_WEATHER_PARAMS: dict[RequestKind, tuple[str, ...]] = {
    RequestKind.SUMMARY: ("city", "temp", "condition", "humidity", "windSpeed", "feelsLike"),
    RequestKind.ACTIVITY_LIST: ("temp", "condition", "windSpeed", "humidity"),
    RequestKind.HEALTH_ADVISORY: ("temp", "condition", "humidity", "windSpeed"),
}

SUMMARY_PROMPT_TEMPLATE = (
    "Generate a concise weather summary in this exact format:\n\n"
    "**Current Conditions:** [1 sentence describing the weather in {city}]\n\n"
    "**How It Feels:** [1 sentence about what to wear and comfort level]\n\n"
    "**Air Quality Impact:** {air_quality_instruction}\n\n"
    "**Quick Tip:** [1 practical safety or comfort tip]\n\n"
    "Data: {temp}°C (feels {feels_like}°C), {condition}, Humidity {humidity}%, Wind {wind} m/s{air_quality}"
)

ACTIVITY_PROMPT_TEMPLATE = (
    "Suggest 5 activities for Temperature {temp}°C, {condition}, Wind {wind} m/s, Humidity {humidity}%"
    "{air_quality}\n\n"
    "Return ONLY valid JSON array. Each object must have exactly these 4 properties:\n"
    "{entry_shape}\n\n"
    "Example format:\n"
    "{example}\n\n"
    "No markdown, no code blocks, only JSON array."
)

HEALTH_ADVISORY_PROMPT_TEMPLATE = (
    "Return ONLY a valid JSON object (no markdown, no code blocks, no extra text) "
    "with health and safety recommendations.\n\n"
    "Return this exact JSON structure with concise, actionable bullet points:\n"
    "{skeleton}\n\n"
    "Weather: {temp}°C, {condition}, Humidity {humidity}%, Wind {wind} m/s{air_quality}\n\n"
    "Requirements:\n"
    "- Each point must be 1 sentence max, starting with action verbs\n"
    "- No extra formatting, symbols, or asterisks\n"
    "- Make points practical and specific\n"
    "- Consider {condition_focus}conditions in recommendations"
)

TRAVEL_TIPS_PROMPT_TEMPLATE = (
    "Generate travel tips for {destination} based on this forecast data: {forecast}. "
    "Provide 3-4 practical travel recommendations."
)

# Per-kind air quality clauses; only rendered when AQI data accompanies the request.
AIR_QUALITY_CLAUSES: dict[RequestKind, str] = {
    RequestKind.SUMMARY: " | Air Quality Index (AQI): {aqi} ({label}).{particulates}",
    RequestKind.ACTIVITY_LIST: (
        "\nAir Quality Index (AQI): {aqi} ({label}). Consider indoor or low-exertion activities if AQI is high."
    ),
    RequestKind.HEALTH_ADVISORY: "\nAir Quality: AQI {aqi} ({label}){particulates}",
}

ACTIVITY_ENTRY_SHAPE = {
    "activity": "Activity Name",
    "reason": "Why it's suitable (mention AQI if relevant)",
    "duration": "30-45 minutes",
    "precautions": "Specific safety tip",
}

ACTIVITY_EXAMPLE = {
    "activity": "Walking",
    "reason": "Low-impact exercise suitable for current conditions",
    "duration": "30-45 min",
    "precautions": "Wear sunscreen",
}

ADVISORY_EXAMPLE_POINTS: dict[str, tuple[str, ...]] = {
    "temperatureAlert": ("specific advice for {temp}°C", "what to wear", "activity adjustment needed"),
    "airQualityAlert": (
        "N95 mask recommendation if AQI is high",
        "outdoor activity restriction level",
        "indoor air quality improvement",
    ),
    "activityLevel": (
        "Overall activity safety level (light/moderate/restricted)",
        "specific activities to avoid if any",
        "best time to go outdoors if applicable",
    ),
    "vulnerableGroups": (
        "Elderly: specific action",
        "Children: specific action",
        "Asthma/Respiratory conditions: specific action",
    ),
    "protectionTips": ("tip 1", "tip 2", "tip 3", "tip 4"),
    "medicalAlert": (
        "symptom 1 requiring attention",
        "symptom 2 requiring attention",
        "emergency warning signs",
    ),
}


def parse_weather_params(
    kind: RequestKind, raw: Mapping[str, Any]
) -> tuple[WeatherContext, AirQualityContext | None]:
    required = REQUIRED_WEATHER_PARAMS.get(kind)
    if required is None:
        raise ValueError(f"Request kind {kind.value} does not take weather parameters.")

    missing = [name for name in required if not _present(raw.get(name))]
    if missing:
        raise MissingParametersError(f"Missing required weather parameters: {', '.join(missing)}")

    context = WeatherContext(
        city=_text(raw.get("city")),
        temperature=_number(raw, "temp"),
        condition=str(raw["condition"]).strip(),
        humidity=_number(raw, "humidity"),
        wind_speed=_number(raw, "windSpeed"),
        feels_like=_optional_number(raw, "feelsLike"),
    )
    return context, parse_air_quality_params(raw)


def parse_air_quality_params(raw: Mapping[str, Any]) -> AirQualityContext | None:
    if not _present(raw.get("aqi")):
        return None

    aqi_value = _number(raw, "aqi")
    if not aqi_value.is_integer():
        raise InvalidParameterError("Invalid air quality parameter: aqi must be an integer")

    return AirQualityContext(
        aqi=int(aqi_value),
        label=_text(raw.get("aqiLabel")) or "Unknown",
        pm25=_lenient_number(raw, "pm25"),
        pm10=_lenient_number(raw, "pm10"),
    )


def parse_travel_params(raw: Any) -> TravelTipsRequest:
    if not isinstance(raw, Mapping):
        raise MissingParametersError("Missing destination or forecast data")
    try:
        return TravelTipsRequest.model_validate(dict(raw))
    except ValidationError as exc:
        raise MissingParametersError("Missing destination or forecast data") from exc


def build_prompt(kind: RequestKind, ctx: WeatherContext, aqi: AirQualityContext | None = None) -> str:
    values = {
        "temp": format_number(ctx.temperature),
        "condition": ctx.condition,
        "humidity": format_number(ctx.humidity),
        "wind": format_number(ctx.wind_speed),
        "air_quality": _air_quality_clause(kind, aqi),
    }

    if kind is RequestKind.SUMMARY:
        if not ctx.city or ctx.feels_like is None:
            raise MissingParametersError("Missing required weather parameters: city, feelsLike")
        if aqi is not None:
            air_quality_instruction = (
                f"[1 sentence about {aqi.label} air quality (AQI {aqi.aqi}) and outdoor recommendations]"
            )
        else:
            air_quality_instruction = "[1 sentence activity recommendation]"
        return SUMMARY_PROMPT_TEMPLATE.format(
            city=ctx.city,
            feels_like=format_number(ctx.feels_like),
            air_quality_instruction=air_quality_instruction,
            **values,
        )

    if kind is RequestKind.ACTIVITY_LIST:
        example = "[\n  " + json.dumps(ACTIVITY_EXAMPLE, ensure_ascii=False) + ",\n  ...\n]"
        return ACTIVITY_PROMPT_TEMPLATE.format(
            entry_shape=json.dumps(ACTIVITY_ENTRY_SHAPE, indent=2, ensure_ascii=False),
            example=example,
            **values,
        )

    if kind is RequestKind.HEALTH_ADVISORY:
        skeleton = {
            key: {
                "title": title,
                "points": [point.format(temp=values["temp"]) for point in ADVISORY_EXAMPLE_POINTS[key]],
            }
            for key, title in ADVISORY_SECTION_TITLES.items()
        }
        return HEALTH_ADVISORY_PROMPT_TEMPLATE.format(
            skeleton=json.dumps(skeleton, indent=2, ensure_ascii=False),
            condition_focus="high AQI " if aqi is not None else "",
            **values,
        )

    raise ValueError("Travel tips prompts are built with build_travel_prompt().")


def build_travel_prompt(request: TravelTipsRequest) -> str:
    return TRAVEL_TIPS_PROMPT_TEMPLATE.format(
        destination=(request.destination or "").strip(),
        forecast=json.dumps(request.forecastData, separators=(",", ":"), ensure_ascii=False),
    )


def format_number(value: float | int | None, fallback: str = "N/A") -> str:
    if value is None:
        return fallback
    numeric = float(value)
    if numeric.is_integer():
        return str(int(numeric))
    return str(numeric)


def _air_quality_clause(kind: RequestKind, aqi: AirQualityContext | None) -> str:
    if aqi is None:
        return ""
    template = AIR_QUALITY_CLAUSES.get(kind, "")
    return template.format(aqi=aqi.aqi, label=aqi.label, particulates=_particulates(kind, aqi))


def _particulates(kind: RequestKind, aqi: AirQualityContext) -> str:
    parts = []
    if aqi.pm25 is not None:
        parts.append(f"PM2.5: {format_number(aqi.pm25)} µg/m³")
    if aqi.pm10 is not None:
        parts.append(f"PM10: {format_number(aqi.pm10)} µg/m³")
    if not parts:
        return ""
    if kind is RequestKind.HEALTH_ADVISORY:
        return " - " + ", ".join(parts)
    return " " + ", ".join(parts) + "."


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _text(value: Any) -> str | None:
    if not _present(value):
        return None
    return str(value).strip()


def _number(raw: Mapping[str, Any], name: str) -> float:
    value = raw.get(name)
    try:
        numeric = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"Invalid numeric weather parameter: {name}") from exc
    if numeric != numeric or numeric in (float("inf"), float("-inf")):
        raise InvalidParameterError(f"Invalid numeric weather parameter: {name}")
    return numeric


def _optional_number(raw: Mapping[str, Any], name: str) -> float | None:
    if not _present(raw.get(name)):
        return None
    return _number(raw, name)


def _lenient_number(raw: Mapping[str, Any], name: str) -> float | None:
    # Unparsable readings are dropped rather than failing the request.
    try:
        return _optional_number(raw, name)
    except InvalidParameterError:
        return None
