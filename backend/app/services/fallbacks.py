from __future__ import annotations

from app.schemas import (
    ADVISORY_SECTION_TITLES,
    ActivityEntry,
    ActivityListResult,
    AdvisorySection,
    AirQualityContext,
    HealthAdvisory,
    HealthAdvisoryResult,
    RequestKind,
    SummaryResult,
    WeatherContext,
)
from app.services.prompt_builder import format_number


RESTRICTED_AQI_THRESHOLD = 150
STRENUOUS_AQI_THRESHOLD = 100

# Same five entries regardless of weather conditions.
FALLBACK_ACTIVITIES: tuple[dict[str, str], ...] = (
    {
        "activity": "Walking",
        "reason": "Simple and healthy outdoor activity",
        "duration": "30-45 minutes",
        "precautions": "Dress appropriately for temperature",
    },
    {
        "activity": "Jogging",
        "reason": "Great for fitness and fresh air",
        "duration": "30-45 minutes",
        "precautions": "Warm up before and cool down after",
    },
    {
        "activity": "Photography",
        "reason": "Capture the weather and scenery",
        "duration": "1-2 hours",
        "precautions": "Protect equipment from weather elements",
    },
    {
        "activity": "Outdoor Meditation",
        "reason": "Peaceful and relaxing",
        "duration": "20-30 minutes",
        "precautions": "Find a comfortable spot away from traffic",
    },
    {
        "activity": "Casual Sports",
        "reason": "Basketball, tennis, or football",
        "duration": "45-60 minutes",
        "precautions": "Stay hydrated and use proper equipment",
    },
)


def synthesize_fallback(
    kind: RequestKind, ctx: WeatherContext, aqi: AirQualityContext | None = None
) -> SummaryResult | ActivityListResult | HealthAdvisoryResult:
    """
    Build deterministic content for a request kind without calling the model.

    Output depends only on the arguments, so repeated calls with the same
    contexts yield identical results. Travel tips have no fallback.
    """
    if kind is RequestKind.SUMMARY:
        return SummaryResult(text=_fallback_summary(ctx, aqi))
    if kind is RequestKind.ACTIVITY_LIST:
        return ActivityListResult(entries=[ActivityEntry(**entry) for entry in FALLBACK_ACTIVITIES])
    if kind is RequestKind.HEALTH_ADVISORY:
        return HealthAdvisoryResult(sections=_fallback_advisory(ctx, aqi))
    raise ValueError(f"No fallback content exists for request kind {kind.value}.")


def _fallback_summary(ctx: WeatherContext, aqi: AirQualityContext | None) -> str:
    summary = (
        f"In {ctx.city or 'your area'}, expect {ctx.condition} conditions with a temperature of "
        f"{format_number(ctx.temperature)}°C (feels like {format_number(ctx.feels_like)}°C). "
        f"With {format_number(ctx.humidity)}% humidity and wind speeds of {format_number(ctx.wind_speed)} m/s, "
        "dress appropriately for the conditions."
    )
    if aqi is not None:
        summary += (
            f" Air quality is {aqi.label} (AQI: {aqi.aqi}), so consider wearing a mask if you have "
            "respiratory issues and limit prolonged outdoor exposure."
        )
    return summary


def _fallback_advisory(ctx: WeatherContext, aqi: AirQualityContext | None) -> HealthAdvisory:
    has_aqi = aqi is not None
    aqi_value = aqi.aqi if aqi is not None else 0

    if aqi is not None:
        air_quality_points = [
            f"Air quality is {aqi.label} (AQI: {aqi.aqi}) - limit outdoor time",
            "Wear N95 mask if going outdoors",
            "Keep windows closed to reduce indoor pollution",
        ]
    else:
        air_quality_points = [
            "Current air quality is acceptable",
            "No mask needed for air quality",
            "Ensure good air circulation",
        ]

    points: dict[str, list[str]] = {
        "temperatureAlert": [
            f"At {format_number(ctx.temperature)}°C, wear appropriate layers",
            "Adjust activity level based on how you feel",
            "Stay in well-ventilated areas",
        ],
        "airQualityAlert": air_quality_points,
        "activityLevel": [
            (
                "Restricted - stay indoors or do light activities only"
                if has_aqi and aqi_value > RESTRICTED_AQI_THRESHOLD
                else "Moderate activity is safe"
            ),
            (
                "Avoid strenuous exercise outdoors"
                if has_aqi and aqi_value > STRENUOUS_AQI_THRESHOLD
                else "All activities are safe"
            ),
            "Plan indoor activities if air quality is poor",
        ],
        "vulnerableGroups": [
            "Elderly: Minimize outdoor exposure, stay indoors",
            "Children: Limit outdoor playtime during poor air quality",
            "Asthma sufferers: Keep inhalers accessible at all times",
        ],
        "protectionTips": [
            "Wear N95 mask outdoors" if has_aqi else "Use sunscreen",
            "Drink plenty of water",
            "Use air purifier indoors" if has_aqi else "Open windows for fresh air",
            "Avoid strenuous activities in poor conditions",
        ],
        "medicalAlert": [
            "Contact doctor if experiencing cough or difficulty breathing",
            "Seek immediate help for chest pain or severe symptoms",
            "Monitor children and elderly for health changes",
        ],
    }

    return HealthAdvisory(
        **{
            key: AdvisorySection(title=title, points=points[key])
            for key, title in ADVISORY_SECTION_TITLES.items()
        }
    )
