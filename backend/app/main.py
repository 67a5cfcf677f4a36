from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.schemas import RequestKind
from app.services.backend_selector import BackendSelector
from app.services.generation_client import GenerationClient
from app.services.orchestrator import AdvisoryOrchestrator, AdvisoryOutcome
from app.services.weather_client import WeatherClient


settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

generation_client = GenerationClient(settings=settings)
backend_selector = BackendSelector(client=generation_client, default_model=settings.gemini_default_model)
orchestrator = AdvisoryOrchestrator(generator=generation_client, selector=backend_selector)
weather_client = WeatherClient(settings=settings)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event() -> None:
    backend_selector.start()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await backend_selector.stop()
    await generation_client.close()
    await weather_client.close()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(error.get("loc", ("", ""))[-1]) for error in exc.errors()})
    return JSONResponse(status_code=400, content={"error": f"Invalid request parameters: {', '.join(fields)}"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/weather")
async def current_weather(
    lat: float = Query(ge=-90, le=90),
    lon: float = Query(ge=-180, le=180),
    units: str = Query(default="metric", max_length=10),
):
    try:
        return await weather_client.fetch_current_weather(latitude=lat, longitude=lon, units=units)
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Weather API error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch weather data"})


@app.get("/api/ai/backend")
async def active_backend() -> dict:
    return {"model": backend_selector.current, "resolved": backend_selector.resolved}


@app.get("/api/ai/summary")
async def weather_summary(
    city: str | None = Query(default=None, max_length=120),
    temp: str | None = Query(default=None),
    condition: str | None = Query(default=None, max_length=120),
    humidity: str | None = Query(default=None),
    wind_speed: str | None = Query(default=None, alias="windSpeed"),
    feels_like: str | None = Query(default=None, alias="feelsLike"),
    aqi: str | None = Query(default=None),
    aqi_label: str | None = Query(default=None, alias="aqiLabel", max_length=60),
    pm25: str | None = Query(default=None),
    pm10: str | None = Query(default=None),
) -> JSONResponse:
    outcome = await orchestrator.handle(
        RequestKind.SUMMARY,
        {
            "city": city,
            "temp": temp,
            "condition": condition,
            "humidity": humidity,
            "windSpeed": wind_speed,
            "feelsLike": feels_like,
            "aqi": aqi,
            "aqiLabel": aqi_label,
            "pm25": pm25,
            "pm10": pm10,
        },
    )
    return _respond(outcome)


@app.get("/api/ai/activities")
async def activity_recommendations(
    temp: str | None = Query(default=None),
    condition: str | None = Query(default=None, max_length=120),
    wind_speed: str | None = Query(default=None, alias="windSpeed"),
    humidity: str | None = Query(default=None),
    aqi: str | None = Query(default=None),
    aqi_label: str | None = Query(default=None, alias="aqiLabel", max_length=60),
) -> JSONResponse:
    outcome = await orchestrator.handle(
        RequestKind.ACTIVITY_LIST,
        {
            "temp": temp,
            "condition": condition,
            "windSpeed": wind_speed,
            "humidity": humidity,
            "aqi": aqi,
            "aqiLabel": aqi_label,
        },
    )
    return _respond(outcome)


@app.get("/api/ai/health-advisory")
async def health_advisory(
    temp: str | None = Query(default=None),
    condition: str | None = Query(default=None, max_length=120),
    humidity: str | None = Query(default=None),
    wind_speed: str | None = Query(default=None, alias="windSpeed"),
    aqi: str | None = Query(default=None),
    aqi_label: str | None = Query(default=None, alias="aqiLabel", max_length=60),
    pm25: str | None = Query(default=None),
    pm10: str | None = Query(default=None),
) -> JSONResponse:
    outcome = await orchestrator.handle(
        RequestKind.HEALTH_ADVISORY,
        {
            "temp": temp,
            "condition": condition,
            "humidity": humidity,
            "windSpeed": wind_speed,
            "aqi": aqi,
            "aqiLabel": aqi_label,
            "pm25": pm25,
            "pm10": pm10,
        },
    )
    return _respond(outcome)


@app.post("/api/ai/travel-tips")
async def travel_tips(request: Request) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    outcome = await orchestrator.handle(RequestKind.TRAVEL_TIPS, payload)
    return _respond(outcome)


def _respond(outcome: AdvisoryOutcome) -> JSONResponse:
    if outcome.source == "fallback":
        logger.info("Responding with fallback content (HTTP %d)", outcome.status_code)
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)
