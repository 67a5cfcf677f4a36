import json

import pytest
from fastapi.testclient import TestClient

from app import main as main_module
from app.schemas import RequestKind
from app.services.fallbacks import synthesize_fallback
from app.services.generation_client import GenerationBackendError, QuotaExceededError
from app.services.orchestrator import AdvisoryOrchestrator
from app.services.prompt_builder import parse_weather_params


SUMMARY_PARAMS = {
    "city": "Hanoi",
    "temp": "32",
    "condition": "Haze",
    "humidity": "70",
    "windSpeed": "3",
    "feelsLike": "36",
    "aqi": "180",
    "aqiLabel": "Unhealthy",
    "pm25": "90",
    "pm10": "120",
}
ACTIVITY_PARAMS = {"temp": "24", "condition": "Clear", "windSpeed": "4", "humidity": "50"}
ADVISORY_PARAMS = {"temp": "24", "condition": "Clear", "humidity": "50", "windSpeed": "4"}
TRAVEL_BODY = {"destination": "Lisbon", "forecastData": {"list": [{"dt_txt": "2026-10-20", "temp": 21}]}}

ADVISORY_JSON = {
    key: {"title": key, "points": ["Stay hydrated"]}
    for key in (
        "temperatureAlert",
        "airQualityAlert",
        "activityLevel",
        "vulnerableGroups",
        "protectionTips",
        "medicalAlert",
    )
}


class _RecordingGenerator:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def generate(self, model: str, prompt: str) -> str:
        self.calls.append((model, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class _FixedSelector:
    current = "gemini-test"
    resolved = True


def _client(monkeypatch, generator: _RecordingGenerator) -> TestClient:  # noqa: ANN001
    monkeypatch.setattr(
        main_module,
        "orchestrator",
        AdvisoryOrchestrator(generator=generator, selector=_FixedSelector()),
    )
    return TestClient(main_module.app)


@pytest.mark.parametrize(
    ("path", "params", "dropped"),
    [
        ("/api/ai/summary", SUMMARY_PARAMS, "city"),
        ("/api/ai/summary", SUMMARY_PARAMS, "feelsLike"),
        ("/api/ai/activities", ACTIVITY_PARAMS, "condition"),
        ("/api/ai/health-advisory", ADVISORY_PARAMS, "temp"),
    ],
)
def test_missing_weather_parameter_returns_400_without_backend_call(monkeypatch, path, params, dropped) -> None:  # noqa: ANN001
    generator = _RecordingGenerator(reply="unused")
    client = _client(monkeypatch, generator)

    response = client.get(path, params={key: value for key, value in params.items() if key != dropped})

    assert response.status_code == 400
    assert dropped in response.json()["error"]
    assert generator.calls == []


def test_missing_travel_inputs_return_400_without_backend_call(monkeypatch) -> None:
    generator = _RecordingGenerator(reply="unused")
    client = _client(monkeypatch, generator)

    response = client.post("/api/ai/travel-tips", json={"destination": "Lisbon"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing destination or forecast data"}

    response = client.post("/api/ai/travel-tips", content=b"not json", headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert generator.calls == []


def test_summary_returns_model_text_using_resolved_backend(monkeypatch) -> None:
    generator = _RecordingGenerator(reply="**Current Conditions:** Hazy and hot in Hanoi.")
    client = _client(monkeypatch, generator)

    response = client.get("/api/ai/summary", params=SUMMARY_PARAMS)

    assert response.status_code == 200
    assert response.json() == {"summary": "**Current Conditions:** Hazy and hot in Hanoi."}
    model, prompt = generator.calls[0]
    assert model == "gemini-test"
    assert "Unhealthy" in prompt


@pytest.mark.parametrize(
    ("path", "params", "key"),
    [
        ("/api/ai/summary", SUMMARY_PARAMS, "summary"),
        ("/api/ai/activities", ACTIVITY_PARAMS, "activities"),
        ("/api/ai/health-advisory", ADVISORY_PARAMS, "advisory"),
    ],
)
def test_quota_exceeded_serves_fallback_with_200(monkeypatch, path, params, key) -> None:  # noqa: ANN001
    generator = _RecordingGenerator(error=QuotaExceededError("quota", 429))
    client = _client(monkeypatch, generator)

    response = client.get(path, params=params)

    assert response.status_code == 200
    payload = response.json()
    assert list(payload) == [key]
    if key == "activities":
        assert len(payload[key]) == 5
    if key == "advisory":
        assert len(payload[key]) == 6
    if key == "summary":
        assert payload[key].startswith("In Hanoi")


@pytest.mark.parametrize("path", ["/api/ai/summary", "/api/ai/activities", "/api/ai/health-advisory"])
def test_other_backend_failures_return_500(monkeypatch, path) -> None:  # noqa: ANN001
    generator = _RecordingGenerator(error=GenerationBackendError("down", 503))
    client = _client(monkeypatch, generator)
    params = {
        "/api/ai/summary": SUMMARY_PARAMS,
        "/api/ai/activities": ACTIVITY_PARAMS,
        "/api/ai/health-advisory": ADVISORY_PARAMS,
    }[path]

    response = client.get(path, params=params)

    assert response.status_code == 500
    assert response.json()["error"].startswith("Failed to generate")


@pytest.mark.parametrize("fence", ["```json\n", "```\n"])
def test_fenced_activity_json_is_extracted(monkeypatch, fence) -> None:  # noqa: ANN001
    entries = [
        {"activity": "Rowing", "reason": "Calm wind", "duration": "1 hour", "precautions": "Wear a life jacket"},
    ]
    generator = _RecordingGenerator(reply=f"{fence}{json.dumps(entries)}\n```")
    client = _client(monkeypatch, generator)

    response = client.get("/api/ai/activities", params=ACTIVITY_PARAMS)

    assert response.status_code == 200
    assert response.json() == {"activities": entries}
    assert "```" not in response.text


def test_fenced_advisory_json_is_extracted(monkeypatch) -> None:
    generator = _RecordingGenerator(reply=f"```json\n{json.dumps(ADVISORY_JSON)}\n```")
    client = _client(monkeypatch, generator)

    response = client.get("/api/ai/health-advisory", params=ADVISORY_PARAMS)

    assert response.status_code == 200
    assert response.json() == {"advisory": ADVISORY_JSON}


@pytest.mark.parametrize(
    ("path", "kind", "params", "reply"),
    [
        ("/api/ai/activities", RequestKind.ACTIVITY_LIST, ACTIVITY_PARAMS, '[{"activity": "Walking",'),
        ("/api/ai/activities", RequestKind.ACTIVITY_LIST, ACTIVITY_PARAMS, '{"activity": "Walking"}'),
        ("/api/ai/activities", RequestKind.ACTIVITY_LIST, ACTIVITY_PARAMS, '[{"activity": "Walking"}]'),
        ("/api/ai/health-advisory", RequestKind.HEALTH_ADVISORY, ADVISORY_PARAMS, "Sure! Here is your advisory."),
        (
            "/api/ai/health-advisory",
            RequestKind.HEALTH_ADVISORY,
            ADVISORY_PARAMS,
            '{"temperatureAlert": {"title": "Heat"}}',
        ),
    ],
)
def test_unusable_json_falls_back_deterministically(monkeypatch, path, kind, params, reply) -> None:  # noqa: ANN001
    client = _client(monkeypatch, _RecordingGenerator(reply=reply))
    ctx, aqi = parse_weather_params(kind, params)
    expected = synthesize_fallback(kind, ctx, aqi).to_body()

    first = client.get(path, params=params)
    second = client.get(path, params=params)

    assert first.status_code == 200
    assert first.json() == expected
    assert second.json() == expected
    if kind is RequestKind.ACTIVITY_LIST:
        assert len(first.json()["activities"]) == 5
    else:
        assert set(first.json()["advisory"]) == set(ADVISORY_JSON)


def test_unparsable_particulate_readings_do_not_fail_summary(monkeypatch) -> None:  # noqa: ANN001
    generator = _RecordingGenerator(reply="Mild and clear.")
    client = _client(monkeypatch, generator)

    response = client.get(
        "/api/ai/summary",
        params={**SUMMARY_PARAMS, "aqi": "3", "aqiLabel": "Moderate", "pm25": "undefined", "pm10": "undefined"},
    )

    assert response.status_code == 200
    assert response.json() == {"summary": "Mild and clear."}
    assert len(generator.calls) == 1
    prompt = generator.calls[0][1]
    assert "PM2.5" not in prompt
    assert "PM10" not in prompt


def test_travel_tips_accept_empty_forecast_object(monkeypatch) -> None:  # noqa: ANN001
    generator = _RecordingGenerator(reply="Pack an umbrella.")
    client = _client(monkeypatch, generator)

    response = client.post("/api/ai/travel-tips", json={"destination": "Lisbon", "forecastData": {}})

    assert response.status_code == 200
    assert response.json() == {"tips": "Pack an umbrella."}
    assert len(generator.calls) == 1


def test_health_advisory_fallback_restricts_activity_above_150(monkeypatch) -> None:
    client = _client(monkeypatch, _RecordingGenerator(error=QuotaExceededError("quota", 429)))

    restricted = client.get("/api/ai/health-advisory", params={**ADVISORY_PARAMS, "aqi": "151", "aqiLabel": "Unhealthy"})
    boundary = client.get("/api/ai/health-advisory", params={**ADVISORY_PARAMS, "aqi": "150", "aqiLabel": "Unhealthy"})

    restricted_points = restricted.json()["advisory"]["activityLevel"]["points"]
    boundary_points = boundary.json()["advisory"]["activityLevel"]["points"]
    assert any("restricted" in point.lower() for point in restricted_points)
    assert not any("restricted" in point.lower() for point in boundary_points)


def test_travel_tips_returns_model_text(monkeypatch) -> None:
    generator = _RecordingGenerator(reply="1. Pack a light jacket.")
    client = _client(monkeypatch, generator)

    response = client.post("/api/ai/travel-tips", json=TRAVEL_BODY)

    assert response.status_code == 200
    assert response.json() == {"tips": "1. Pack a light jacket."}
    assert "Lisbon" in generator.calls[0][1]


@pytest.mark.parametrize("error", [QuotaExceededError("quota", 429), GenerationBackendError("down", 503)])
def test_travel_tips_backend_failures_return_500(monkeypatch, error) -> None:  # noqa: ANN001
    client = _client(monkeypatch, _RecordingGenerator(error=error))

    response = client.post("/api/ai/travel-tips", json=TRAVEL_BODY)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to generate travel tips"}


def test_active_backend_route_reports_selector_state(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "backend_selector", _FixedSelector())
    client = TestClient(main_module.app)

    response = client.get("/api/ai/backend")

    assert response.status_code == 200
    assert response.json() == {"model": "gemini-test", "resolved": True}
