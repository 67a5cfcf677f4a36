from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import Settings


logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUS = {408, 429, 500, 502, 503, 504}
SUPPORTED_UNITS = {"standard", "metric", "imperial"}


@dataclass
class WeatherClient:
    settings: Settings
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_current_weather(self, latitude: float, longitude: float, units: str = "metric") -> dict:
        """
        Fetch current conditions and attach the air pollution payload under "aqi".
        Air quality is optional; its failure never fails the weather lookup.
        """
        payload = await self._get_json(
            url=f"{self.settings.openweather_base_url}/weather",
            params={
                "lat": latitude,
                "lon": longitude,
                "units": units if units in SUPPORTED_UNITS else "metric",
                "appid": self.settings.openweather_api_key,
            },
        )
        if not isinstance(payload, dict):
            raise ValueError("Weather provider returned an unexpected payload.")

        try:
            payload["aqi"] = await self.fetch_air_pollution(latitude=latitude, longitude=longitude)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Air pollution lookup failed for %.4f,%.4f: %s", latitude, longitude, exc)
        return payload

    async def fetch_air_pollution(self, latitude: float, longitude: float) -> dict:
        return await self._get_json(
            url=f"{self.settings.openweather_base_url}/air_pollution",
            params={"lat": latitude, "lon": longitude, "appid": self.settings.openweather_api_key},
            retry_attempts=0,
        )

    async def _get_json(
        self,
        *,
        url: str,
        params: dict[str, Any] | None = None,
        retry_attempts: int | None = None,
    ) -> Any:
        attempts = self.settings.api_retry_attempts if retry_attempts is None else max(0, retry_attempts)
        for attempt in range(attempts + 1):
            try:
                response = await self._client.get(url, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_HTTP_STATUS or attempt >= attempts:
                    raise
            except httpx.RequestError:
                if attempt >= attempts:
                    raise
            await asyncio.sleep(0.35 * (attempt + 1))

        raise RuntimeError("Failed to fetch upstream JSON payload.")
