from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RequestKind(str, Enum):
    SUMMARY = "summary"
    ACTIVITY_LIST = "activities"
    HEALTH_ADVISORY = "health-advisory"
    TRAVEL_TIPS = "travel-tips"


class ResponseShape(str, Enum):
    FREE_TEXT = "free_text"
    JSON_ARRAY = "json_array"
    JSON_OBJECT = "json_object"


RESPONSE_SHAPES: dict[RequestKind, ResponseShape] = {
    RequestKind.SUMMARY: ResponseShape.FREE_TEXT,
    RequestKind.ACTIVITY_LIST: ResponseShape.JSON_ARRAY,
    RequestKind.HEALTH_ADVISORY: ResponseShape.JSON_OBJECT,
    RequestKind.TRAVEL_TIPS: ResponseShape.FREE_TEXT,
}

ADVISORY_SECTION_TITLES: dict[str, str] = {
    "temperatureAlert": "Temperature Impact",
    "airQualityAlert": "Air Quality & Respiratory Safety",
    "activityLevel": "Safe Activity Recommendations",
    "vulnerableGroups": "Special Precautions for Vulnerable Groups",
    "protectionTips": "Practical Protection Measures",
    "medicalAlert": "When to Seek Medical Help",
}


class WeatherContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: str | None = Field(default=None, description="City name, only carried by summary requests.")
    temperature: float = Field(description="Air temperature in degrees Celsius.")
    condition: str
    humidity: float = Field(description="Relative humidity in percent.")
    wind_speed: float = Field(description="Wind speed in m/s.")
    feels_like: float | None = None


class AirQualityContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    aqi: int
    label: str = "Unknown"
    pm25: float | None = Field(default=None, description="PM2.5 in ug/m3.")
    pm10: float | None = Field(default=None, description="PM10 in ug/m3.")


class ActivityEntry(BaseModel):
    activity: str
    reason: str
    duration: str
    precautions: str


class AdvisorySection(BaseModel):
    title: str
    points: list[str]


class HealthAdvisory(BaseModel):
    temperatureAlert: AdvisorySection
    airQualityAlert: AdvisorySection
    activityLevel: AdvisorySection
    vulnerableGroups: AdvisorySection
    protectionTips: AdvisorySection
    medicalAlert: AdvisorySection


class SummaryResult(BaseModel):
    kind: Literal[RequestKind.SUMMARY] = RequestKind.SUMMARY
    text: str

    def to_body(self) -> dict:
        return {"summary": self.text}


class ActivityListResult(BaseModel):
    kind: Literal[RequestKind.ACTIVITY_LIST] = RequestKind.ACTIVITY_LIST
    entries: list[ActivityEntry]

    def to_body(self) -> dict:
        return {"activities": [entry.model_dump() for entry in self.entries]}


class HealthAdvisoryResult(BaseModel):
    kind: Literal[RequestKind.HEALTH_ADVISORY] = RequestKind.HEALTH_ADVISORY
    sections: HealthAdvisory

    def to_body(self) -> dict:
        return {"advisory": self.sections.model_dump()}


class TravelTipsResult(BaseModel):
    kind: Literal[RequestKind.TRAVEL_TIPS] = RequestKind.TRAVEL_TIPS
    text: str

    def to_body(self) -> dict:
        return {"tips": self.text}


GenerationResult = Annotated[
    Union[SummaryResult, ActivityListResult, HealthAdvisoryResult, TravelTipsResult],
    Field(discriminator="kind"),
]


class TravelTipsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    destination: str | None = None
    forecastData: dict[str, Any] | list[Any] | None = None

    @model_validator(mode="after")
    def validate_travel_inputs(self) -> "TravelTipsRequest":
        if self.destination is None or not self.destination.strip():
            raise ValueError("Provide a destination.")
        if self.forecastData is None:
            raise ValueError("Provide forecastData.")
        return self
