"""Current weather lookup via the Open-Meteo geocoding and forecast APIs."""

from datetime import UTC, datetime
from typing import Any

import httpx

from reactloop.cancellation import CancellationToken
from reactloop.config import get_config
from reactloop.logging import get_logger
from reactloop.tools.registry import Tool

log = get_logger(__name__)

# WMO weather interpretation codes, grouped.
_WEATHER_CODES = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    56: "Freezing drizzle",
    57: "Freezing drizzle",
    61: "Rain",
    63: "Rain",
    65: "Heavy rain",
    66: "Freezing rain",
    67: "Freezing rain",
    71: "Snow",
    73: "Snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Rain showers",
    81: "Rain showers",
    82: "Violent rain showers",
    85: "Snow showers",
    86: "Snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with hail",
}


def is_placeholder_location(location: str) -> bool:
    """Reject empty, too short or templated locations such as ``[city]``."""
    value = (location or "").strip()
    lowered = value.lower()
    return (
        len(value) < 2
        or "[" in value
        or "]" in value
        or "location" in lowered
        or "placeholder" in lowered
    )


class WeatherTool(Tool):
    """Get current weather for a named place."""

    name = "get_weather_by_location"
    description = "Get current weather information for a location"
    parameters = {
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": (
                    "The city and state/country to get weather for "
                    "(must be specific, no placeholders like [location])"
                ),
            },
        },
        "required": ["location"],
    }

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": "reactloop/0.1.0 (Weather Tool)"},
        )

    async def _geocode(self, location: str, timeout: float) -> dict[str, Any] | None:
        cfg = get_config().tools.weather
        # Geocoding matches on the place name only, so drop ", State/Country".
        name = location.split(",")[0].strip() or location
        response = await self.client.get(
            cfg.geocoding_url,
            params={"name": name, "count": 1, "language": "en", "format": "json"},
            timeout=timeout,
        )
        response.raise_for_status()
        results = (response.json() or {}).get("results") or []
        return results[0] if results else None

    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> Any:
        location = str(params.get("location", "") or "").strip()
        if is_placeholder_location(location):
            return {
                "type": "comment",
                "text": (
                    f'⚠️ Invalid location "{location}". Please provide a specific '
                    "city name, not a placeholder."
                ),
            }

        cfg = get_config().tools.weather
        timeout = float(cfg.timeout)

        place = await self._geocode(location, timeout)
        if place is None:
            return {"type": "comment", "text": f'⚠️ Could not find a place named "{location}".'}
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()

        response = await self.client.get(
            cfg.forecast_url,
            params={
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current": "temperature_2m,weather_code",
            },
            timeout=timeout,
        )
        response.raise_for_status()
        current = (response.json() or {}).get("current") or {}

        label = ", ".join(
            part for part in (place.get("name"), place.get("admin1"), place.get("country")) if part
        )
        weather = {
            "location": label or location,
            "temp_c": float(current.get("temperature_2m", 0.0)),
            "condition": _WEATHER_CODES.get(int(current.get("weather_code", -1)), "Unknown"),
            "ts": datetime.now(UTC).isoformat(),
        }
        log.info("Weather fetched", location=weather["location"], condition=weather["condition"])
        return [
            {"type": "tool_result", "data": weather},
            {"type": "component", "name": "WeatherCard", "props": weather},
        ]

    async def close(self) -> None:
        await self.client.aclose()
