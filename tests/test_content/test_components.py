import pytest

from reactloop.components import (
    ComponentRegistry,
    StatusCardProps,
    create_default_component_registry,
)


@pytest.mark.asyncio
async def test_known_components_load_on_demand():
    registry = create_default_component_registry()

    assert registry.is_loaded("WeatherCard") is False
    assert await registry.load("WeatherCard") is True
    assert registry.is_loaded("WeatherCard") is True


@pytest.mark.asyncio
async def test_unknown_component_does_not_load():
    registry = create_default_component_registry()

    assert await registry.load("Carousel") is False
    assert registry.validate_props("Carousel", {"slides": 3}).success is True


@pytest.mark.asyncio
async def test_async_loader_is_awaited():
    async def loader():
        return StatusCardProps

    registry = ComponentRegistry({"Status": loader})

    assert await registry.load("Status") is True
    assert registry.validate_props("Status", {"status": "info", "message": "hi"}).success is True


@pytest.mark.asyncio
async def test_weather_card_validation():
    registry = create_default_component_registry()
    await registry.load("WeatherCard")

    ok = registry.validate_props(
        "WeatherCard",
        {"location": "Oslo", "temp_c": 4.5, "condition": "Snow", "ts": "2026-10-18T08:00:00Z"},
    )
    bad = registry.validate_props("WeatherCard", {"location": "Oslo", "temp_c": "cold"})

    assert ok.success is True
    assert ok.data["temp_c"] == 4.5
    assert ok.data["ts"] == "2026-10-18T08:00:00Z"
    assert bad.success is False
    assert "temp_c" in bad.error
    assert "condition" in bad.error


@pytest.mark.asyncio
async def test_weather_card_props_are_strict():
    registry = create_default_component_registry()
    await registry.load("WeatherCard")
    base = {"location": "Oslo", "temp_c": 4.5, "condition": "Snow", "ts": "2026-10-18T08:00:00Z"}

    numeric_string = registry.validate_props("WeatherCard", {**base, "temp_c": "18"})
    epoch = registry.validate_props("WeatherCard", {**base, "ts": 0})
    date_only = registry.validate_props("WeatherCard", {**base, "ts": "2026-10-18"})
    garbage = registry.validate_props("WeatherCard", {**base, "ts": "yesterday"})

    assert numeric_string.success is False
    assert "temp_c" in numeric_string.error
    assert epoch.success is False
    assert "ts" in epoch.error
    assert date_only.success is False
    assert "ts must include a time" in date_only.error
    assert garbage.success is False
    assert "ts must be an ISO 8601 datetime" in garbage.error


@pytest.mark.asyncio
async def test_search_results_require_urls():
    registry = create_default_component_registry()
    await registry.load("SearchResults")

    result = registry.validate_props(
        "SearchResults",
        {"query": "q", "count": 1, "results": [{"title": "t", "url": "not a url", "snippet": "s"}]},
    )

    assert result.success is False
    assert "results.0.url" in result.error


@pytest.mark.asyncio
async def test_status_card_details_optional_and_status_restricted():
    registry = create_default_component_registry()
    await registry.load("StatusCard")

    ok = registry.validate_props("StatusCard", {"status": "warning", "message": "Low disk"})
    bad = registry.validate_props("StatusCard", {"status": "panic", "message": "x"})

    assert ok.data == {"status": "warning", "message": "Low disk"}
    assert bad.success is False


@pytest.mark.asyncio
async def test_register_loader_replaces_schema():
    registry = create_default_component_registry()
    await registry.load("StatusCard")

    registry.register_loader("StatusCard", lambda: StatusCardProps)

    assert registry.is_loaded("StatusCard") is False
