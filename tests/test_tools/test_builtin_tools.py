from datetime import datetime

import httpx
import pytest

from reactloop.cancellation import CancellationToken
from reactloop.config import Config, set_config
from reactloop.exceptions import OperationCancelledError
from reactloop.tools import AnalyzePageTool, ShowStatusTool, WeatherTool, WebSearchTool
from reactloop.tools.dispatcher import ToolDispatcher
from reactloop.tools.registry import ToolRegistry
from reactloop.tools.weather import is_placeholder_location


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    monkeypatch.delenv("BRAVE_API_KEY", raising=False)
    config = Config()
    set_config(config)
    yield config
    set_config(Config())


def weather_transport(requests: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.host == "geocoding-api.open-meteo.com":
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "name": "Paris",
                            "admin1": "Île-de-France",
                            "country": "France",
                            "latitude": 48.85,
                            "longitude": 2.35,
                        }
                    ]
                },
            )
        return httpx.Response(200, json={"current": {"temperature_2m": 18.4, "weather_code": 2}})

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_weather_returns_data_and_card():
    requests: list[httpx.Request] = []
    tool = WeatherTool(client=httpx.AsyncClient(transport=weather_transport(requests)))

    items = await tool.execute({"location": "Paris, France"})

    assert requests[0].url.params["name"] == "Paris"
    assert requests[1].url.params["latitude"] == "48.85"
    data = items[0]["data"]
    assert data["location"] == "Paris, Île-de-France, France"
    assert data["temp_c"] == 18.4
    assert data["condition"] == "Partly cloudy"
    assert datetime.fromisoformat(data["ts"]).tzinfo is not None
    assert items[1]["name"] == "WeatherCard"
    await tool.close()


@pytest.mark.asyncio
async def test_weather_card_passes_component_validation():
    tool = WeatherTool(client=httpx.AsyncClient(transport=weather_transport([])))
    dispatcher = ToolDispatcher(ToolRegistry([tool]), default_timeout=5)

    items = await dispatcher.execute("get_weather_by_location", {"location": "Paris"})

    assert [item.type for item in items] == ["tool_result", "component"]
    assert items[1].props["temp_c"] == 18.4


@pytest.mark.asyncio
async def test_weather_rejects_placeholder_without_network():
    requests: list = []
    tool = WeatherTool(client=httpx.AsyncClient(transport=weather_transport(requests)))

    result = await tool.execute({"location": "[city]"})

    assert result["type"] == "comment"
    assert "placeholder" in result["text"]
    assert requests == []


@pytest.mark.asyncio
async def test_weather_unknown_place_is_a_comment():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
    tool = WeatherTool(client=httpx.AsyncClient(transport=transport))

    result = await tool.execute({"location": "Atlantis"})

    assert result["type"] == "comment"
    assert "Atlantis" in result["text"]


@pytest.mark.asyncio
async def test_weather_honours_cancellation_between_requests():
    tool = WeatherTool(client=httpx.AsyncClient(transport=weather_transport([])))
    token = CancellationToken()
    token.cancel("user stop")

    with pytest.raises(OperationCancelledError, match="user stop"):
        await tool.execute({"location": "Paris"}, token)


def test_placeholder_detection():
    assert is_placeholder_location("") is True
    assert is_placeholder_location("X") is True
    assert is_placeholder_location("your location") is True
    assert is_placeholder_location("Lyon") is False


@pytest.mark.asyncio
async def test_web_search_without_key_reports_failure():
    tool = WebSearchTool(client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))

    items = await tool.execute({"query": "python asyncio tutorial"})

    assert items[0]["data"]["success"] is False
    assert "Missing Brave API key" in items[0]["data"]["error"]
    assert items[1]["props"]["results"] == []


@pytest.mark.asyncio
async def test_web_search_parses_results(monkeypatch):
    monkeypatch.setenv("BRAVE_API_KEY", "test-key")
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "web": {
                    "results": [
                        {"title": "Asyncio docs", "url": "https://docs.python.org/3/library/asyncio.html",
                         "description": "  asyncio   is a library  "},
                        {"title": "No url"},
                    ]
                }
            },
        )

    tool = WebSearchTool(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    items = await tool.execute({"query": "python asyncio tutorial", "count": 50, "country": "US"})

    request = seen[0]
    assert request.headers["X-Subscription-Token"] == "test-key"
    assert request.url.params["count"] == "20"
    assert request.url.params["country"] == "US"
    data = items[0]["data"]
    assert data["success"] is True
    assert data["count"] == 1
    assert data["results"][0]["snippet"] == "asyncio is a library"


@pytest.mark.asyncio
async def test_web_search_http_error_is_data(monkeypatch):
    monkeypatch.setenv("BRAVE_API_KEY", "test-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(429, text="rate limited"))
    tool = WebSearchTool(client=httpx.AsyncClient(transport=transport))

    items = await tool.execute({"query": "python asyncio tutorial"})

    assert items[0]["data"]["error"] == "HTTP 429: rate limited"


@pytest.mark.asyncio
async def test_show_status_builds_card():
    tool = ShowStatusTool()

    card = await tool.execute({"status": "success", "message": "Saved", "details": "3 files"})

    assert card == {
        "type": "component",
        "name": "StatusCard",
        "props": {"status": "success", "message": "Saved", "details": "3 files"},
    }


@pytest.mark.asyncio
async def test_analyze_page_counts_structure():
    page = "# Title\n\nFirst paragraph with https://example.com link.\n\n## Section\n\nSecond paragraph."
    tool = AnalyzePageTool(page_provider=lambda: page)

    result = await tool.execute({"aspect": "structure"})

    assert result["type"] == "text"
    assert "Analyzed structure of the current page" in result["content"]
    assert "4 paragraphs" in result["content"]
    assert "2 headings, 1 links" in result["content"]


@pytest.mark.asyncio
async def test_analyze_page_without_page():
    result = await AnalyzePageTool().execute({"aspect": "content"})

    assert result == {"type": "comment", "text": "No page content is available to analyze."}
