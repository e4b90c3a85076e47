"""UI component catalogue and prop validation.

Components are rendered by the host UI; this module only knows their prop
schemas. Schemas are registered lazily the first time a component is loaded,
mirroring how a UI would import the component module on demand.
"""

import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, HttpUrl, StrictFloat, ValidationError, field_validator

from reactloop.content import describe_validation_error
from reactloop.logging import get_logger

log = get_logger(__name__)


class WeatherCardProps(BaseModel):
    location: str
    temp_c: StrictFloat
    condition: str
    ts: str

    @field_validator("ts")
    @classmethod
    def _iso_datetime(cls, value: str) -> str:
        try:
            datetime.fromisoformat(value)
        except ValueError as e:
            raise ValueError("ts must be an ISO 8601 datetime") from e
        if "T" not in value:
            raise ValueError("ts must include a time")
        return value


class SearchResultEntry(BaseModel):
    title: str
    url: HttpUrl
    snippet: str


class SearchResultsProps(BaseModel):
    query: str
    results: list[SearchResultEntry]
    count: int


class StatusCardProps(BaseModel):
    status: Literal["success", "error", "warning", "info"]
    message: str
    details: str | None = None


SchemaLoader = Callable[[], Awaitable[type[BaseModel]] | type[BaseModel]]


@dataclass
class PropValidation:
    """Outcome of validating component props."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


class ComponentRegistry:
    """Lazy registry of component prop schemas."""

    def __init__(self, loaders: dict[str, SchemaLoader] | None = None):
        self._loaders: dict[str, SchemaLoader] = dict(loaders or {})
        self._schemas: dict[str, type[BaseModel]] = {}

    def register_loader(self, name: str, loader: SchemaLoader) -> None:
        """Register (or replace) the schema loader for a component."""
        self._loaders[name] = loader
        self._schemas.pop(name, None)

    def is_loaded(self, name: str) -> bool:
        return name in self._schemas

    async def load(self, name: str) -> bool:
        """Ensure the component schema is loaded.

        Returns:
            True when a schema is available for the component
        """
        if name in self._schemas:
            return True
        loader = self._loaders.get(name)
        if loader is None:
            log.warning("Unknown component", component=name)
            return False
        schema = loader()
        if inspect.isawaitable(schema):
            schema = await schema
        self._schemas[name] = schema
        log.debug("Component schema loaded", component=name)
        return True

    def validate_props(self, name: str, props: Any) -> PropValidation:
        """Validate props against the loaded schema.

        Components without a schema are accepted unchanged.
        """
        schema = self._schemas.get(name)
        if schema is None:
            return PropValidation(success=True, data=props)
        try:
            model = schema.model_validate(props)
        except ValidationError as e:
            return PropValidation(success=False, error=describe_validation_error(e))
        # Keep extra keys the UI may use (content, error, ...) next to the validated ones.
        data = dict(props) if isinstance(props, dict) else {}
        data.update(model.model_dump(mode="json", exclude_unset=True))
        return PropValidation(success=True, data=data)


def create_default_component_registry() -> ComponentRegistry:
    """Registry with the built-in WeatherCard, SearchResults and StatusCard."""
    return ComponentRegistry(
        loaders={
            "WeatherCard": lambda: WeatherCardProps,
            "SearchResults": lambda: SearchResultsProps,
            "StatusCard": lambda: StatusCardProps,
        }
    )
