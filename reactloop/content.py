"""Typed content items and the validating content stream."""

import html
import json
from typing import Annotated, Any, Callable, Iterator, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from reactloop.logging import get_logger

log = get_logger(__name__)

TEXT_MAX_CHARS = 10_000
THINKING_MAX_CHARS = 5_000
COMMENT_MAX_CHARS = 1_000
PROPS_MAX_BYTES = 10_240

INVALID_CONTENT_NOTICE = "⚠️ Invalid content was filtered out"


class TextItem(BaseModel):
    """Narrative text shown to the user."""

    type: Literal["text"] = "text"
    content: str = Field(max_length=TEXT_MAX_CHARS)


class ThinkingItem(BaseModel):
    """Model reasoning surfaced from a Thought section."""

    type: Literal["thinking"] = "thinking"
    content: str = Field(max_length=THINKING_MAX_CHARS)


class CommentItem(BaseModel):
    """Diagnostic or status note (errors, warnings, skipped work)."""

    type: Literal["comment"] = "comment"
    text: str = Field(max_length=COMMENT_MAX_CHARS)


class ToolResultItem(BaseModel):
    """Structured data returned by a tool."""

    type: Literal["tool_result"] = "tool_result"
    data: dict[str, Any]


class ComponentItem(BaseModel):
    """Request to render a named UI component with props."""

    type: Literal["component"] = "component"
    name: str
    props: dict[str, Any]

    @field_validator("props")
    @classmethod
    def _bound_props_size(cls, value: dict[str, Any]) -> dict[str, Any]:
        try:
            size = len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Props must be JSON serializable: {e}") from e
        if size > PROPS_MAX_BYTES:
            raise ValueError("Props must be under 10KB when serialized")
        return value


ContentItem = Annotated[
    Union[TextItem, ThinkingItem, CommentItem, ToolResultItem, ComponentItem],
    Field(discriminator="type"),
]

_CONTENT_ADAPTER: TypeAdapter[ContentItem] = TypeAdapter(ContentItem)


def sanitize(text: str) -> str:
    """HTML-escape text destined for a diagnostic comment."""
    return html.escape(str(text), quote=True).replace("/", "&#x2F;")


def make_comment(text: str) -> CommentItem:
    """Build a sanitized comment that always fits the comment size bound."""
    return CommentItem(text=truncate_text(sanitize(text), COMMENT_MAX_CHARS))


def split_text(text: str, max_chars: int = TEXT_MAX_CHARS) -> list[str]:
    """Cut long text into chunks that each fit a text item, preferring line breaks."""
    chunks = []
    remaining = text
    while len(remaining) > max_chars:
        cut = remaining.rfind("\n", 0, max_chars)
        if cut <= 0:
            cut = max_chars
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining or not chunks:
        chunks.append(remaining)
    return chunks


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max_chars - 3].rstrip() + "..."


def validate_content_item(item: Any) -> ContentItem:
    """Validate an arbitrary payload against the ContentItem union.

    Model instances are re-validated from their dumped form so that items
    built with ``model_construct`` cannot bypass the shape checks.

    Raises:
        pydantic.ValidationError if the payload is not a valid item
    """
    if isinstance(item, BaseModel):
        item = item.model_dump()
    return _CONTENT_ADAPTER.validate_python(item)


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into ``path: message`` pairs."""
    parts = []
    for issue in error.errors():
        path = ".".join(str(p) for p in issue.get("loc", ()))
        message = issue.get("msg", "invalid")
        parts.append(f"{path}: {message}" if path else message)
    return "; ".join(parts) or str(error)


class ContentStream:
    """Append-only sink of validated content items.

    Invalid payloads are not rejected: a warning comment takes their place so
    the stream keeps a record of everything the loop tried to emit.
    """

    def __init__(self) -> None:
        self._items: list[ContentItem] = []
        self._subscribers: list[Callable[[ContentItem], None]] = []

    def push(self, item: Any) -> ContentItem:
        try:
            accepted = validate_content_item(item)
        except ValidationError as e:
            log.warning("Invalid content item", error=describe_validation_error(e))
            accepted = make_comment(INVALID_CONTENT_NOTICE)
        self._items.append(accepted)
        self._notify(accepted)
        return accepted

    def subscribe(self, callback: Callable[[ContentItem], None]) -> Callable[[], None]:
        """Register a callback invoked for every accepted item.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self, item: ContentItem) -> None:
        for callback in list(self._subscribers):
            try:
                callback(item)
            except Exception as e:
                log.warning("Content subscriber failed", error=str(e))

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> list[ContentItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> ContentItem:
        return self._items[index]
