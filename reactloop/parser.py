"""Parse ReAct-style model output into thinking, action and final answer.

The model is asked to write labelled sections::

    Thought: ...
    Action: tool_name
    Action Input: {"param": "value"}

or ``Final Answer: ...``. A section runs from its label to the next label or
the end of the text. Labels are matched case-insensitively, anywhere in the
text, optionally wrapped in markdown bold. Priority when several are present:
Thought is always surfaced, then Action beats Final Answer, and anything else
is plain narrative text.

Known brittleness: a literal label inside prose ("Call to Action: ...") is
read as a section, and only the first Action is honoured.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable

from reactloop.tools.registry import Tool

_LABEL_RE = re.compile(
    r"(?<![\w-])\**(Thinking|Thought|Think|Action\s+Input|Action|Final\s+Answer|Observation)\**\s*:\**",
    re.IGNORECASE,
)

_THOUGHT_LABELS = {"thinking", "thought", "think"}

_ACTION_NAME_RE = re.compile(r"[A-Za-z_][\w.-]*")

_CODE_FENCE_RE = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?```$", re.DOTALL)

SEARCH_TOOL_NAME = "web_search"

_GENERAL_KNOWLEDGE_PATTERNS = (
    re.compile(r"^what is \w+\??$"),
    re.compile(r"^how does \w+ work\??$"),
    re.compile(r"^explain \w+$"),
    re.compile(r"^tell me about \w+$"),
)

DEFAULT_MIN_SEARCH_QUERY_LENGTH = 15

SEARCH_SKIPPED_OBSERVATION = (
    "Observation: Search skipped - this looks like a general knowledge question "
    "you can answer directly without tools. Please provide a direct answer."
)

# Bare-string Action Input -> params, for tools whose models often drop JSON.
# Finite on purpose: tools outside this table fall back to their first
# required parameter.
_STRING_INPUT_MAPPINGS: dict[str, Any] = {
    "plan_multi_destination_trip": lambda value: {"destinations": value},
    "update_multi_destination_trip": lambda value: {
        "action": "clear_and_replan",
        "destinations": value,
    },
    "get_directions_to": lambda value: {"destination": value},
    "find_places_nearby": lambda value: {"query": value},
    "web_search": lambda value: {"query": value},
    "get_weather_by_location": lambda value: {"location": value},
    "validate_multi_destination_route": lambda value: {
        "destinations": value,
        "expected_region": "International",
        "fix_errors": True,
    },
}


@dataclass
class ParsedAction:
    """A single requested tool call."""

    name: str
    params: dict[str, Any]
    raw_input: str
    structured: bool
    suppressed_observation: str | None = None

    @property
    def suppressed(self) -> bool:
        return self.suppressed_observation is not None


@dataclass
class ParsedResponse:
    """Structured view of one model response."""

    plain_text: str
    thinking: str | None = None
    action: ParsedAction | None = None
    final_answer: str | None = None

    @property
    def kind(self) -> str:
        if self.action is not None:
            return "action"
        if self.final_answer is not None:
            return "final_answer"
        return "plain_text"


@dataclass
class _Section:
    label: str
    start: int
    body_start: int
    body: str


def _normalize_label(raw: str) -> str:
    return re.sub(r"\s+", " ", raw.strip().lower())


def _split_sections(text: str) -> list[_Section]:
    matches = list(_LABEL_RE.finditer(text))
    sections = []
    for idx, match in enumerate(matches):
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        sections.append(
            _Section(
                label=_normalize_label(match.group(1)),
                start=match.start(),
                body_start=match.end(),
                body=text[match.end():end].strip(),
            )
        )
    return sections


def _strip_code_fence(value: str) -> str:
    match = _CODE_FENCE_RE.match(value.strip())
    return match.group(1).strip() if match else value.strip()


def _parse_structured(payload: str) -> dict[str, Any] | None:
    """Strict JSON object, or the first decodable ``{...}`` in the payload."""
    candidate = _strip_code_fence(payload)
    if not candidate:
        return {}
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        value = None
        brace = candidate.find("{")
        if brace != -1:
            try:
                value, _ = json.JSONDecoder().raw_decode(candidate[brace:])
            except json.JSONDecodeError:
                value = None
    return value if isinstance(value, dict) else None


def _bare_string(payload: str) -> str:
    candidate = _strip_code_fence(payload)
    first_line = candidate.splitlines()[0] if candidate else ""
    value = first_line.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'", "`"}:
        value = value[1:-1].strip()
    return value


def map_string_input(tool_name: str, value: str, tool: Tool | None = None) -> dict[str, Any]:
    """Map a bare-string Action Input onto the tool's parameters."""
    mapping = _STRING_INPUT_MAPPINGS.get(tool_name)
    if mapping is not None:
        return mapping(value)
    if tool is not None and tool.required_parameters:
        return {tool.required_parameters[0]: value}
    return {"input": value}


def is_trivial_search(query: str, min_length: int = DEFAULT_MIN_SEARCH_QUERY_LENGTH) -> bool:
    """Whether a search query is general knowledge the model can answer itself."""
    normalized = str(query or "").strip().lower()
    if len(normalized) < min_length:
        return True
    return any(pattern.match(normalized) for pattern in _GENERAL_KNOWLEDGE_PATTERNS)


def _parse_action(
    sections: list[_Section],
    tools_by_name: dict[str, Tool],
    min_search_query_length: int,
) -> ParsedAction | None:
    action_idx = next((i for i, s in enumerate(sections) if s.label == "action"), None)
    if action_idx is None:
        return None
    name_match = _ACTION_NAME_RE.search(sections[action_idx].body)
    if name_match is None:
        return None
    name = name_match.group(0)

    # Prefer the Action Input that follows the Action, else any Action Input.
    input_section = next(
        (s for s in sections[action_idx + 1:] if s.label == "action input"),
        None,
    ) or next((s for s in sections if s.label == "action input"), None)
    if input_section is None:
        return None

    raw_input = input_section.body
    params = _parse_structured(raw_input)
    structured = params is not None
    if params is None:
        params = map_string_input(name, _bare_string(raw_input), tools_by_name.get(name))

    action = ParsedAction(name=name, params=params, raw_input=raw_input, structured=structured)

    if name == SEARCH_TOOL_NAME:
        query = params.get("query")
        if isinstance(query, str) and is_trivial_search(query, min_search_query_length):
            action.suppressed_observation = SEARCH_SKIPPED_OBSERVATION
    return action


def parse_response(
    text: str,
    tools: Iterable[Tool] | None = None,
    min_search_query_length: int = DEFAULT_MIN_SEARCH_QUERY_LENGTH,
) -> ParsedResponse:
    """Parse one model response. Pure and deterministic.

    Args:
        text: Raw model output
        tools: Tools available this run; used to resolve bare-string inputs
        min_search_query_length: Search queries shorter than this are skipped

    Returns:
        ParsedResponse with at most one action
    """
    raw = text or ""
    sections = _split_sections(raw)
    tools_by_name = {tool.name: tool for tool in tools or []}

    thinking = next(
        (s.body for s in sections if s.label in _THOUGHT_LABELS and s.body),
        None,
    )
    parsed = ParsedResponse(plain_text=raw.strip(), thinking=thinking)

    parsed.action = _parse_action(sections, tools_by_name, min_search_query_length)
    if parsed.action is not None:
        return parsed

    final_section = next((s for s in sections if s.label == "final answer"), None)
    if final_section is not None:
        parsed.final_answer = raw[final_section.body_start:].strip()
    return parsed
