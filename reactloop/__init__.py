"""reactloop - an embedded ReAct agent runtime."""

__version__ = "0.1.0"

from reactloop.agent import AgentRunState, ReActAgent, RunOutcome
from reactloop.config import Config
from reactloop.parser import parse_response

__all__ = ["AgentRunState", "Config", "ReActAgent", "RunOutcome", "parse_response", "__version__"]
