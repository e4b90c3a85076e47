"""Status card tool."""

from typing import Any

from reactloop.cancellation import CancellationToken
from reactloop.tools.registry import Tool


class ShowStatusTool(Tool):
    """Display a status message to the user."""

    name = "show_status"
    description = "Display a status message to the user"
    parameters = {
        "type": "object",
        "properties": {
            "status": {
                "type": "string",
                "enum": ["success", "error", "warning", "info"],
                "description": "The status type",
            },
            "message": {
                "type": "string",
                "description": "The status message",
            },
            "details": {
                "type": "string",
                "description": "Optional additional details",
            },
        },
        "required": ["status", "message"],
    }

    async def execute(
        self,
        params: dict[str, Any],
        cancellation_token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        props = {"status": params["status"], "message": params["message"]}
        if params.get("details"):
            props["details"] = params["details"]
        return {"type": "component", "name": "StatusCard", "props": props}
