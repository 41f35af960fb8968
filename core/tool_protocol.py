"""Tool registry for headless-ide.

Maps tool names to plain functions that take keyword arguments and return
dicts. Callers hand over a name plus a dict of arguments (as decoded from JSON)
and always get back an envelope:

    {"ok": True,  "data": <tool return value>, "duration_ms": int}
    {"ok": False, "error": "<message>",        "duration_ms": int}

Unknown tools, arguments that do not fit the tool's signature, and unexpected
exceptions are reported in the envelope, never raised.
"""

import inspect
import json
import time


class ToolRegistry:
    """Registry for tool functions exposed to remote callers."""

    def __init__(self):
        self._tools: dict[str, dict] = {}

    def register_tool(self, name: str, func: callable, description: str,
                      cancellable: bool = False) -> None:
        """Register a tool with the given name, function, and description.

        A cancellable tool receives the caller's cancel_event as a keyword
        argument of the same name.
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        self._tools[name] = {
            "func": func,
            "description": description,
            "cancellable": cancellable,
            "signature": inspect.signature(func),
        }

    def get_tool(self, name: str) -> dict | None:
        """Return tool info dict or None if not registered."""
        return self._tools.get(name)

    def list_tools(self) -> list[dict]:
        """Return list of registered tools with name, description and parameters."""
        return [
            {
                "name": n,
                "description": t["description"],
                "parameters": _describe_parameters(t["signature"]),
            }
            for n, t in self._tools.items()
        ]

    def call_tool(self, name: str, arguments: dict = None, cancel_event=None) -> dict:
        """Invoke a registered tool with keyword arguments.

        Returns dict with keys: ok (bool), data or error (str), duration_ms (int).
        """
        start_time = time.monotonic()

        tool = self._tools.get(name)
        if tool is None:
            return {"ok": False, "error": f"Tool '{name}' is not registered.", "duration_ms": 0}

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return {"ok": False, "error": "Tool arguments must be a JSON object.", "duration_ms": 0}

        kwargs = dict(arguments)
        if "cancel_event" in kwargs:
            return {"ok": False, "error": "Argument 'cancel_event' is reserved.", "duration_ms": 0}
        if tool["cancellable"]:
            kwargs["cancel_event"] = cancel_event

        try:
            tool["signature"].bind(**kwargs)
        except TypeError as e:
            return {"ok": False, "error": f"Invalid arguments for '{name}': {e}", "duration_ms": 0}

        try:
            result = tool["func"](**kwargs)
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            return {"ok": False, "error": f"{type(e).__name__}: {e}", "duration_ms": duration_ms}

        duration_ms = int((time.monotonic() - start_time) * 1000)
        return {"ok": True, "data": result, "duration_ms": duration_ms}

    def format_result(self, tool_name: str, result: dict) -> str:
        """Serialize a call_tool envelope as a JSON document tagged with the tool name."""
        return json.dumps({"tool": tool_name, **result}, indent=2, default=str)


def _describe_parameters(signature: inspect.Signature) -> list[dict]:
    params = []
    for p in signature.parameters.values():
        if p.name == "cancel_event" or p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            continue
        entry = {"name": p.name, "required": p.default is inspect.Parameter.empty}
        if not entry["required"]:
            entry["default"] = p.default
        params.append(entry)
    return params
