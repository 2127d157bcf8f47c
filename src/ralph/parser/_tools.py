"""Tool-call classification — turn a completed tool_call payload into sizes.

Payloads come in two shapes:
    {"tool_call": {"readToolCall": {"args": {...}, "result": {"success": {...}}}}}
    {"tool_call": {"name": "read", "args": {...}, "result": {"success": {...}}}}
A specific *ToolCall key wins over the generic name/type field.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Literal

from ralph.defaults import BYTES_PER_LINE

ToolKind = Literal["read", "write", "shell", "other"]

READ_KEYS = ("readToolCall",)
WRITE_KEYS = ("editToolCall", "writeToolCall")
SHELL_KEYS = ("shellToolCall",)

_GENERIC_KINDS: dict[str, ToolKind] = {
    "read": "read",
    "edit": "write",
    "write": "write",
    "shell": "shell",
}


@dataclass
class ToolCompletion:
    kind: ToolKind
    name: str = "tool"
    path: str = "unknown"
    command: str = "unknown"
    nbytes: int = 0
    lines: int = 0
    exit_code: int = 0
    output_chars: int = 0


def _dig(node: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first(*values: Any) -> Any:
    """First value that is neither None nor False."""
    for v in values:
        if v is not None and v is not False:
            return v
    return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # json accepts NaN, Infinity and 1e999
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _generic_name(call: dict[str, Any]) -> str:
    return _as_str(_first(call.get("name"), call.get("type")))


def classify(call: dict[str, Any]) -> ToolKind:
    if any(call.get(k) for k in READ_KEYS):
        return "read"
    if any(call.get(k) for k in WRITE_KEYS):
        return "write"
    if any(call.get(k) for k in SHELL_KEYS):
        return "shell"
    for field in ("type", "name"):
        value = call.get(field)
        if isinstance(value, str) and value.lower() in _GENERIC_KINDS:
            return _GENERIC_KINDS[value.lower()]
    return "other"


def _read(call: dict[str, Any]) -> ToolCompletion:
    specific = call.get("readToolCall")
    path = _first(_dig(specific, "args", "path"), _dig(call, "args", "path"), "unknown")
    lines = _as_int(_first(
        _dig(specific, "result", "success", "totalLines"),
        _dig(call, "result", "success", "totalLines"),
    ))
    content_size = _as_int(_first(
        _dig(specific, "result", "success", "contentSize"),
        _dig(call, "result", "success", "contentSize"),
    ))
    nbytes = content_size if content_size > 0 else lines * BYTES_PER_LINE
    return ToolCompletion(kind="read", name="read", path=_as_str(path), lines=lines, nbytes=max(nbytes, 0))


def _write(call: dict[str, Any]) -> ToolCompletion:
    edit = call.get("editToolCall")
    write = call.get("writeToolCall")
    path = _first(
        _dig(edit, "args", "path"),
        _dig(write, "args", "path"),
        _dig(call, "args", "path"),
        "unknown",
    )
    content = _first(
        _dig(edit, "result", "success", "afterFullFileContent"),
        _dig(call, "result", "success", "afterFullFileContent"),
    )
    nbytes = len(content) if isinstance(content, str) else 0
    lines = 0
    if nbytes <= 0:
        lines = _as_int(_first(
            _dig(edit, "result", "success", "linesAdded"),
            _dig(write, "result", "success", "linesCreated"),
            _dig(call, "result", "success", "linesAdded"),
            _dig(call, "result", "success", "linesCreated"),
        ))
        nbytes = lines * BYTES_PER_LINE
    return ToolCompletion(kind="write", name="write", path=_as_str(path), lines=lines, nbytes=max(nbytes, 0))


def _shell(call: dict[str, Any]) -> ToolCompletion:
    specific = call.get("shellToolCall")
    command = _first(_dig(specific, "args", "command"), _dig(call, "args", "command"), "unknown")
    exit_code = _as_int(_first(
        _dig(specific, "result", "exitCode"),
        _dig(call, "result", "exitCode"),
        0,
    ))
    stdout = _as_str(_first(_dig(specific, "result", "stdout"), _dig(call, "result", "stdout"), ""))
    stderr = _as_str(_first(_dig(specific, "result", "stderr"), _dig(call, "result", "stderr"), ""))
    return ToolCompletion(
        kind="shell",
        name="shell",
        command=_as_str(command),
        exit_code=exit_code,
        output_chars=len(stdout) + len(stderr),
    )


def parse_tool_completion(payload: dict[str, Any]) -> ToolCompletion:
    """Classify and size a tool_call/completed event."""
    call = payload.get("tool_call")
    if not isinstance(call, dict):
        return ToolCompletion(kind="other", name="tool")
    kind = classify(call)
    if kind == "read":
        return _read(call)
    if kind == "write":
        return _write(call)
    if kind == "shell":
        return _shell(call)
    return ToolCompletion(kind="other", name=_generic_name(call) or "tool")
