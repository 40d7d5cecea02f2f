"""Terminal snapshot value types and their prompt rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

MAX_SNAPSHOT_ROWS = 10
MAX_OSC_EVENTS = 5
MAX_OSC_PAYLOAD_CHARS = 100
ELLIPSIS = "..."

OSC_ICON_AND_TITLE = 0
OSC_WINDOW_TITLE = 2
OSC_WORKING_DIRECTORY = 7

# Only these events may leak their payload into the prompt.
_PAYLOAD_ALLOWED_OSC = frozenset({OSC_ICON_AND_TITLE, OSC_WINDOW_TITLE, OSC_WORKING_DIRECTORY})


@dataclass(frozen=True, slots=True)
class Cell:
    """One framebuffer cell; code 0 is an empty cell."""

    char_code: int = 0

    @property
    def char(self) -> str:
        if self.char_code <= 0:
            return " "
        try:
            return chr(self.char_code)
        except (ValueError, OverflowError):
            return " "


@dataclass(frozen=True, slots=True)
class OscEvent:
    """Captured operating-system-command escape sequence."""

    command_type: int
    payload: str | None = None


@dataclass(frozen=True, slots=True)
class TerminalSnapshot:
    """Screen state captured by the terminal emulator."""

    cols: int
    rows: int
    cursor_row: int
    cursor_col: int
    framebuffer: list[list[Cell]] = field(default_factory=list)
    osc_events: list[OscEvent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TerminalSnapshot:
        """Load a snapshot from its JSON shape.

        Keys may be snake_case or camelCase (`cursorRow`, `oscEvents`,
        `commandType`). Framebuffer cells may be plain integers or
        ``{"char": <code>}`` objects. Raises `ValueError` on missing or
        mistyped fields.
        """

        framebuffer = [
            [_coerce_cell(cell) for cell in _list_of(row, "framebuffer row")]
            for row in _list_of(payload.get("framebuffer") or [], "framebuffer")
        ]
        osc_events = [
            _coerce_event(event)
            for event in _list_of(_pick(payload, "osc_events", "oscEvents") or [], "osc_events")
        ]
        return cls(
            cols=_as_int(payload.get("cols", 0), "cols"),
            rows=_as_int(payload.get("rows", 0), "rows"),
            cursor_row=_as_int(_pick(payload, "cursor_row", "cursorRow", 0), "cursor_row"),
            cursor_col=_as_int(_pick(payload, "cursor_col", "cursorCol", 0), "cursor_col"),
            framebuffer=framebuffer,
            osc_events=osc_events,
        )

    def visible_lines(self) -> list[str]:
        """Last non-blank screen rows, oldest first."""

        lines = ["".join(cell.char for cell in row).rstrip() for row in self.framebuffer]
        non_blank = [line for line in lines if line.strip()]
        return non_blank[-MAX_SNAPSHOT_ROWS:]


def format_snapshot(snapshot: TerminalSnapshot) -> str:
    """Render the snapshot as a prompt section."""

    lines = [
        f"Terminal: {snapshot.cols}x{snapshot.rows}, "
        f"cursor at row {snapshot.cursor_row}, col {snapshot.cursor_col}",
    ]
    screen = snapshot.visible_lines()
    if screen:
        lines.append("Recent screen output:")
        lines.extend(screen)

    events = snapshot.osc_events[-MAX_OSC_EVENTS:]
    if events:
        lines.append("Recent terminal events:")
        lines.extend(_format_osc_event(event) for event in events)
    return "\n".join(lines)


def _format_osc_event(event: OscEvent) -> str:
    label = f"- OSC {event.command_type}"
    if event.command_type not in _PAYLOAD_ALLOWED_OSC or not event.payload:
        return label
    return f"{label}: {_truncate(event.payload)}"


def _truncate(value: str) -> str:
    if len(value) <= MAX_OSC_PAYLOAD_CHARS:
        return value
    return value[:MAX_OSC_PAYLOAD_CHARS] + ELLIPSIS


def _pick(payload: dict[str, Any], name: str, alias: str, default: Any = None) -> Any:
    if name in payload:
        return payload[name]
    return payload.get(alias, default)


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Snapshot field {name} must be an integer, got {value!r}.")
    return value


def _list_of(value: Any, name: str) -> list[Any]:
    if not isinstance(value, list):
        raise ValueError(f"Snapshot field {name} must be an array.")
    return value


def _coerce_cell(value: Any) -> Cell:
    if isinstance(value, dict):
        return Cell(char_code=_as_int(value.get("char", 0), "framebuffer cell"))
    return Cell(char_code=_as_int(value, "framebuffer cell"))


def _coerce_event(value: Any) -> OscEvent:
    if not isinstance(value, dict):
        raise ValueError("Snapshot osc_events entries must be objects.")
    command_type = _pick(value, "command_type", "commandType")
    if command_type is None:
        raise ValueError("Snapshot OSC event is missing command_type.")
    payload = value.get("payload")
    if payload is not None and not isinstance(payload, str):
        raise ValueError("Snapshot OSC event payload must be a string or null.")
    return OscEvent(command_type=_as_int(command_type, "command_type"), payload=payload)
