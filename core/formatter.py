"""
formatter.py -- Renders resources and session state to terminal output or JSON.
"""

import json
import os
import re
import sys
from dataclasses import asdict
from enum import Enum
from typing import Optional

from auth.models import SessionState, SessionStatus
from resources.models import Resource, ResourceWithReferences

W = 68  # output width

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from a string."""
    return _ANSI_RE.sub("", text)


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    Can be overridden by calling disable_color().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


def _yellow() -> str:
    return "\033[93m" if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    return f"\n  {_bold()}{title}{_reset()}\n  {'─' * (W - 2)}"


def _wrap(text: str, indent: int = 4, width: int = W) -> str:
    """Simple word-wrap at `width` chars with leading indent."""
    words = text.split()
    lines = []
    line = " " * indent
    for word in words:
        if len(line) + len(word) + 1 > width:
            lines.append(line)
            line = " " * indent + word
        else:
            line += ("" if line.strip() == "" else " ") + word
    if line.strip():
        lines.append(line)
    return "\n".join(lines)


def _star(resource: Resource) -> str:
    return f"{_yellow()}★{_reset()}" if resource.featured else " "


# ---------------------------------------------------------------------------
# Terminal renderers
# ---------------------------------------------------------------------------


def print_resource(item: ResourceWithReferences) -> None:
    bold = _bold()
    reset = _reset()
    r = item.resource

    print(f"\n{bold}{_bar()}{reset}")
    print(f"  {_star(r)} {bold}{r.title}{reset}")
    print(f"    {r.category.value} / {r.subcategory.value}  │  {r.url}")
    print(f"{bold}{_bar()}{reset}")

    print(_section("ABOUT"))
    print(_wrap(r.description))
    if r.content:
        print()
        print(_wrap(r.content))

    if r.eligibility:
        print(_section("ELIGIBILITY"))
        for tag in r.eligibility:
            print(f"    • {tag}")

    if r.tags:
        print(_section("TAGS"))
        print(_wrap(", ".join(r.tags)))

    if item.related_resources:
        print(_section("RELATED"))
        for rel in item.related_resources:
            print(f"    {_star(rel)} {rel.title}  {_dim()}{rel.id}{reset}")

    print(f"\n  {_dim()}id {r.id}  ·  added {r.date_added[:10]}  ·  updated {r.last_updated[:10]}{reset}\n")


def print_summary(resources: list[Resource]) -> None:
    if not resources:
        print("\n  No matching resources.\n")
        return
    bold = _bold()
    reset = _reset()
    print(f"\n  {bold}{len(resources)} resource(s){reset}")
    print(f"  {'─' * (W - 2)}")
    for r in resources:
        print(f"  {_star(r)} {bold}{r.title}{reset}")
        print(f"      {r.category.value}/{r.subcategory.value}  {_dim()}{r.id}{reset}")
    print()


def print_session(state: SessionState) -> None:
    if state.status == SessionStatus.AUTHENTICATED and state.session is not None:
        s = state.session
        name = s.display_name or s.email or s.uid
        print(f"  Signed in as {_bold()}{name}{_reset()}" + (f" <{s.email}>" if s.email and s.display_name else ""))
    elif state.status == SessionStatus.UNAUTHENTICATED:
        print("  Not signed in.")
    else:
        print(f"  Session state: {state.status.value}")


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def _json_default(value):
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(obj) -> str:
    """Serialize a dataclass (or list of dataclasses) to indented JSON."""
    if isinstance(obj, list):
        data = [asdict(o) for o in obj]
    else:
        data = asdict(obj)
    return json.dumps(data, indent=2, default=_json_default)
