"""
Faultline Debug Pages - Fault page renderers.

A renderer turns a Fault into the output emitted when the dispatcher
silences default reporting:

- HtmlPageRenderer: styled HTML page (jinja2, autoescaped)
- JsonPageRenderer: JSON error document
- TextPageRenderer: plain text for terminals

In debug mode the HTML and JSON renderers include the traceback of the
underlying exception; otherwise they show only a generic message.

Color Palette:
  - Dark BG:        #001E2B
  - Dark Card:      #112733
  - Accent:         #00ED64
  - Error Red:      #CF4A22
  - Muted Text:     #889397
"""

from __future__ import annotations

import json
import linecache
import os
import sys
import traceback
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, select_autoescape

from ..core import Fault, severity_name


GENERIC_MESSAGE = "An internal error occurred. Please try again later."


# ============================================================================
# Template
# ============================================================================

_PAGE_CSS = r"""
*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
body {
  font-family: 'SF Mono', 'Fira Code', 'JetBrains Mono', 'Consolas', monospace;
  line-height: 1.6; background: #001E2B; color: #E8EDEB;
}
.fl-header { padding: 16px 32px; border-bottom: 2px solid #00ED64; background: #023430; }
.fl-container { max-width: 1100px; margin: 0 auto; padding: 32px; }
.fl-banner { border-left: 4px solid #CF4A22; background: #112733; padding: 20px 24px; border-radius: 8px; }
.fl-type { font-size: 20px; font-weight: 700; color: #CF4A22; }
.fl-message { margin-top: 6px; font-size: 15px; word-break: break-word; }
.fl-badge { display: inline-block; margin: 10px 8px 0 0; padding: 2px 10px; border-radius: 12px;
  border: 1px solid #00684A; color: #00ED64; font-size: 12px; }
.fl-muted { color: #889397; font-size: 13px; }
.fl-frame { margin-top: 16px; background: #112733; border: 1px solid #1C3A40; border-radius: 8px; }
.fl-frame-head { padding: 10px 16px; font-size: 13px; }
.fl-code { background: #0A1A22; font-size: 13px; overflow-x: auto; }
.fl-line { display: flex; white-space: pre; }
.fl-line.error-line { background: rgba(207,74,34,0.2); border-left: 3px solid #CF4A22; }
.fl-line-no { width: 56px; text-align: right; padding-right: 12px; color: #889397; user-select: none; }
pre.fl-raw { white-space: pre-wrap; word-break: break-word; font-size: 13px; margin-top: 24px; }
"""

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <style>{{ css | safe }}</style>
</head>
<body>
  <div class="fl-header"><strong>{{ heading }}</strong></div>
  <div class="fl-container">
    <div class="fl-banner">
      <div class="fl-type">{{ error_type }}</div>
      <div class="fl-message">{{ message }}</div>
      {% if debug %}
      <span class="fl-badge">Severity: {{ severity }}</span>
      <span class="fl-badge">Kind: {{ kind }}</span>
      <span class="fl-badge">At: {{ location }}</span>
      {% endif %}
    </div>
    {% if debug %}
    <div class="fl-muted" style="margin-top:24px;">
      {{ frames | length }} frame{{ '' if frames | length == 1 else 's' }}, most recent first
    </div>
    {% for frame in frames %}
    <div class="fl-frame">
      <div class="fl-frame-head">
        {{ frame.short_filename }}:{{ frame.lineno }} in <strong>{{ frame.func_name }}</strong>
      </div>
      <div class="fl-code">
        {% for lineno, code, is_error in frame.source_lines %}
        <div class="fl-line{{ ' error-line' if is_error else '' }}"><span class="fl-line-no">{{ lineno }}</span><span>{{ code }}</span></div>
        {% endfor %}
      </div>
    </div>
    {% endfor %}
    {% if raw_traceback %}<pre class="fl-raw">{{ raw_traceback }}</pre>{% endif %}
    <div class="fl-muted" style="margin-top:16px;">Python {{ python_version }}</div>
    {% endif %}
  </div>
</body>
</html>"""


_env = Environment(
    autoescape=select_autoescape(
        enabled_extensions=["html", "htm", "xml"],
        default_for_string=True,
    ),
    trim_blocks=True,
    lstrip_blocks=True,
)
_page = _env.from_string(_PAGE_TEMPLATE)


# ============================================================================
# Traceback extraction
# ============================================================================

def _read_source_lines(filename: str, lineno: int, context: int = 5) -> List[Tuple[int, str, bool]]:
    """Read source lines around a given line number.

    Returns list of (line_number, source_text, is_error_line).
    """
    lines: List[Tuple[int, str, bool]] = []
    start = max(1, lineno - context)

    for i in range(start, lineno + context + 1):
        line = linecache.getline(filename, i)
        if line:
            lines.append((i, line.rstrip('\n'), i == lineno))

    return lines


def _short_path(filename: str) -> str:
    cwd = os.getcwd()
    if filename.startswith(cwd + os.sep):
        return os.path.relpath(filename, cwd)
    return filename


def _extract_frames(exc: Optional[BaseException]) -> List[Dict[str, Any]]:
    """Extract stack frames (most recent first) with source context."""
    if exc is None:
        return []

    frames: List[Dict[str, Any]] = []
    for summary in traceback.extract_tb(exc.__traceback__):
        frames.append({
            'filename': summary.filename,
            'short_filename': _short_path(summary.filename),
            'lineno': summary.lineno,
            'func_name': summary.name,
            'source_lines': _read_source_lines(summary.filename, summary.lineno or 0),
        })

    frames.reverse()
    return frames


def _raw_traceback(fault: Fault) -> str:
    exc = fault.cause if fault.cause is not None else fault
    if exc.__traceback__ is None:
        return ""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


# ============================================================================
# Renderers
# ============================================================================

class HtmlPageRenderer:
    """Renders a styled HTML fault page."""

    def __init__(self, *, debug: bool = False, heading: str = "Internal Server Error"):
        self.debug = debug
        self.heading = heading

    def format(self, fault: Fault) -> str:
        if self.debug:
            error_type = fault.exception_type
            message = fault.message
            frames = _extract_frames(fault.cause)
            raw = _raw_traceback(fault)
        else:
            error_type = self.heading
            message = GENERIC_MESSAGE
            frames, raw = [], ""

        return _page.render(
            title=f"{error_type}: {message[:80]}",
            heading=self.heading,
            css=_PAGE_CSS,
            error_type=error_type,
            message=message,
            severity=severity_name(fault.severity),
            kind=fault.kind.value,
            location=fault.location,
            frames=frames,
            raw_traceback=raw,
            debug=self.debug,
            python_version=f'{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}',
        )


class JsonPageRenderer:
    """Renders a JSON error document."""

    def __init__(self, *, debug: bool = False, indent: Optional[int] = None):
        self.debug = debug
        self.indent = indent

    def format(self, fault: Fault) -> str:
        if self.debug:
            error = fault.to_dict()
            error["traceback"] = [
                {"file": f["filename"], "line": f["lineno"], "function": f["func_name"]}
                for f in _extract_frames(fault.cause)
            ]
        else:
            error = {"message": GENERIC_MESSAGE}
        return json.dumps({"error": error}, indent=self.indent, default=str)


class TextPageRenderer:
    """Renders a plain-text report for terminal output."""

    def format(self, fault: Fault) -> str:
        lines = [
            f"{fault.exception_type}: {fault.message}",
            f"  severity: {severity_name(fault.severity)}",
            f"  at: {fault.location}",
        ]
        raw = _raw_traceback(fault)
        if raw:
            lines.append("")
            lines.append(raw.rstrip("\n"))
        return "\n".join(lines) + "\n"


_RENDERERS = {
    "html": HtmlPageRenderer,
    "json": JsonPageRenderer,
    "text": TextPageRenderer,
}


def get_renderer(name: str, *, debug: bool = False):
    """
    Build a renderer by name.

    Args:
        name: "html", "json" or "text"
        debug: Include exception details (html/json)

    Raises:
        ValueError: for unknown renderer names
    """
    key = name.lower()
    if key not in _RENDERERS:
        raise ValueError(
            f"Unknown error page renderer {name!r}; expected one of {sorted(_RENDERERS)}"
        )
    if key == "text":
        return TextPageRenderer()
    return _RENDERERS[key](debug=debug)
