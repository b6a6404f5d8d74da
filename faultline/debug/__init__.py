"""
Faultline Debug - Fault page renderers.

Renderers used by the dispatcher when default fault visibility is
silenced:
- HTML page with traceback and source context (debug mode)
- JSON error document
- Plain-text report
"""

from .pages import (
    GENERIC_MESSAGE,
    HtmlPageRenderer,
    JsonPageRenderer,
    TextPageRenderer,
    get_renderer,
)

__all__ = [
    "GENERIC_MESSAGE",
    "HtmlPageRenderer",
    "JsonPageRenderer",
    "TextPageRenderer",
    "get_renderer",
]
