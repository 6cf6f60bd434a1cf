"""Widget library for the Textual UI."""

from __future__ import annotations

from .key_browser import KeyBrowser
from .status_bar import StatusBar

__all__ = ["KeyBrowser", "StatusBar"]
