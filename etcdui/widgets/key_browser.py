"""Prefix input plus key/value table backed by the command boundary."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Input, Static

from etcdui.commands import CommandError, EtcdCommands

DEFAULT_PREFIX = "/"


class KeyBrowser(Container):
    """Lists the keys under a prefix."""

    DEFAULT_CSS = """
    KeyBrowser {
        layout: vertical;
        border: round $primary 40%;
        padding: 1 2;
        height: 1fr;
        background: $surface;
    }

    KeyBrowser .panel-title {
        text-style: bold;
    }

    KeyBrowser Input {
        border: heavy $primary;
    }

    #browse-status {
        color: $text-muted;
        height: 1;
    }

    KeyBrowser #key-table {
        height: 1fr;
        margin-top: 1;
        border-top: solid $surface-darken-2;
    }
    """

    COLUMNS = ("Key", "Value", "Version", "Mod revision", "Lease")

    def __init__(self, commands: EtcdCommands, *, prefix: str = DEFAULT_PREFIX) -> None:
        super().__init__(id="key-browser")
        self._commands = commands
        self._prefix = prefix
        self._table: DataTable | None = None
        self._status: Static | None = None
        self._value_limit = 80
        self._keys: list[str] = []

    @property
    def prefix(self) -> str:
        return self._prefix

    def compose(self) -> ComposeResult:
        yield Static("Keys", classes="panel-title")
        yield Input(value=self._prefix, placeholder="Key prefix, e.g. /registry/", id="prefix-input")
        yield Static("", id="browse-status")
        yield DataTable(id="key-table", zebra_stripes=True)

    async def on_mount(self) -> None:
        self._table = self.query_one("#key-table", DataTable)
        self._status = self.query_one("#browse-status", Static)
        self._table.cursor_type = "row"
        self._table.add_columns(*self.COLUMNS)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        self._prefix = event.value
        event.stop()
        await self.reload()

    async def reload(self) -> None:
        """Fetch the current prefix and redraw the table."""

        self._set_status(f"Loading {self._prefix!r}…")
        try:
            items = await self._commands.list_keys(self._prefix)
        except CommandError as exc:
            self._set_status(f"Error: {exc}")
            self.render_items(())
            return
        self.render_items(items)
        self._set_status(f"{len(items)} key(s) under {self._prefix!r}")

    @property
    def selected_key(self) -> str | None:
        """Key under the table cursor, if any."""

        if not self._table or not self._keys:
            return None
        row = self._table.cursor_row
        return self._keys[row] if 0 <= row < len(self._keys) else None

    def render_items(self, items: Sequence[Mapping[str, Any]]) -> None:
        if not self._table:
            return
        self._table.clear()
        ordered = sorted(items, key=lambda entry: entry["key"])
        self._keys = [item["key"] for item in ordered]
        for item in ordered:
            self._table.add_row(
                item["key"],
                self._truncate(item["value"]),
                str(item["version"]),
                str(item["mod_revision"]),
                str(item["lease"]) if item["lease"] else "",
                key=item["key"],
            )

    def _set_status(self, message: str) -> None:
        if self._status:
            self._status.update(message)

    def _truncate(self, value: str) -> str:
        first_line = value.splitlines()[0] if value else ""
        if len(first_line) > self._value_limit or first_line != value:
            return first_line[: self._value_limit] + "…"
        return first_line


__all__ = ["DEFAULT_PREFIX", "KeyBrowser"]
