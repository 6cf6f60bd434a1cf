"""Textual application entry point for etcdui."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from .commands import CommandError, EtcdCommands
from .config import AppConfig, load_config
from .connections import Connector
from .providers import ClusterActionsProvider, ProfileSwitchProvider
from .session import SessionManager
from .widgets import KeyBrowser, StatusBar

LOG = logging.getLogger(__name__)


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


class EtcdUiApp(App[None]):
    """Terminal client for browsing and editing an etcd cluster."""

    COMMANDS = App.COMMANDS | {ProfileSwitchProvider, ClusterActionsProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "refresh", "Refresh keys"),
        ("ctrl+d", "delete_key", "Delete key"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(self, *, connector: Connector | None = None) -> None:
        super().__init__()
        self._config = _load_app_config()
        self._session_manager = SessionManager(self._config, connector=connector)
        self._commands = EtcdCommands(self._session_manager)
        self._browser: KeyBrowser | None = None
        self._pending_notifications: list[tuple[str, str]] = []

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        self._browser = KeyBrowser(self._commands)
        yield self._browser
        yield StatusBar(self._session_manager)
        yield Footer()

    async def on_mount(self) -> None:
        self._flush_pending_notifications()
        if self._session_manager.active_profile_name is None:
            self._safe_notify("No active profile. Pick one from the command palette.", severity="warning")
            return
        await self.reconnect()

    async def action_refresh(self) -> None:
        if self._browser is not None:
            await self._browser.reload()

    @property
    def session_manager(self) -> SessionManager:
        """Expose the session manager for tests."""

        return self._session_manager

    @property
    def commands(self) -> EtcdCommands:
        return self._commands

    async def switch_profile(self, name: str) -> None:
        """Activate the requested connection profile and persist the choice."""

        if name not in self._config.profile_names():
            self._safe_notify(f"Profile '{name}' not found.", severity="error")
            return
        config = self._config.with_active_profile(name)
        try:
            await self._commands.update_config(config)
        except CommandError as exc:
            LOG.exception("Failed to switch profile", extra={"profile": name})
            self._safe_notify(str(exc), severity="error")
            return
        self._config = config
        self._safe_notify(f"Switched to profile: {name}", severity="information")
        await self.action_refresh()

    async def reconnect(self) -> None:
        """Drop the current connection and connect to the active profile again."""

        try:
            message = await self._commands.initialize()
        except CommandError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        if message:
            self._safe_notify(message, severity="information")
        await self.action_refresh()

    async def action_delete_key(self) -> None:
        await self.delete_selected_key()

    async def delete_selected_key(self) -> None:
        key = self._browser.selected_key if self._browser is not None else None
        if key is None:
            self._safe_notify("No key selected.", severity="warning")
            return
        await self.delete_key(key)

    async def delete_key(self, key: str) -> None:
        """Delete `key`; read-only profiles are refused before any request."""

        try:
            await self._commands.delete_key(key)
        except CommandError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        self._safe_notify(f"Deleted {key}", severity="information")
        await self.action_refresh()

    async def show_cluster_status(self) -> None:
        try:
            status = await self._commands.cluster_status()
            members = await self._commands.cluster_members()
        except CommandError as exc:
            self._safe_notify(str(exc), severity="error")
            return
        leader = next((member["name"] for member in members if member["id"] == status["leader"]), None)
        self._safe_notify(
            f"etcd {status['version']}, {len(members)} member(s), leader {leader or status['leader']}, "
            f"revision {status['revision']}, db {status['db_size']} bytes",
            severity="error" if status["errors"] else "information",
        )

    def _safe_notify(self, message: str, *, severity: str = "information") -> None:
        if self.is_running:
            try:
                self.notify(message, severity=severity)  # type: ignore[arg-type]
            except Exception:
                LOG.exception("Failed to display notification", extra={"message": message})
        else:
            self._pending_notifications.append((message, severity))

    def _flush_pending_notifications(self) -> None:
        if not self._pending_notifications:
            return
        pending = list(self._pending_notifications)
        self._pending_notifications.clear()
        for message, severity in pending:
            try:
                self.notify(message, severity=severity)  # type: ignore[arg-type]
            except Exception:
                LOG.exception("Failed to display queued notification", extra={"message": message})

    async def _shutdown(self) -> None:
        await self._commands.close()
        await super()._shutdown()


def main() -> None:
    """Invoke the Textual application."""

    EtcdUiApp().run()


if __name__ == "__main__":
    main()
