"""Command palette providers for profiles and cluster actions."""

from __future__ import annotations

from textual.app import App
from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .config import ProfileConfig
from .session import SessionManager


def _app_action(app: App, method: str, *args: str) -> IgnoreReturnCallbackType:
    """Callback awaiting `app.<method>(*args)`; a no-op on apps without it."""

    async def _run() -> None:
        handler = getattr(app, method, None)
        if handler is None:
            return
        await handler(*args)

    return _run


def describe_profile(profile: ProfileConfig) -> str:
    endpoints = ", ".join(f"{entry.host}:{entry.port}" for entry in profile.endpoints) or "no endpoints"
    return f"{endpoints} (read-only)" if profile.locked else endpoints


class ProfileSwitchProvider(Provider):
    """Offers every configured profile; the active one is marked."""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for label, profile in self._entries():
            score = matcher.match(profile.name)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=_app_action(self.app, "switch_profile", profile.name),
                    help=describe_profile(profile),
                )

    async def discover(self) -> Hits:
        for label, profile in self._entries():
            yield DiscoveryHit(
                display=label,
                command=_app_action(self.app, "switch_profile", profile.name),
                help=describe_profile(profile),
            )

    def _entries(self) -> list[tuple[str, ProfileConfig]]:
        manager = getattr(self.app, "session_manager", None)
        if not isinstance(manager, SessionManager):
            return []
        active = manager.active_profile_name
        entries = []
        for profile in manager.profiles:
            suffix = " (active)" if profile.name == active else ""
            entries.append((f"Switch to profile: {profile.name}{suffix}", profile))
        return entries


class ClusterActionsProvider(Provider):
    """Connection and cluster actions for the active profile."""

    ACTIONS: tuple[tuple[str, str, str], ...] = (
        ("Reconnect to active profile", "reconnect", "Drop the current connection and open a new one."),
        ("Show cluster status", "show_cluster_status", "Server version, leader, revision and members."),
        ("Delete selected key", "delete_selected_key", "Remove the highlighted key; refused on read-only profiles."),
    )

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for label, method, help_text in self.ACTIONS:
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=_app_action(self.app, method),
                    help=help_text,
                )

    async def discover(self) -> Hits:
        for label, method, help_text in self.ACTIONS:
            yield DiscoveryHit(display=label, command=_app_action(self.app, method), help=help_text)


__all__ = ["ClusterActionsProvider", "ProfileSwitchProvider", "describe_profile"]
