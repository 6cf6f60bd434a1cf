"""App configuration loading helpers."""

from __future__ import annotations

import json
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field, ValidationError

from .models import ConnectionProfile, Endpoint

CONFIG_FILE = Path.home() / ".config" / "etcdui" / "config.toml"


class EndpointConfig(BaseModel):
    """Single `host:port` pair of a profile."""

    host: str
    port: int = Field(default=2379, ge=1, le=65535)


class ProfileConfig(BaseModel):
    """Connection profile configuration stored in config.toml."""

    name: str
    endpoints: list[EndpointConfig] = Field(default_factory=list)
    username: str | None = None
    password: str | None = None
    timeout_ms: int | None = None
    connect_timeout_ms: int | None = None
    locked: bool | None = None

    def to_profile(self) -> ConnectionProfile:
        """Build the runtime profile handed to the connector."""

        credential = (self.username, self.password or "") if self.username else None
        return ConnectionProfile(
            name=self.name,
            endpoints=tuple(Endpoint(host=entry.host, port=entry.port) for entry in self.endpoints),
            credential=credential,
            timeout=self.timeout_ms / 1000 if self.timeout_ms is not None else None,
            connect_timeout=(
                self.connect_timeout_ms / 1000 if self.connect_timeout_ms is not None else None
            ),
            locked=bool(self.locked),
        )


class AppConfig(BaseModel):
    """Shape of the application configuration file."""

    theme: str = "dark"
    profiles: list[ProfileConfig] = Field(default_factory=lambda: list(_default_profiles()))
    active_profile: str | None = None

    def current_profile(self) -> ProfileConfig | None:
        """Resolve the active profile; dangling names resolve to None."""

        if not self.active_profile:
            return None
        for profile in self.profiles:
            if profile.name == self.active_profile:
                return profile
        return None

    def profile_names(self) -> tuple[str, ...]:
        return tuple(profile.name for profile in self.profiles)

    def with_active_profile(self, name: str | None) -> AppConfig:
        """Return a copy with the active profile updated."""

        return self.model_copy(update={"active_profile": name})

    def with_profiles(self, profiles: list[ProfileConfig]) -> AppConfig:
        """Return a copy with the profile list replaced."""

        return self.model_copy(update={"profiles": list(profiles)})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    profiles_data = data.get("profiles")
    profiles: list[ProfileConfig] | None = None
    if isinstance(profiles_data, list):
        profiles = []
        for entry in profiles_data:
            try:
                profiles.append(ProfileConfig.model_validate(entry))
            except ValidationError:
                continue

    return AppConfig(
        theme=data.get("theme", AppConfig.model_fields["theme"].default),
        profiles=profiles if profiles is not None else list(_default_profiles()),
        active_profile=data.get("active_profile"),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"theme = {_quote(config.theme)}"]
    if config.active_profile:
        lines.append(f"active_profile = {_quote(config.active_profile)}")
    if config.profiles:
        lines.append("")
        for profile in config.profiles:
            lines.append("[[profiles]]")
            lines.append(f"name = {_quote(profile.name)}")
            if profile.username:
                lines.append(f"username = {_quote(profile.username)}")
            if profile.password:
                lines.append(f"password = {_quote(profile.password)}")
            if profile.timeout_ms is not None:
                lines.append(f"timeout_ms = {profile.timeout_ms}")
            if profile.connect_timeout_ms is not None:
                lines.append(f"connect_timeout_ms = {profile.connect_timeout_ms}")
            if profile.locked is not None:
                lines.append(f"locked = {str(profile.locked).lower()}")
            for endpoint in profile.endpoints:
                lines.append("")
                lines.append("[[profiles.endpoints]]")
                lines.append(f"host = {_quote(endpoint.host)}")
                lines.append(f"port = {endpoint.port}")
            lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def config_file_exists() -> bool:
    return CONFIG_FILE.exists()


def config_file_path() -> str:
    return str(CONFIG_FILE)


def _quote(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value)


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        theme = raw.get("theme")
        if isinstance(theme, str):
            data["theme"] = theme
        active_profile = raw.get("active_profile")
        if isinstance(active_profile, str):
            data["active_profile"] = active_profile
        profiles = raw.get("profiles")
        if isinstance(profiles, list):
            parsed_profiles: list[dict[str, object]] = []
            for profile in profiles:
                if not isinstance(profile, dict):
                    continue
                parsed: dict[str, object] = {}
                for key in ("name", "username", "password"):
                    value = profile.get(key)
                    if isinstance(value, str):
                        parsed[key] = value
                for key in ("timeout_ms", "connect_timeout_ms"):
                    value = profile.get(key)
                    if isinstance(value, int) and not isinstance(value, bool):
                        parsed[key] = value
                locked = profile.get("locked")
                if isinstance(locked, bool):
                    parsed["locked"] = locked
                endpoints = profile.get("endpoints")
                if isinstance(endpoints, list):
                    parsed["endpoints"] = [
                        {"host": entry["host"], "port": entry.get("port", 2379)}
                        for entry in endpoints
                        if isinstance(entry, dict) and isinstance(entry.get("host"), str)
                    ]
                if parsed.get("name"):
                    parsed_profiles.append(parsed)
            if parsed_profiles:
                data["profiles"] = parsed_profiles
    return data


def _default_profiles() -> tuple[ProfileConfig, ...]:
    """Default profiles shown on first run before config is customized."""

    return (
        ProfileConfig(
            name="Local etcd",
            endpoints=[EndpointConfig(host="localhost", port=2379)],
        ),
    )
