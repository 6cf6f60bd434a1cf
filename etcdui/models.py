"""Shared dataclasses used across connection/session modules."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Single etcd client endpoint."""

    host: str
    port: int = 2379

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    name: str
    endpoints: tuple[Endpoint, ...] = ()
    credential: tuple[str, str] | None = None
    timeout: float | None = None
    connect_timeout: float | None = None
    locked: bool = False


@dataclass(frozen=True, slots=True)
class Item:
    """Decoded key/value pair plus store metadata."""

    key: str
    value: str
    version: int = 0
    create_revision: int = 0
    mod_revision: int = 0
    lease: int = 0


@dataclass(frozen=True, slots=True)
class Member:
    """Cluster member as reported by the cluster service."""

    id: int
    name: str
    peer_urls: tuple[str, ...] = ()
    client_urls: tuple[str, ...] = ()
    is_learner: bool = False


@dataclass(frozen=True, slots=True)
class ClusterStatus:
    """Status of the member that answered the request."""

    version: str
    db_size: int = 0
    leader: int = 0
    member_id: int = 0
    raft_index: int = 0
    raft_term: int = 0
    revision: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)


__all__ = ["ClusterStatus", "ConnectionProfile", "Endpoint", "Item", "Member"]
