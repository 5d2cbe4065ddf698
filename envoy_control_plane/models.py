"""Resource models held by the configuration store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

MAX_PORT = 65535


@dataclass
class Endpoint:
    """A single upstream host and port."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise TypeError(f"port must be an integer, got {self.port!r}")
        if not 0 <= self.port <= MAX_PORT:
            raise ValueError(f"port {self.port} is outside 0..{MAX_PORT}")

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Cluster:
    """A named group of upstream endpoints."""

    name: str
    endpoints: list[Endpoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "endpoints": [endpoint.to_dict() for endpoint in self.endpoints],
        }


@dataclass
class Route:
    """A path prefix that is forwarded to a cluster."""

    id: str
    path: str
    cluster_name: str
    prefix_rewrite: str | None = None

    @classmethod
    def create(
        cls, path: str, cluster_name: str, prefix_rewrite: str | None = None
    ) -> Route:
        """Build a route with a freshly generated random identifier."""
        return cls(
            id=str(uuid.uuid4()),
            path=path,
            cluster_name=cluster_name,
            prefix_rewrite=prefix_rewrite,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "cluster_name": self.cluster_name,
            "prefix_rewrite": self.prefix_rewrite,
        }