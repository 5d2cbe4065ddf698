"""Thread-safe in-memory storage for routes and clusters."""

from __future__ import annotations

import copy
import threading

from .models import Cluster, Route


class ConfigStore:
    """Holds routes by id and clusters by name; returns copies on reads."""

    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}
        self._clusters: dict[str, Cluster] = {}
        self._lock = threading.Lock()

    def add_route(self, route: Route) -> str:
        with self._lock:
            self._routes[route.id] = copy.deepcopy(route)
        return route.id

    def get_route(self, route_id: str) -> Route | None:
        with self._lock:
            route = self._routes.get(route_id)
            return copy.deepcopy(route) if route is not None else None

    def list_routes(self) -> list[Route]:
        with self._lock:
            return [copy.deepcopy(route) for route in self._routes.values()]

    def remove_route(self, route_id: str) -> Route | None:
        with self._lock:
            return self._routes.pop(route_id, None)

    def add_cluster(self, cluster: Cluster) -> str:
        with self._lock:
            self._clusters[cluster.name] = copy.deepcopy(cluster)
        return cluster.name

    def get_cluster(self, name: str) -> Cluster | None:
        with self._lock:
            cluster = self._clusters.get(name)
            return copy.deepcopy(cluster) if cluster is not None else None

    def list_clusters(self) -> list[Cluster]:
        with self._lock:
            return [copy.deepcopy(cluster) for cluster in self._clusters.values()]

    def remove_cluster(self, name: str) -> Cluster | None:
        with self._lock:
            return self._clusters.pop(name, None)