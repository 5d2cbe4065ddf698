"""Generation of static Envoy bootstrap configuration files."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from .models import Cluster, Route
from .settings import AppConfig
from .store import ConfigStore

HTTP_CONNECTION_MANAGER_TYPE = (
    "type.googleapis.com/envoy.extensions.filters.network."
    "http_connection_manager.v3.HttpConnectionManager"
)
ROUTER_TYPE = "type.googleapis.com/envoy.extensions.filters.http.router.v3.Router"


def _socket_address(address: str, port: int) -> dict[str, Any]:
    return {"socket_address": {"address": address, "port_value": port}}


def _envoy_route(route: Route) -> dict[str, Any]:
    action: dict[str, Any] = {"cluster": route.cluster_name}
    if route.prefix_rewrite is not None:
        action["prefix_rewrite"] = route.prefix_rewrite
    return {"match": {"prefix": route.path}, "route": action}


def _listener(routes: Iterable[Route], port: int) -> dict[str, Any]:
    http_connection_manager = {
        "@type": HTTP_CONNECTION_MANAGER_TYPE,
        "stat_prefix": "ingress_http",
        "route_config": {
            "name": "local_route",
            "virtual_hosts": [
                {
                    "name": "local_service",
                    "domains": ["*"],
                    "routes": [_envoy_route(route) for route in routes],
                }
            ],
        },
        "http_filters": [
            {"name": "envoy.filters.http.router", "typed_config": {"@type": ROUTER_TYPE}}
        ],
    }
    return {
        "name": "listener_0",
        "address": _socket_address("0.0.0.0", port),
        "filter_chains": [
            {
                "filters": [
                    {
                        "name": "envoy.filters.network.http_connection_manager",
                        "typed_config": http_connection_manager,
                    }
                ]
            }
        ],
    }


def _envoy_cluster(cluster: Cluster) -> dict[str, Any]:
    lb_endpoints = [
        {"endpoint": {"address": _socket_address(endpoint.host, endpoint.port)}}
        for endpoint in cluster.endpoints
    ]
    return {
        "name": cluster.name,
        "type": "STRICT_DNS",
        "lb_policy": "ROUND_ROBIN",
        "load_assignment": {
            "cluster_name": cluster.name,
            "endpoints": [{"lb_endpoints": lb_endpoints}],
        },
    }


def generate_config(store: ConfigStore, app_config: AppConfig, proxy_port: int) -> dict[str, Any]:
    """Build a static Envoy configuration from the stored routes and clusters."""
    return {
        "admin": {"address": _socket_address("127.0.0.1", app_config.envoy.admin_port)},
        "static_resources": {
            "listeners": [_listener(store.list_routes(), proxy_port)],
            "clusters": [_envoy_cluster(cluster) for cluster in store.list_clusters()],
        },
    }


def write_config_to_file(config: dict[str, Any], file_path: str | Path) -> None:
    """Write the configuration as YAML, keeping key order."""
    content = yaml.safe_dump(config, sort_keys=False, default_flow_style=False)
    Path(file_path).write_text(content, encoding="utf-8")