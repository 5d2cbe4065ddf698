"""Conversion of stored resources into Envoy xDS protobuf messages."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Cluster, Endpoint, Route
from .protowire import bytes_field, message_field, string_field, varint_field
from .store import ConfigStore

logger = logging.getLogger(__name__)

CLUSTER_TYPE_URL = "type.googleapis.com/envoy.config.cluster.v3.Cluster"
ROUTE_CONFIGURATION_TYPE_URL = "type.googleapis.com/envoy.config.route.v3.RouteConfiguration"

_DISCOVERY_TYPE_STRICT_DNS = 1
_DNS_LOOKUP_V4_ONLY = 1
_CONNECT_TIMEOUT_SECONDS = 5


@dataclass(frozen=True)
class AnyMessage:
    """A google.protobuf.Any: a type URL and the encoded message."""

    type_url: str
    value: bytes

    def encode(self) -> bytes:
        out = b""
        if self.type_url:
            out += string_field(1, self.type_url)
        if self.value:
            out += bytes_field(2, self.value)
        return out


def _optional_string(number: int, value: str | None) -> bytes:
    return string_field(number, value) if value else b""


def _encode_route(route: Route) -> bytes:
    route_match = string_field(1, route.path)
    route_action = string_field(1, route.cluster_name) + _optional_string(5, route.prefix_rewrite)
    return message_field(1, route_match) + message_field(2, route_action)


def routes_to_proto(routes: Iterable[Route]) -> list[AnyMessage]:
    """Wrap all routes in one RouteConfiguration; an empty input gives no resources."""
    routes = list(routes)
    if not routes:
        return []
    logger.info("Creating RouteConfiguration with %d routes", len(routes))
    virtual_host = string_field(1, "local_service") + string_field(2, "*")
    for route in routes:
        logger.info("Route: %s -> %s", route.path, route.cluster_name)
        virtual_host += message_field(3, _encode_route(route))
    route_config = string_field(1, "local_route") + message_field(2, virtual_host)
    logger.info("Encoded RouteConfiguration in %d bytes", len(route_config))
    return [AnyMessage(ROUTE_CONFIGURATION_TYPE_URL, route_config)]


def _encode_lb_endpoint(endpoint: Endpoint) -> bytes:
    socket_address = _optional_string(2, endpoint.host) + varint_field(3, endpoint.port)
    address = message_field(1, socket_address)
    proto_endpoint = message_field(1, address)
    return message_field(1, proto_endpoint)


def _encode_cluster(cluster: Cluster) -> bytes:
    locality = b"".join(
        message_field(2, _encode_lb_endpoint(endpoint)) for endpoint in cluster.endpoints
    )
    load_assignment = _optional_string(1, cluster.name) + message_field(2, locality)
    connect_timeout = varint_field(1, _CONNECT_TIMEOUT_SECONDS)
    return (
        _optional_string(1, cluster.name)
        + varint_field(2, _DISCOVERY_TYPE_STRICT_DNS)
        + message_field(4, connect_timeout)
        + varint_field(17, _DNS_LOOKUP_V4_ONLY)
        + message_field(33, load_assignment)
    )


def clusters_to_proto(clusters: Iterable[Cluster]) -> list[AnyMessage]:
    """Encode each cluster as a STRICT_DNS, round-robin Cluster resource."""
    resources = []
    for cluster in clusters:
        logger.info("Cluster: %s (%d endpoints)", cluster.name, len(cluster.endpoints))
        encoded = _encode_cluster(cluster)
        logger.info("Encoded %d bytes for %s", len(encoded), cluster.name)
        resources.append(AnyMessage(CLUSTER_TYPE_URL, encoded))
    return resources


def get_resources_by_type(type_url: str, store: ConfigStore) -> list[AnyMessage]:
    """Return the resources of the requested type; unsupported types give none."""
    if type_url == CLUSTER_TYPE_URL:
        return clusters_to_proto(store.list_clusters())
    if type_url == ROUTE_CONFIGURATION_TYPE_URL:
        return routes_to_proto(store.list_routes())
    logger.info("Unsupported resource type: %s", type_url)
    return []