from collections import defaultdict

from envoy_control_plane.conversion import (
    AnyMessage,
    clusters_to_proto,
    get_resources_by_type,
    routes_to_proto,
)
from envoy_control_plane.models import Cluster, Endpoint, Route
from envoy_control_plane.protowire import decode_fields
from envoy_control_plane.store import ConfigStore

CLUSTER_URL = "type.googleapis.com/envoy.config.cluster.v3.Cluster"
ROUTE_URL = "type.googleapis.com/envoy.config.route.v3.RouteConfiguration"


def fields(data):
    result = defaultdict(list)
    for number, _wire, value in decode_fields(data):
        result[number].append(value)
    return result


def text(value):
    return value.decode("utf-8")


def test_cluster_to_proto_conversion():
    cluster = Cluster(
        name="test-cluster",
        endpoints=[Endpoint("127.0.0.1", 8080), Endpoint("127.0.0.1", 8081)],
    )
    resources = clusters_to_proto([cluster])
    assert len(resources) == 1
    resource = resources[0]
    assert resource.type_url == CLUSTER_URL
    assert resource.value

    decoded = fields(resource.value)
    assert text(decoded[1][0]) == "test-cluster"
    assert 33 in decoded
    load_assignment = fields(decoded[33][0])
    assert text(load_assignment[1][0]) == "test-cluster"
    assert len(load_assignment[2]) == 1
    locality = fields(load_assignment[2][0])
    assert len(locality[2]) == 2


def test_cluster_settings_are_encoded():
    decoded = fields(clusters_to_proto([Cluster("svc", [Endpoint("h", 1)])])[0].value)
    assert decoded[2] == [1]  # STRICT_DNS
    assert decoded[17] == [1]  # V4_ONLY
    assert fields(decoded[4][0])[1] == [5]
    assert 6 not in decoded  # ROUND_ROBIN is the default


def test_empty_clusters_conversion():
    assert clusters_to_proto([]) == []


def test_empty_routes_conversion():
    assert routes_to_proto([]) == []


def test_route_to_proto_conversion():
    route = Route("test-id", "/api/v1/users", "user-service", "/users")
    resources = routes_to_proto([route])
    assert len(resources) == 1
    resource = resources[0]
    assert resource.type_url == ROUTE_URL
    assert resource.value

    decoded = fields(resource.value)
    assert text(decoded[1][0]) == "local_route"
    assert len(decoded[2]) == 1
    virtual_host = fields(decoded[2][0])
    assert text(virtual_host[1][0]) == "local_service"
    assert [text(d) for d in virtual_host[2]] == ["*"]
    assert len(virtual_host[3]) == 1
    proto_route = fields(virtual_host[3][0])
    assert text(fields(proto_route[1][0])[1][0]) == "/api/v1/users"
    action = fields(proto_route[2][0])
    assert text(action[1][0]) == "user-service"


def test_multiple_routes_conversion():
    routes = [
        Route("route1", "/api/v1/users", "user-service", "/users"),
        Route("route2", "/api/v1/orders", "order-service", None),
    ]
    resources = routes_to_proto(routes)
    assert len(resources) == 1
    virtual_host = fields(fields(resources[0].value)[2][0])
    assert len(virtual_host[3]) == 2


def test_cluster_with_single_endpoint():
    cluster = Cluster("single-endpoint-cluster", [Endpoint("192.168.1.100", 3000)])
    resources = clusters_to_proto([cluster])
    assert len(resources) == 1
    decoded = fields(resources[0].value)
    assert text(decoded[1][0]) == "single-endpoint-cluster"
    locality = fields(fields(decoded[33][0])[2][0])
    assert len(locality[2]) == 1
    lb_endpoint = fields(locality[2][0])
    endpoint = fields(lb_endpoint[1][0])
    socket_address = fields(fields(endpoint[1][0])[1][0])
    assert text(socket_address[2][0]) == "192.168.1.100"
    assert socket_address[3] == [3000]


def _prefix_rewrite(route):
    resource = routes_to_proto([route])[0]
    proto_route = fields(fields(fields(resource.value)[2][0])[3][0])
    action = fields(proto_route[2][0])
    return text(action[5][0]) if 5 in action else ""


def test_route_without_prefix_rewrite():
    assert _prefix_rewrite(Route("test-id", "/health", "health-service", None)) == ""


def test_route_with_prefix_rewrite():
    route = Route("test-id", "/api/v1/health", "health-service", "/health")
    assert _prefix_rewrite(route) == "/health"


def test_multiple_clusters_conversion():
    clusters = [
        Cluster("service1", [Endpoint("127.0.0.1", 8080)]),
        Cluster("service2", [Endpoint("127.0.0.1", 8081)]),
    ]
    resources = clusters_to_proto(clusters)
    assert len(resources) == 2
    assert text(fields(resources[0].value)[1][0]) == "service1"
    assert text(fields(resources[1].value)[1][0]) == "service2"


def test_any_message_encode_round_trip():
    message = AnyMessage(CLUSTER_URL, b"\x0a\x03abc")
    decoded = fields(message.encode())
    assert text(decoded[1][0]) == CLUSTER_URL
    assert decoded[2] == [b"\x0a\x03abc"]


def test_get_resources_by_type_clusters():
    store = ConfigStore()
    store.add_cluster(Cluster("test-cluster", [Endpoint("127.0.0.1", 8080)]))
    resources = get_resources_by_type(CLUSTER_URL, store)
    assert len(resources) == 1
    assert resources[0].type_url == CLUSTER_URL
    assert resources[0].value


def test_get_resources_by_type_routes():
    store = ConfigStore()
    store.add_route(Route("test-id", "/api/v1/test", "test-cluster", "/test"))
    resources = get_resources_by_type(ROUTE_URL, store)
    assert len(resources) == 1
    assert resources[0].type_url == ROUTE_URL


def test_get_resources_unsupported_type():
    store = ConfigStore()
    store.add_cluster(Cluster("c", [Endpoint("h", 1)]))
    assert get_resources_by_type("type.googleapis.com/envoy.config.listener.v3.Listener", store) == []


def test_routes_consolidated_from_store():
    store = ConfigStore()
    store.add_route(Route("route1", "/api/v1/users", "user-service", "/users"))
    store.add_route(Route("route2", "/api/v1/orders", "order-service", None))
    assert len(store.list_routes()) == 2
    assert len(get_resources_by_type(ROUTE_URL, store)) == 1


def test_clusters_from_store():
    store = ConfigStore()
    store.add_cluster(Cluster("service1", [Endpoint("127.0.0.1", 8080)]))
    store.add_cluster(Cluster("service2", [Endpoint("127.0.0.1", 8081)]))
    assert len(get_resources_by_type(CLUSTER_URL, store)) == 2