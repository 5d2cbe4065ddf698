# envoy-control-plane

A small control plane for Envoy proxies. It keeps routes and clusters in
memory, lets you manage them over a JSON REST API, and serves them to
connected proxies over the Aggregated Discovery Service (ADS) gRPC stream.
Every change made through the REST API bumps the resource version and pushes
fresh resources to every open ADS stream that has asked for them.

It can also render a static Envoy bootstrap file (YAML) from the current
routes and clusters.

## Running

Install the package, put a configuration file in the working directory, then
start both servers with:

    envoy-control-plane

Use `--config PATH` to read another file; the path may be given with or
without its extension (default: `config`). The REST API (served by uvicorn)
and the xDS gRPC server run side by side; the program stops when either of
them stops. If the settings cannot be loaded or a port cannot be bound, an
error is printed and the command exits with status 1.

## Configuration

Settings are read by `AppConfig.load(name="config")`, which looks for
`name.toml`, `name.json`, `name.yaml` or `name.yml`, in that order (or uses
`name` itself if it already has one of these extensions):

```yaml
server:
  host: 0.0.0.0
  rest_port: 8080
  xds_port: 18000
envoy:
  config_dir: ./envoy-configs
  admin_port: 9901
logging:
  level: info
```

| Key                 | Meaning                                                   |
|---------------------|-----------------------------------------------------------|
| `server.host`       | address both servers bind to                              |
| `server.rest_port`  | port of the REST API                                      |
| `server.xds_port`   | port of the ADS gRPC service                              |
| `envoy.config_dir`  | directory where generated bootstrap files are written     |
| `envoy.admin_port`  | admin port written into generated bootstrap files         |
| `logging.level`     | log level of the REST server (`critical` … `trace`; anything else means `info`) |

Ports must be integers from 0 to 65535. A missing file, a missing field or a
value of the wrong kind raises `ConfigError`. `AppConfig.from_dict` builds
the same settings from already parsed data.

## REST API

Successful responses share one envelope:

```json
{"success": true, "data": ..., "message": "..."}
```

| Method | Path               | Body                                             | Result                          |
|--------|--------------------|--------------------------------------------------|---------------------------------|
| GET    | `/health`          |                                                  | plain text `OK`                 |
| POST   | `/routes`          | `{"path", "cluster_name", "prefix_rewrite"?}`    | id (a random UUID) of the route |
| GET    | `/routes`          |                                                  | all routes                      |
| GET    | `/routes/{id}`     |                                                  | one route, or 404               |
| DELETE | `/routes/{id}`     |                                                  | `data: null`, or 404            |
| POST   | `/clusters`        | `{"name", "endpoints": [{"host", "port"}, ...]}` | name of the cluster             |
| GET    | `/clusters`        |                                                  | all clusters                    |
| GET    | `/clusters/{name}` |                                                  | one cluster, or 404             |
| DELETE | `/clusters/{name}` |                                                  | `data: null`, or 404            |
| POST   | `/generate-config` | `{"proxy_name", "proxy_port"}`                   | path of the written YAML file   |

Bodies with missing fields or ports outside 0–65535 are rejected with 422.
A 404 has an empty body. Adding a cluster whose name already exists replaces
it. Creating or deleting a route or cluster increments the xDS version.

`/generate-config` loads the settings from `config` in the working directory
on every call, writes `<config_dir>/<proxy_name>.yaml` (creating the
directory), and answers 500 if the settings cannot be loaded or the file
cannot be written.

## xDS

`SimpleXdsServer.generic_handler()` returns a gRPC handler for
`envoy.service.discovery.v3.AggregatedDiscoveryService/StreamAggregatedResources`.
It answers requests for these resource types:

- `type.googleapis.com/envoy.config.cluster.v3.Cluster` — one resource per
  cluster, `STRICT_DNS`, round robin, 5 s connect timeout, IPv4 lookups only;
- `type.googleapis.com/envoy.config.route.v3.RouteConfiguration` — a single
  `local_route` configuration with one `local_service` virtual host matching
  every domain (`*`) and holding all routes as prefix matches; no routes give
  no resource.

Any other type is answered with an empty resource list. Requests that carry a
nonce are ACKs or NACKs and are logged but not answered. Nonces are
increasing integers starting at 0; versions start at 1 and
`increment_version()` returns the new one. After an update each stream
re-sends every type its client has asked for.

## Using it as a library

```python
from envoy_control_plane.models import Cluster, Endpoint, Route
from envoy_control_plane.store import ConfigStore
from envoy_control_plane.discovery import SimpleXdsServer
from envoy_control_plane.api import create_app

store = ConfigStore()
store.add_cluster(Cluster(name="users", endpoints=[Endpoint(host="10.0.0.5", port=8080)]))
store.add_route(Route.create("/api/users", "users", "/users"))

xds = SimpleXdsServer(store)
app = create_app(store, xds)   # a FastAPI application
```

- `envoy_control_plane.store.ConfigStore` is thread-safe and returns copies.
- `envoy_control_plane.conversion` turns routes and clusters into
  protobuf-encoded `AnyMessage` values (`routes_to_proto`,
  `clusters_to_proto`, `get_resources_by_type`).
- `envoy_control_plane.discovery` holds `DiscoveryRequest` and
  `DiscoveryResponse` with `encode`/`decode`, and
  `SimpleXdsServer.stream_aggregated_resources`, an async generator that can
  be driven without gRPC.
- `envoy_control_plane.envoy_config` builds a bootstrap dictionary with
  `generate_config` and writes it as YAML with `write_config_to_file`.
- `envoy_control_plane.protowire` has the small protobuf wire-format helpers
  the above are built on.

## Limits

- Routes and clusters live only in memory and are lost when the process stops.
- Only the aggregated stream is served; there are no separate CDS or RDS
  services, and listener and endpoint resources are never sent over xDS.
- NACKs are logged only; nothing is rolled back.

## Tests

The test suite uses pytest; install the `test` extra to get its dependencies.