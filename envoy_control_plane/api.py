"""REST API for managing routes and clusters and generating Envoy configuration."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from .discovery import SimpleXdsServer
from .envoy_config import generate_config, write_config_to_file
from .models import Cluster, Endpoint, Route
from .settings import AppConfig, ConfigError
from .store import ConfigStore

_MAX_PORT = 65535


class CreateRouteRequest(BaseModel):
    path: str
    cluster_name: str
    prefix_rewrite: str | None = None


class CreateEndpointRequest(BaseModel):
    host: str
    port: int = Field(ge=0, le=_MAX_PORT)


class CreateClusterRequest(BaseModel):
    name: str
    endpoints: list[CreateEndpointRequest]


class GenerateConfigRequest(BaseModel):
    proxy_name: str
    proxy_port: int = Field(ge=0, le=_MAX_PORT)


def _success(data: Any, message: str) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def _status(code: int) -> Response:
    return Response(status_code=code)


def create_app(store: ConfigStore, xds_server: SimpleXdsServer) -> FastAPI:
    """Build the REST application sharing ``store`` and ``xds_server``."""
    app = FastAPI(title="Envoy Control Plane")
    app.state.store = store
    app.state.xds_server = xds_server

    @app.post("/routes")
    def create_route(payload: CreateRouteRequest):
        route = Route.create(payload.path, payload.cluster_name, payload.prefix_rewrite)
        route_id = store.add_route(route)
        xds_server.increment_version()
        return _success(route_id, "Route created successfully")

    @app.get("/routes")
    def list_routes():
        routes = [route.to_dict() for route in store.list_routes()]
        return _success(routes, "Routes retrieved successfully")

    @app.get("/routes/{route_id}")
    def get_route(route_id: str):
        route = store.get_route(route_id)
        if route is None:
            return _status(404)
        return _success(route.to_dict(), "Route found")

    @app.delete("/routes/{route_id}")
    def delete_route(route_id: str):
        if store.remove_route(route_id) is None:
            return _status(404)
        xds_server.increment_version()
        return _success(None, "Route deleted successfully")

    @app.post("/clusters")
    def create_cluster(payload: CreateClusterRequest):
        endpoints = [Endpoint(endpoint.host, endpoint.port) for endpoint in payload.endpoints]
        name = store.add_cluster(Cluster(payload.name, endpoints))
        xds_server.increment_version()
        return _success(name, "Cluster created successfully")

    @app.get("/clusters")
    def list_clusters():
        clusters = [cluster.to_dict() for cluster in store.list_clusters()]
        return _success(clusters, "Clusters retrieved successfully")

    @app.get("/clusters/{name}")
    def get_cluster(name: str):
        cluster = store.get_cluster(name)
        if cluster is None:
            return _status(404)
        return _success(cluster.to_dict(), "Cluster found")

    @app.delete("/clusters/{name}")
    def delete_cluster(name: str):
        if store.remove_cluster(name) is None:
            return _status(404)
        xds_server.increment_version()
        return _success(None, "Cluster deleted successfully")

    @app.post("/generate-config")
    def generate_envoy_config(payload: GenerateConfigRequest):
        try:
            app_config = AppConfig.load()
        except ConfigError:
            return _status(500)
        envoy_config = generate_config(store, app_config, payload.proxy_port)
        config_dir = app_config.envoy.config_dir
        file_path = config_dir / f"{payload.proxy_name}.yaml"
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
            write_config_to_file(envoy_config, file_path)
        except OSError:
            return _status(500)
        return _success(str(file_path), "Envoy configuration generated successfully")

    @app.get("/health", response_class=PlainTextResponse)
    def health_check():
        return "OK"

    return app