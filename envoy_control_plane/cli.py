"""Command that runs the REST API and the xDS gRPC server together."""

from __future__ import annotations

import argparse
import asyncio
import logging
import socket
import sys

import grpc
import uvicorn

from .api import create_app
from .discovery import SimpleXdsServer
from .settings import AppConfig, ConfigError
from .store import ConfigStore

_UVICORN_LEVELS = {"critical", "error", "warning", "info", "debug", "trace"}


def _bind(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


def _log_level(level: str) -> str:
    level = level.lower()
    return level if level in _UVICORN_LEVELS else "info"


async def _serve(config: AppConfig) -> None:
    store = ConfigStore()
    xds_server = SimpleXdsServer(store)
    app = create_app(store, xds_server)

    host = config.server.host
    rest_addr = f"{host}:{config.server.rest_port}"
    xds_addr = f"{host}:{config.server.xds_port}"

    print("Envoy Control Plane starting...")
    print(f"REST API running on http://{rest_addr}")
    print(f"xDS gRPC server running on http://{xds_addr}")

    rest_socket = _bind(host, config.server.rest_port)
    try:
        grpc_server = grpc.aio.server()
        grpc_server.add_generic_rpc_handlers((xds_server.generic_handler(),))
        try:
            bound = grpc_server.add_insecure_port(xds_addr)
        except RuntimeError as exc:
            raise OSError(f"cannot bind xDS server to {xds_addr}: {exc}") from exc
        if bound == 0:
            raise OSError(f"cannot bind xDS server to {xds_addr}")

        print("Registering gRPC services:")
        print("  - AggregatedDiscoveryService (ADS)")

        rest_server = uvicorn.Server(
            uvicorn.Config(app, log_level=_log_level(config.logging.level))
        )
        await grpc_server.start()
        rest_task = asyncio.create_task(rest_server.serve(sockets=[rest_socket]))
        xds_task = asyncio.create_task(grpc_server.wait_for_termination())
        try:
            done, _ = await asyncio.wait(
                {rest_task, xds_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task, label in ((rest_task, "REST"), (xds_task, "xDS")):
                if task in done and not task.cancelled() and task.exception() is not None:
                    print(f"{label} server error: {task.exception()}", file=sys.stderr)
        finally:
            rest_server.should_exit = True
            await grpc_server.stop(None)
            for task in (rest_task, xds_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(rest_task, xds_task, return_exceptions=True)
    finally:
        rest_socket.close()


def main(argv: list[str] | None = None) -> int:
    """Load the settings and run both servers until one of them stops."""
    parser = argparse.ArgumentParser(
        prog="envoy-control-plane",
        description="Serve a REST API and an xDS server for Envoy proxies.",
    )
    parser.add_argument(
        "--config",
        default="config",
        help="configuration file, with or without its extension (default: config)",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        config = AppConfig.load(args.config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        asyncio.run(_serve(config))
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())