"""Aggregated discovery service that serves clusters and routes to Envoy."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import grpc

from .conversion import AnyMessage, get_resources_by_type
from .protowire import (
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
    bytes_field,
    decode_fields,
    message_field,
    string_field,
    varint_field,
)
from .store import ConfigStore

logger = logging.getLogger(__name__)

ADS_SERVICE_NAME = "envoy.service.discovery.v3.AggregatedDiscoveryService"
ADS_METHOD_NAME = "StreamAggregatedResources"

_END = object()


def _expect_bytes(value: int | bytes, what: str) -> bytes:
    if not isinstance(value, bytes):
        raise ValueError(f"field {what} must be length-delimited")
    return value


def _text(value: int | bytes, what: str) -> str:
    try:
        return _expect_bytes(value, what).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(f"field {what} is not valid UTF-8") from exc


def _optional_text(number: int, value: str) -> bytes:
    return string_field(number, value) if value else b""


def _decode_any(data: bytes) -> AnyMessage:
    type_url = ""
    value = b""
    for number, _, raw in decode_fields(data):
        if number == 1:
            type_url = _text(raw, "Any.type_url")
        elif number == 2:
            value = _expect_bytes(raw, "Any.value")
    return AnyMessage(type_url, value)


def _decode_status_message(data: bytes) -> str:
    message = ""
    for number, _, raw in decode_fields(data):
        if number == 2:
            message = _text(raw, "Status.message")
    return message


@dataclass
class DiscoveryRequest:
    """A request, ACK or NACK sent by Envoy on the discovery stream."""

    version_info: str = ""
    node: bytes = b""
    resource_names: list[str] = field(default_factory=list)
    type_url: str = ""
    nonce: str = ""
    error_detail: str | None = None

    def encode(self) -> bytes:
        out = _optional_text(1, self.version_info)
        if self.node:
            out += bytes_field(2, self.node)
        out += b"".join(string_field(3, name) for name in self.resource_names)
        out += _optional_text(4, self.type_url) + _optional_text(5, self.nonce)
        if self.error_detail is not None:
            out += message_field(6, _optional_text(2, self.error_detail))
        return out

    @classmethod
    def decode(cls, data: bytes) -> DiscoveryRequest:
        request = cls()
        for number, _, raw in decode_fields(data):
            if number == 1:
                request.version_info = _text(raw, "version_info")
            elif number == 2:
                request.node = _expect_bytes(raw, "node")
            elif number == 3:
                request.resource_names.append(_text(raw, "resource_names"))
            elif number == 4:
                request.type_url = _text(raw, "type_url")
            elif number == 5:
                request.nonce = _text(raw, "response_nonce")
            elif number == 6:
                request.error_detail = _decode_status_message(_expect_bytes(raw, "error_detail"))
        return request

    @property
    def is_ack_or_nack(self) -> bool:
        return bool(self.nonce)


@dataclass
class DiscoveryResponse:
    """A versioned set of resources sent to Envoy."""

    version_info: str = ""
    resources: list[AnyMessage] = field(default_factory=list)
    canary: bool = False
    type_url: str = ""
    nonce: str = ""

    def encode(self) -> bytes:
        out = _optional_text(1, self.version_info)
        out += b"".join(message_field(2, resource.encode()) for resource in self.resources)
        if self.canary:
            out += varint_field(3, 1)
        return out + _optional_text(4, self.type_url) + _optional_text(5, self.nonce)

    @classmethod
    def decode(cls, data: bytes) -> DiscoveryResponse:
        response = cls()
        for number, wire_type, raw in decode_fields(data):
            if number == 1:
                response.version_info = _text(raw, "version_info")
            elif number == 2:
                response.resources.append(_decode_any(_expect_bytes(raw, "resources")))
            elif number == 3:
                if wire_type != WIRE_VARINT:
                    raise ValueError("field canary must be a varint")
                response.canary = bool(raw)
            elif number == 4:
                response.type_url = _text(raw, "type_url")
            elif number == 5:
                response.nonce = _text(raw, "nonce")
            elif wire_type not in (WIRE_VARINT, WIRE_LENGTH_DELIMITED):
                continue
        return response


async def _next_or_end(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _END


class SimpleXdsServer:
    """Serves ADS streams and pushes new resources when the version changes."""

    def __init__(self, store: ConfigStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        self._nonce = 0
        self._version = 1
        self._subscribers: set[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = set()

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def _next_nonce(self) -> str:
        with self._lock:
            nonce = self._nonce
            self._nonce += 1
        return str(nonce)

    def increment_version(self) -> int:
        """Bump the resource version and notify every open stream; returns the new version."""
        with self._lock:
            self._version += 1
            new_version = self._version
            subscribers = list(self._subscribers)
        logger.info("Version incremented to: %d", new_version)
        for loop, event in subscribers:
            try:
                loop.call_soon_threadsafe(event.set)
            except RuntimeError:
                # The stream's loop has already closed.
                pass
        logger.info("Update notification sent to %d connected streams", len(subscribers))
        return new_version

    def _resources(self, type_url: str) -> list[AnyMessage]:
        try:
            resources = get_resources_by_type(type_url, self.store)
        except Exception:
            logger.exception("Error getting resources for type %s", type_url)
            return []
        logger.info("Found %d resources for type: %s", len(resources), type_url)
        return resources

    def _response(self, type_url: str, version: int) -> DiscoveryResponse:
        response = DiscoveryResponse(
            version_info=str(version),
            resources=self._resources(type_url),
            type_url=type_url,
            nonce=self._next_nonce(),
        )
        logger.info(
            "Sending response for type: %s, nonce: %s, version: %d",
            type_url,
            response.nonce,
            version,
        )
        return response

    async def stream_aggregated_resources(
        self, requests: AsyncIterable[DiscoveryRequest]
    ) -> AsyncIterator[DiscoveryResponse]:
        """Answer initial requests and push updates for every type the client asked for."""
        logger.info("ADS: connection established, starting stream")
        updated = asyncio.Event()
        subscription = (asyncio.get_running_loop(), updated)
        with self._lock:
            self._subscribers.add(subscription)

        iterator = aiter(requests)
        last_sent_version = 0
        pending_types: list[str] = []
        next_request = asyncio.ensure_future(_next_or_end(iterator))
        next_update = asyncio.ensure_future(updated.wait())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {next_request, next_update}, return_when=asyncio.FIRST_COMPLETED
                )
                if next_request in done:
                    try:
                        request = next_request.result()
                    except Exception:
                        logger.exception("ADS: stream error")
                        request = None
                    if request is _END:
                        logger.info("ADS: client closed stream")
                        break
                    next_request = asyncio.ensure_future(_next_or_end(iterator))
                    if request is not None:
                        logger.info(
                            "ADS: request for type %s, version %r, nonce %r, resources %r",
                            request.type_url,
                            request.version_info,
                            request.nonce,
                            request.resource_names,
                        )
                        if request.is_ack_or_nack:
                            if request.error_detail is not None:
                                logger.warning(
                                    "ADS: NACK for nonce %s: %s",
                                    request.nonce,
                                    request.error_detail,
                                )
                            else:
                                logger.info("ADS: ACK for nonce %s", request.nonce)
                        else:
                            if request.type_url not in pending_types:
                                pending_types.append(request.type_url)
                            current_version = self.version
                            last_sent_version = current_version
                            yield self._response(request.type_url, current_version)

                if next_update in done:
                    updated.clear()
                    next_update = asyncio.ensure_future(updated.wait())
                    current_version = self.version
                    if current_version > last_sent_version and pending_types:
                        logger.info("ADS: pushing updates for version %d", current_version)
                        for type_url in list(pending_types):
                            yield self._response(type_url, current_version)
                        last_sent_version = current_version
        finally:
            next_request.cancel()
            next_update.cancel()
            with self._lock:
                self._subscribers.discard(subscription)

    async def _serve_stream(
        self, request_iterator: AsyncIterable[DiscoveryRequest], context: Any
    ) -> AsyncIterator[DiscoveryResponse]:
        async for response in self.stream_aggregated_resources(request_iterator):
            yield response

    def generic_handler(self) -> grpc.GenericRpcHandler:
        """Build the gRPC handler for the aggregated discovery service."""
        return grpc.method_handlers_generic_handler(
            ADS_SERVICE_NAME,
            {
                ADS_METHOD_NAME: grpc.stream_stream_rpc_method_handler(
                    self._serve_stream,
                    request_deserializer=DiscoveryRequest.decode,
                    response_serializer=DiscoveryResponse.encode,
                )
            },
        )