"""An Envoy control plane: in-memory routes and clusters, a REST API and an ADS gRPC service."""

__version__ = "0.1.0"