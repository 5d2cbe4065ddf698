[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "envoy-control-plane"
version = "0.1.0"
description = "A small Envoy control plane with a REST API for routes and clusters and an aggregated xDS gRPC service"
requires-python = ">=3.11"
keywords = ["envoy", "xds", "ads", "control-plane", "service-mesh", "proxy", "grpc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: FastAPI",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: Proxy Servers",
]
dependencies = [
    "fastapi",
    "pydantic>=2",
    "uvicorn",
    "grpcio",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

[project.scripts]
envoy-control-plane = "envoy_control_plane.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["envoy_control_plane"]

[tool.hatch.build.targets.sdist]
include = ["envoy_control_plane", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
