"""Upstream API clients."""

from .datafiniti import (
    ConfigurationError,
    DatafinitiClient,
    DatafinitiError,
    UpstreamCallError,
)

__all__ = [
    "ConfigurationError",
    "DatafinitiClient",
    "DatafinitiError",
    "UpstreamCallError",
]
