"""RunDeck REST API client package.

Provides an HTTP client for the RunDeck XML API that returns validated
domain types. Job and ad-hoc executions can be triggered, or run to
completion by polling.

Exports:
    RundeckClient: Client with one method per API operation.
    types: Module containing Pydantic models for API responses.
    ApiPathBuilder: Builder for API paths and query strings.
    OptionsBuilder, NodeFiltersBuilder: Builders for job options and node filters.
    TimeUnit: Unit of a polling interval.
    RundeckApiError and subclasses: Errors raised by API calls.
"""

from . import types
from .client import RundeckClient
from .exceptions import (
    RundeckApiAuthError,
    RundeckApiDecodeError,
    RundeckApiError,
    RundeckApiLoginError,
    RundeckApiTokenError,
)
from .params import NodeFiltersBuilder, OptionsBuilder
from .paths import ApiPathBuilder
from .polling import TimeUnit

__all__ = [
    "ApiPathBuilder",
    "NodeFiltersBuilder",
    "OptionsBuilder",
    "RundeckApiAuthError",
    "RundeckApiDecodeError",
    "RundeckApiError",
    "RundeckApiLoginError",
    "RundeckApiTokenError",
    "RundeckClient",
    "TimeUnit",
    "types",
]
