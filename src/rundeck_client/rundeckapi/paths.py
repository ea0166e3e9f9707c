"""Builder for API paths.

Accumulates path segments and query parameters, taking care of the "?"/"&"
separators and of url-encoding the values. Attachments registered on the
builder are sent as multipart parts when the path is POSTed.
"""

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import IO, Any

from .params import generate_node_filters_string, url_encode

Attachment = bytes | IO[bytes]


class ApiPathBuilder:
    """Builder for an API path with its query string and attachments.

    Example:
        ApiPathBuilder("/job/", job_id, "/executions").param("max", 10)
    """

    def __init__(self, *paths: str | None):
        """Start a path from the given segments (blank segments are skipped)."""
        self._path: list[str] = [path for path in paths if path and path.strip()]
        self._attachments: dict[str, Attachment] = {}
        self._first_param_done = False

    def param(self, key: str, value: Any) -> "ApiPathBuilder":
        """Append a query parameter, unless the value is None or blank.

        Enums are sent lower-cased, datetimes as epoch milliseconds, and
        booleans as "true"/"false". The value is url-encoded, the key is not.

        Args:
            key: Name of the parameter.
            value: str, Enum, datetime, bool or int. May be None.

        Returns:
            This builder, for chaining.
        """
        if value is None:
            return self
        if isinstance(value, Enum):
            value = value.name.lower()
        elif isinstance(value, datetime):
            value = str(int(value.timestamp() * 1000))
        elif isinstance(value, bool):
            value = "true" if value else "false"
        elif not isinstance(value, str):
            value = str(value)

        if value.strip():
            self._append_separator()
            self._path.append(f"{key}={url_encode(value)}")
        return self

    def node_filters(self, filters: Mapping[str, Any] | None) -> "ApiPathBuilder":
        """Append the given node filters, unless there are none."""
        encoded = generate_node_filters_string(filters)
        if encoded and encoded.strip():
            self._append_separator()
            self._path.append(encoded)
        return self

    def attach(self, name: str, stream: Attachment | None) -> "ApiPathBuilder":
        """Attach a binary payload, sent as a multipart part when POSTing."""
        if stream is not None:
            self._attachments[name] = stream
        return self

    @property
    def attachments(self) -> dict[str, Attachment]:
        """Attachments to POST, by part name."""
        return self._attachments

    def _append_separator(self) -> None:
        if self._first_param_done:
            self._path.append("&")
        else:
            self._path.append("?")
            self._first_param_done = True

    def __str__(self) -> str:
        return "".join(self._path)

    def __repr__(self) -> str:
        return f"ApiPathBuilder({str(self)!r})"
