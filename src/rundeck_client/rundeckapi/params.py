"""Encoders for job options and node filters.

Job options are sent as a RunDeck "argString" (``-key1 value1 -key2 'value 2'``)
and node filters as an url-encoded ``key=value&key2=value2`` string.
"""

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def url_encode(value: str | None) -> str | None:
    """Form-url-encode a value (space as "+"). Blank values are returned as-is."""
    if _is_blank(value):
        return value
    return quote_plus(value)


def generate_arg_string(options: Mapping[Any, Any] | None) -> str | None:
    """Generate an argString for the given options.

    Values containing a space are single-quoted, unless they already are.
    Options with a blank key or value are skipped.

    Args:
        options: Option names mapped to values, in the order to emit them.

    Returns:
        The argString, "" if there are no valid options, None if options is None.
    """
    if options is None:
        return None

    args = []
    for raw_key, raw_value in options.items():
        key = str(raw_key)
        value = str(raw_value) if raw_value is not None else None
        if _is_blank(key) or _is_blank(value):
            continue
        quoted = value.startswith("'") and value.endswith("'") and len(value) > 1
        if " " in value and not quoted:
            value = f"'{value}'"
        args.append(f"-{key} {value}")
    return " ".join(args)


def generate_url_encoded_arg_string(options: Mapping[Any, Any] | None) -> str | None:
    """Generate an argString for the given options, url-encoded."""
    return url_encode(generate_arg_string(options))


def generate_node_filters_string(filters: Mapping[Any, Any] | None) -> str | None:
    """Generate the url-encoded query string for the given node filters.

    Returns:
        ``"filter1=value1&filter2=value2"``, "" if there are no valid
        filters, None if filters is None.
    """
    if filters is None:
        return None

    encoded = []
    for raw_key, raw_value in filters.items():
        key = str(raw_key)
        value = str(raw_value) if raw_value is not None else None
        if _is_blank(key) or _is_blank(value):
            continue
        encoded.append(f"{quote_plus(key)}={quote_plus(value)}")
    return "&".join(encoded)


class OptionsBuilder:
    """Fluent builder for job options.

    Example:
        OptionsBuilder().add_option("version", "1.2.0").add_option("env", "prod").to_dict()
    """

    def __init__(self):
        self._options: dict[str, str] = {}

    def add_option(self, key: Any, value: Any) -> "OptionsBuilder":
        self._options[str(key)] = str(value)
        return self

    def to_dict(self) -> dict[str, str]:
        """Return a copy of the accumulated options."""
        return dict(self._options)


class NodeFiltersBuilder:
    """Fluent builder for node filters.

    Each method sets one of the filter keys recognized by RunDeck. Blank
    values are ignored, so optional criteria can be passed through as-is.
    """

    def __init__(self):
        self._filters: dict[str, str] = {}

    def _put(self, key: str, value: str | None) -> "NodeFiltersBuilder":
        if not _is_blank(value):
            self._filters[key] = value
        return self

    def hostname(self, hostname: str | None) -> "NodeFiltersBuilder":
        return self._put("hostname", hostname)

    def type(self, type_: str | None) -> "NodeFiltersBuilder":
        return self._put("type", type_)

    def tags(self, tags: str | None) -> "NodeFiltersBuilder":
        """Tags expression: "a+b" for both tags, "a,b" for either."""
        return self._put("tags", tags)

    def name(self, name: str | None) -> "NodeFiltersBuilder":
        return self._put("name", name)

    def os_name(self, os_name: str | None) -> "NodeFiltersBuilder":
        return self._put("os-name", os_name)

    def os_family(self, os_family: str | None) -> "NodeFiltersBuilder":
        return self._put("os-family", os_family)

    def os_arch(self, os_arch: str | None) -> "NodeFiltersBuilder":
        return self._put("os-arch", os_arch)

    def os_version(self, os_version: str | None) -> "NodeFiltersBuilder":
        return self._put("os-version", os_version)

    def exclude_hostname(self, hostname: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-hostname", hostname)

    def exclude_type(self, type_: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-type", type_)

    def exclude_tags(self, tags: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-tags", tags)

    def exclude_name(self, name: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-name", name)

    def exclude_os_name(self, os_name: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-os-name", os_name)

    def exclude_os_family(self, os_family: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-os-family", os_family)

    def exclude_os_arch(self, os_arch: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-os-arch", os_arch)

    def exclude_os_version(self, os_version: str | None) -> "NodeFiltersBuilder":
        return self._put("exclude-os-version", os_version)

    def exclude_precedence(self, exclude_precedence: bool) -> "NodeFiltersBuilder":
        """Whether exclusion filters take precedence over inclusion filters."""
        self._filters["exclude-precedence"] = "true" if exclude_precedence else "false"
        return self

    def to_dict(self) -> dict[str, str]:
        """Return a copy of the accumulated filters."""
        return dict(self._filters)
