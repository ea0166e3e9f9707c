"""XML response parsing for the RunDeck API.

``load_document`` turns a raw response body into an element tree and raises
on server-side errors. Parsers are plain callables taking an element and
returning a domain object; ``at`` and ``list_of`` bind them to the location of
the data inside a response document.
"""

import xml.etree.ElementTree as ET
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import TypeAlias, TypeVar

import structlog

from .exceptions import RundeckApiDecodeError, RundeckApiError
from .types import (
    Abort,
    AbortStatus,
    Event,
    EventStatus,
    Execution,
    ExecutionStatus,
    History,
    Job,
    JobsImportResult,
    Node,
    NodeSummary,
    Project,
    SystemInfo,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

XmlParser: TypeAlias = Callable[[ET.Element], T]


def load_document(body: bytes) -> ET.Element:
    """Decode a response body and check it for an embedded error.

    RunDeck reports application errors with a 2xx status and a
    ``<result error="true">`` document, so a successful HTTP call is not a
    successful API call until the body has been checked.

    Args:
        body: Raw response body (UTF-8 XML).

    Returns:
        The root element of the document.

    Raises:
        RundeckApiDecodeError: If the body is not well-formed XML.
        RundeckApiError: If the document carries an error, with the server's message.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        msg = "Failed to read RunDeck response"
        raise RundeckApiDecodeError(msg) from exc

    if root.tag == "result" and root.get("error", "").strip().lower() == "true":
        message = _value(root, "error/message")
        logger.debug("API error response", error_message=message)
        raise RundeckApiError(message)
    return root


def _select_all(root: ET.Element, xpath: str) -> list[ET.Element]:
    # The first step of the path names the root element itself
    first, _, rest = xpath.partition("/")
    if root.tag != first:
        return []
    if not rest:
        return [root]
    return root.findall(rest)


def at(xpath: str, parser: XmlParser[T]) -> XmlParser[T]:
    """Bind a parser to the single element at the given path of a document.

    Args:
        xpath: Path from the root, e.g. "result/executions/execution".
        parser: Parser for the selected element.

    Returns:
        A parser for the whole document.
    """

    def parse(root: ET.Element) -> T:
        nodes = _select_all(root, xpath)
        if not nodes:
            msg = f"Missing '{xpath}' element in RunDeck response"
            raise RundeckApiDecodeError(msg)
        return parser(nodes[0])

    return parse


def list_of(xpath: str, parser: XmlParser[T]) -> XmlParser[list[T]]:
    """Bind a parser to every element at the given path of a document."""

    def parse(root: ET.Element) -> list[T]:
        return [parser(node) for node in _select_all(root, xpath)]

    return parse


# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------


def _value(node: ET.Element, path: str) -> str:
    """String value at ``path``: "a/b" is element text, "a/@b" an attribute."""
    element_path, _, attribute = path.partition("@")
    element_path = element_path.rstrip("/")
    target = node.find(element_path) if element_path else node
    if target is None:
        return ""
    if attribute:
        return target.get(attribute, "")
    return "".join(target.itertext())


def _text(node: ET.Element, path: str) -> str | None:
    return _value(node, path).strip() or None


def _int(node: ET.Element, path: str, *, required: bool = True) -> int | None:
    raw = _value(node, path).strip()
    if not raw and not required:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        msg = f"Invalid number '{raw}' at '{path}' in RunDeck response"
        raise RundeckApiDecodeError(msg) from exc


def _date(node: ET.Element, path: str) -> datetime | None:
    millis = _int(node, path, required=False)
    if millis is None:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


def _enum(enum_type: type[E], raw: str) -> E | None:
    try:
        return enum_type[raw.strip().upper()]
    except KeyError:
        return None


# ---------------------------------------------------------------------------
# Object mappers
# ---------------------------------------------------------------------------


def parse_string(node: ET.Element) -> str | None:
    return "".join(node.itertext()).strip() or None


def parse_project(node: ET.Element) -> Project:
    return Project(
        name=_text(node, "name"),
        description=_text(node, "description"),
        resource_model_provider_url=_text(node, "resources/providerURL"),
    )


def parse_job(node: ET.Element) -> Job:
    """Parse a job element.

    The id is either a child element or an attribute, and the project is
    either nested in a context element or a direct child.
    """
    job_id = _value(node, "id").strip() or _value(node, "@id").strip()
    context = node.find("context")
    project = _text(context, "project") if context is not None else _text(node, "project")
    return Job(
        id=job_id or None,
        name=_text(node, "name"),
        group=_text(node, "group"),
        project=project,
        description=_text(node, "description"),
    )


def parse_execution(node: ET.Element) -> Execution:
    job_node = node.find("job")
    return Execution(
        id=_int(node, "@id"),
        url=_text(node, "@href"),
        status=_enum(ExecutionStatus, _value(node, "@status")),
        job=parse_job(job_node) if job_node is not None else None,
        started_by=_text(node, "user"),
        started_at=_date(node, "date-started/@unixtime"),
        ended_at=_date(node, "date-ended/@unixtime"),
        aborted_by=_text(node, "abortedby"),
        description=_text(node, "description"),
    )


def parse_abort(node: ET.Element) -> Abort:
    execution_node = node.find("execution")
    return Abort(
        status=_enum(AbortStatus, _value(node, "@status")),
        execution=parse_execution(execution_node) if execution_node is not None else None,
    )


def parse_event(node: ET.Element) -> Event:
    return Event(
        title=_text(node, "title"),
        status=_enum(EventStatus, _value(node, "status")),
        summary=_text(node, "summary"),
        node_summary=NodeSummary(
            succeeded=_int(node, "node-summary/@succeeded"),
            failed=_int(node, "node-summary/@failed"),
            total=_int(node, "node-summary/@total"),
        ),
        user=_text(node, "user"),
        project=_text(node, "project"),
        started_at=_date(node, "@starttime"),
        ended_at=_date(node, "@endtime"),
        aborted_by=_text(node, "abortedby"),
        execution_id=_int(node, "execution/@id", required=False),
        job_id=_text(node, "job/@id"),
    )


def parse_history(node: ET.Element) -> History:
    return History(
        events=[parse_event(event) for event in node.findall("event")],
        count=_int(node, "@count"),
        total=_int(node, "@total"),
        max=_int(node, "@max"),
        offset=_int(node, "@offset"),
    )


def parse_node(node: ET.Element) -> Node:
    tags = _value(node, "@tags").strip()
    return Node(
        name=_text(node, "@name"),
        type=_text(node, "@type"),
        description=_text(node, "@description"),
        tags=[tag for tag in tags.split(",") if tag] if tags else [],
        hostname=_text(node, "@hostname"),
        os_arch=_text(node, "@osArch"),
        os_family=_text(node, "@osFamily"),
        os_name=_text(node, "@osName"),
        os_version=_text(node, "@osVersion"),
        username=_text(node, "@username"),
        edit_url=_text(node, "@editUrl"),
        remote_url=_text(node, "@remoteUrl"),
    )


def parse_system_info(node: ET.Element) -> SystemInfo:
    cpu_load_average = _text(node, "stats/cpu/loadAverage")
    return SystemInfo(
        date=_date(node, "timestamp/@epoch"),
        version=_text(node, "rundeck/version"),
        build=_text(node, "rundeck/build"),
        node=_text(node, "rundeck/node"),
        base_dir=_text(node, "rundeck/base"),
        os_arch=_text(node, "os/arch"),
        os_name=_text(node, "os/name"),
        os_version=_text(node, "os/version"),
        jvm_name=_text(node, "jvm/name"),
        jvm_vendor=_text(node, "jvm/vendor"),
        jvm_version=_text(node, "jvm/version"),
        start_date=_date(node, "stats/uptime/since/@epoch"),
        uptime_in_millis=_int(node, "stats/uptime/@duration", required=False),
        cpu_load_average=f"{cpu_load_average} %" if cpu_load_average else None,
        max_memory_in_bytes=_int(node, "stats/memory/max", required=False),
        free_memory_in_bytes=_int(node, "stats/memory/free", required=False),
        total_memory_in_bytes=_int(node, "stats/memory/total", required=False),
        running_jobs=_int(node, "stats/scheduler/running", required=False),
        active_threads=_int(node, "stats/threads/active", required=False),
    )


def parse_jobs_import_result(node: ET.Element) -> JobsImportResult:
    return JobsImportResult(
        succeeded_jobs=[parse_job(job) for job in node.findall("succeeded/job")],
        skipped_jobs=[parse_job(job) for job in node.findall("skipped/job")],
        failed_jobs=[
            (parse_job(job), _value(job, "error")) for job in node.findall("failed/job")
        ],
    )
