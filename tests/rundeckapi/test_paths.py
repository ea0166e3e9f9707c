"""Tests for ApiPathBuilder: separators, value conversion and omission rules."""

from datetime import datetime, timezone

import pytest

from rundeck_client.rundeckapi.paths import ApiPathBuilder
from rundeck_client.rundeckapi.types import ExecutionStatus, FileType

# ---------------------------------------------------------------------------
# Path segments
# ---------------------------------------------------------------------------


def test_segments_are_concatenated():
    """Segments are joined as-is, without adding any separator."""
    path = ApiPathBuilder("/job/", "abc-123", "/executions")
    assert str(path) == "/job/abc-123/executions"


def test_blank_segments_are_skipped():
    """None and blank segments leave no trace in the path."""
    path = ApiPathBuilder("/projects", None, "", "   ")
    assert str(path) == "/projects"


# ---------------------------------------------------------------------------
# Separators
# ---------------------------------------------------------------------------


def test_empty_param_is_omitted_and_question_mark_used_once():
    """An empty value is dropped, the next accepted param gets the "?"."""
    path = ApiPathBuilder().param("project", "").param("max", "10")
    assert str(path) == "?max=10"


def test_first_param_uses_question_mark_then_ampersand():
    """First accepted param is preceded by "?", the following ones by "&"."""
    path = ApiPathBuilder("/jobs").param("project", "demo").param("jobFilter", "deploy")
    path.param("groupPath", "web")
    assert str(path) == "/jobs?project=demo&jobFilter=deploy&groupPath=web"


def test_never_two_separators_in_a_row():
    """Omitted values in between never produce a dangling separator."""
    path = (
        ApiPathBuilder("/history")
        .param("project", "demo")
        .param("userFilter", None)
        .param("recentFilter", "  ")
        .param("max", 20)
    )
    actual = str(path)
    assert actual == "/history?project=demo&max=20"
    assert "&&" not in actual
    assert "?&" not in actual


@pytest.mark.parametrize("blank", [None, "", " ", "\t"])
def test_blank_values_leave_no_trace(blank):
    """The key of a blank or None value never appears in the path."""
    path = ApiPathBuilder("/jobs").param("jobFilter", blank)
    assert str(path) == "/jobs"


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------


def test_enum_value_is_lower_cased_name():
    """Enums are sent as their lower-cased name."""
    path = ApiPathBuilder("/jobs/export").param("format", FileType.YAML)
    path.param("status", ExecutionStatus.SUCCEEDED)
    assert str(path) == "/jobs/export?format=yaml&status=succeeded"


def test_datetime_value_is_epoch_millis():
    """Datetimes are sent as milliseconds since the epoch."""
    begin = datetime(2011, 3, 14, 10, 0, 0, tzinfo=timezone.utc)
    path = ApiPathBuilder("/history").param("begin", begin)
    assert str(path) == f"/history?begin={int(begin.timestamp()) * 1000}"


def test_bool_and_int_values():
    """Booleans are sent as true/false, integers in decimal."""
    path = ApiPathBuilder("/run/command").param("nodeKeepgoing", False)
    path.param("nodeThreadcount", 3)
    assert str(path) == "/run/command?nodeKeepgoing=false&nodeThreadcount=3"


def test_value_is_url_encoded_but_key_is_not():
    """Values are form-url-encoded, keys are emitted as given."""
    path = ApiPathBuilder("/run/command").param("exec", "ls -la /tmp&x")
    assert str(path) == "/run/command?exec=ls+-la+%2Ftmp%26x"


# ---------------------------------------------------------------------------
# Node filters and attachments
# ---------------------------------------------------------------------------


def test_node_filters_after_params():
    """Node filters are appended with "&" after existing params."""
    path = ApiPathBuilder("/resources").param("project", "demo")
    path.node_filters({"tags": "web+prod", "os-family": "unix"})
    assert str(path) == "/resources?project=demo&tags=web%2Bprod&os-family=unix"


def test_node_filters_first_get_question_mark():
    """Node filters with no param before them get the "?"."""
    path = ApiPathBuilder("/job/1/run").node_filters({"name": "node1"})
    assert str(path) == "/job/1/run?name=node1"


@pytest.mark.parametrize("filters", [None, {}, {"tags": ""}])
def test_empty_node_filters_are_omitted(filters):
    """No filters, or only blank ones, leave the path unchanged."""
    path = ApiPathBuilder("/resources").node_filters(filters).param("project", "demo")
    assert str(path) == "/resources?project=demo"


def test_attachments_do_not_change_the_path():
    """Attachments are kept aside, by name, for the multipart body."""
    path = ApiPathBuilder("/jobs/import").attach("xmlBatch", b"<joblist/>").attach("other", None)
    assert str(path) == "/jobs/import"
    assert path.attachments == {"xmlBatch": b"<joblist/>"}
