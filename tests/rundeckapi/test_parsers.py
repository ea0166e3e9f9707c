"""Tests for response decoding and the XML to domain object mappers."""

from datetime import datetime, timezone

import pytest

from rundeck_client.rundeckapi import parsers
from rundeck_client.rundeckapi.exceptions import RundeckApiDecodeError, RundeckApiError
from rundeck_client.rundeckapi.types import AbortStatus, EventStatus, ExecutionStatus

EXECUTION_XML = b"""<result success="true" apiversion="2">
  <executions count="1">
    <execution id="117" href="http://localhost:4440/execution/follow/117" status="succeeded">
      <user>admin</user>
      <date-started unixtime="1302183830082">2011-04-07T13:43:50Z</date-started>
      <date-ended unixtime="1302183894398">2011-04-07T13:44:54Z</date-ended>
      <job id="1">
        <name>deploy</name>
        <group>web/apps</group>
        <project>demo</project>
        <description>Deploy the app</description>
      </job>
      <description>deploy.sh</description>
    </execution>
  </executions>
</result>"""

# ---------------------------------------------------------------------------
# load_document
# ---------------------------------------------------------------------------


def test_error_result_raises_with_server_message():
    """An error document raises with exactly the nested message."""
    body = b'<result error="true"><error><message>Bad job ID</message></error></result>'
    with pytest.raises(RundeckApiError) as excinfo:
        parsers.load_document(body)
    assert excinfo.value.message == "Bad job ID"
    assert not isinstance(excinfo.value, RundeckApiDecodeError)


def test_error_flag_is_case_insensitive():
    """error="TRUE" is an error too."""
    body = b'<result error="TRUE"><error><message>Nope</message></error></result>'
    with pytest.raises(RundeckApiError, match="Nope"):
        parsers.load_document(body)


def test_error_false_is_not_an_error():
    """A result with error="false" is returned as a document."""
    root = parsers.load_document(b'<result error="false"><success/></result>')
    assert root.tag == "result"


def test_malformed_body_raises_decode_error():
    """A body that is not XML raises a decode error, cause chained."""
    with pytest.raises(RundeckApiDecodeError) as excinfo:
        parsers.load_document(b"<html><body>oops")
    assert excinfo.value.__cause__ is not None


def test_parsing_twice_gives_equal_results():
    """Parsing is stateless: same body, equal objects."""
    parser = parsers.at("result/executions/execution", parsers.parse_execution)
    first = parser(parsers.load_document(EXECUTION_XML))
    second = parser(parsers.load_document(EXECUTION_XML))
    assert first == second


# ---------------------------------------------------------------------------
# at / list_of
# ---------------------------------------------------------------------------


def test_at_missing_element_raises_decode_error():
    """A missing element raises instead of returning None."""
    parser = parsers.at("result/system", parsers.parse_system_info)
    with pytest.raises(RundeckApiDecodeError, match="result/system"):
        parser(parsers.load_document(b"<result><other/></result>"))


def test_at_checks_the_root_tag():
    """The first step of the path must match the root element."""
    parser = parsers.at("joblist/job", parsers.parse_job)
    with pytest.raises(RundeckApiDecodeError):
        parser(parsers.load_document(b"<result><job><name>x</name></job></result>"))


def test_list_of_empty_and_many():
    """list_of returns every match, or an empty list."""
    parser = parsers.list_of("result/projects/project", parsers.parse_project)
    body = b"""<result><projects count="2">
      <project><name>demo</name><description>Demo</description></project>
      <project><name>prod</name><description/></project>
    </projects></result>"""
    projects = parser(parsers.load_document(body))
    assert [p.name for p in projects] == ["demo", "prod"]
    assert projects[1].description is None
    assert parser(parsers.load_document(b"<result><projects/></result>")) == []


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def test_parse_execution():
    """All execution fields are mapped, status case-insensitively."""
    parser = parsers.at("result/executions/execution", parsers.parse_execution)
    execution = parser(parsers.load_document(EXECUTION_XML))

    assert execution.id == 117
    assert execution.url == "http://localhost:4440/execution/follow/117"
    assert execution.status is ExecutionStatus.SUCCEEDED
    assert execution.started_by == "admin"
    assert execution.started_at == datetime.fromtimestamp(1302183830.082, tz=timezone.utc)
    assert execution.duration_in_millis == 64316
    assert execution.duration == "1 minute 4 seconds"
    assert execution.description == "deploy.sh"
    assert execution.job.id == "1"
    assert execution.job.full_name == "web/apps/deploy"
    assert execution.job.project == "demo"
    assert not execution.is_running


def test_parse_execution_running_adhoc():
    """A running ad-hoc execution has no job and no end date."""
    body = b"""<result><executions><execution id="5" status="running">
      <date-started unixtime="1302183830082"/>
    </execution></executions></result>"""
    execution = parsers.at("result/executions/execution", parsers.parse_execution)(
        parsers.load_document(body),
    )
    assert execution.is_running
    assert execution.job is None
    assert execution.ended_at is None
    assert execution.duration is None


def test_parse_execution_unknown_status_is_none():
    """An unknown status maps to None instead of failing."""
    body = b'<result><execution id="5" status="weird"/></result>'
    execution = parsers.at("result/execution", parsers.parse_execution)(
        parsers.load_document(body),
    )
    assert execution.status is None


def test_parse_execution_invalid_id_raises_decode_error():
    """A non-numeric execution id is a decode error."""
    body = b'<result><execution id="abc"/></result>'
    with pytest.raises(RundeckApiDecodeError):
        parsers.at("result/execution", parsers.parse_execution)(parsers.load_document(body))


def test_parse_job_id_attribute_and_context():
    """Job id from the attribute, project from the context element."""
    body = b"""<joblist><job id="42">
      <name>backup</name><group/>
      <context><project>ops</project></context>
    </job></joblist>"""
    job = parsers.at("joblist/job", parsers.parse_job)(parsers.load_document(body))
    assert job.id == "42"
    assert job.project == "ops"
    assert job.group is None
    assert job.full_name == "backup"


def test_parse_abort():
    """Abort status and the embedded execution are mapped."""
    body = b"""<result><success><message>Execution status: previously running</message></success>
      <abort status="pending"><execution id="3" status="running"/></abort></result>"""
    abort = parsers.at("result/abort", parsers.parse_abort)(parsers.load_document(body))
    assert abort.status is AbortStatus.PENDING
    assert abort.execution.id == 3


def test_parse_history():
    """Paging attributes and events are mapped."""
    body = b"""<result><events count="2" total="6" max="2" offset="0">
      <event starttime="1302183830082" endtime="1302183894398">
        <title>adhoc</title><status>succeeded</status><summary>ls</summary>
        <node-summary succeeded="2" failed="0" total="2"/>
        <user>admin</user><project>demo</project>
        <execution id="117"/>
      </event>
      <event starttime="1302183830082" endtime="1302183830082">
        <title>web/deploy</title><status>failed</status>
        <node-summary succeeded="0" failed="1" total="1"/>
        <job id="1"/><execution id="118"/>
      </event>
    </events></result>"""
    history = parsers.at("result/events", parsers.parse_history)(parsers.load_document(body))

    assert (history.count, history.total, history.max, history.offset) == (2, 6, 2, 0)
    first, second = history.events
    assert first.is_adhoc
    assert first.status is EventStatus.SUCCEEDED
    assert first.node_summary.total == 2
    assert first.execution_id == 117
    assert first.job_id is None
    assert not second.is_adhoc
    assert second.status is EventStatus.FAILED
    assert second.job_id == "1"
    assert second.short_duration == "0:00:00.000"


def test_parse_node_splits_tags():
    """Node attributes are mapped, tags split on commas."""
    body = b"""<project>
      <node name="web1" type="Node" description="Web server" tags="web,prod"
            hostname="web1.example.com" osArch="amd64" osFamily="unix"
            osName="Linux" osVersion="5.10" username="deploy"/>
    </project>"""
    node = parsers.at("project/node", parsers.parse_node)(parsers.load_document(body))
    assert node.name == "web1"
    assert node.tags == ["web", "prod"]
    assert node.os_family == "unix"
    assert node.username == "deploy"
    assert node.edit_url is None


def test_parse_system_info():
    """System info fields and derived values are mapped."""
    body = b"""<result><system>
      <timestamp epoch="1302183830082"><datetime>2011-04-07T13:43:50Z</datetime></timestamp>
      <rundeck><version>1.2.1</version><build>1.2.1-0-beta</build><node>dev</node>
        <base>/var/lib/rundeck</base></rundeck>
      <os><arch>amd64</arch><name>Linux</name><version>2.6.35</version></os>
      <jvm><name>OpenJDK</name><vendor>Sun</vendor><version>1.6.0</version></jvm>
      <stats>
        <uptime duration="93784000"><since epoch="1302090046082"/></uptime>
        <cpu><loadAverage>0.1</loadAverage></cpu>
        <memory><max>954466304</max><free>48436320</free><total>116850688</total></memory>
        <scheduler><running>1</running></scheduler>
        <threads><active>24</active></threads>
      </stats>
    </system></result>"""
    info = parsers.at("result/system", parsers.parse_system_info)(parsers.load_document(body))
    assert info.version == "1.2.1"
    assert info.base_dir == "/var/lib/rundeck"
    assert info.jvm_name == "OpenJDK"
    assert info.cpu_load_average == "0.1 %"
    assert info.max_memory_in_bytes == 954466304
    assert info.running_jobs == 1
    assert info.uptime == "1 day 2 hours 3 minutes 4 seconds"


def test_parse_jobs_import_result():
    """Succeeded, skipped and failed jobs are mapped, with failure messages."""
    body = b"""<result><succeeded count="1"><job><id>1</id><name>a</name></job></succeeded>
      <failed count="1"><job><name>b</name><error>Invalid group</error></job></failed>
      <skipped count="0"/></result>"""
    result = parsers.at("result", parsers.parse_jobs_import_result)(parsers.load_document(body))
    assert [job.id for job in result.succeeded_jobs] == ["1"]
    assert result.skipped_jobs == []
    (failed_job, error), = result.failed_jobs
    assert failed_job.name == "b"
    assert error == "Invalid group"


def test_parse_string():
    """Trimmed text content, None when empty."""
    body = b"<result><success><message> Job deleted </message></success></result>"
    assert parsers.at("result/success/message", parsers.parse_string)(
        parsers.load_document(body),
    ) == "Job deleted"
