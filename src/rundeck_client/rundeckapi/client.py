"""RunDeck API client.

Entry point of the library: one method per API operation, returning
validated domain objects. Job, ad-hoc command and ad-hoc script executions
can either be triggered (return at once) or run to completion (poll until
the execution is finished).
"""

import io
import os
import pathlib
import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from typing import IO, Any

import httpx
import structlog

from ..config import ClientConfig, read_token_file
from .call import ApiCall
from .params import generate_arg_string
from .parsers import (
    at,
    list_of,
    parse_abort,
    parse_execution,
    parse_history,
    parse_job,
    parse_jobs_import_result,
    parse_node,
    parse_project,
    parse_string,
    parse_system_info,
)
from .paths import ApiPathBuilder
from .polling import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_UNIT, TimeUnit, run_to_completion
from .types import (
    Abort,
    Execution,
    ExecutionStatus,
    FileType,
    History,
    ImportMethod,
    Job,
    JobsImportResult,
    Node,
    Project,
    SystemInfo,
)

logger = structlog.get_logger(__name__)

Source = str | os.PathLike | bytes | IO[bytes]


def _require(value: Any, msg: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(msg)


def _to_file_type(value: FileType | str) -> FileType:
    if isinstance(value, FileType):
        return value
    try:
        return FileType[value.strip().upper()]
    except KeyError:
        msg = f"Unknown file type: {value}"
        raise ValueError(msg) from None


@contextmanager
def _open_source(source: Source) -> Iterator[bytes | IO[bytes]]:
    """Yield a stream for a filename, or the given stream/bytes unchanged."""
    if isinstance(source, (str, os.PathLike)):
        with pathlib.Path(source).open("rb") as stream:
            yield stream
    else:
        yield source


class RundeckClient:
    """Client for the RunDeck HTTP API.

    Authenticates either with a login and a password (session login through
    the web form, once per call) or with an auth-token. The client holds no
    connection between calls and can be shared between threads.

    Example:
        rundeck = RundeckClient("http://localhost:4440", "admin", "admin")
        execution = rundeck.run_job("1", options={"dir": "/tmp"})
    """

    def __init__(
        self,
        url: str,
        login: str | None = None,
        password: str | None = None,
        token: str | None = None,
        *,
        token_file: str | pathlib.Path | None = None,
        transport: httpx.BaseTransport | None = None,
        **settings: Any,
    ):
        """Initialize the client.

        Args:
            url: URL of the RunDeck instance (e.g., "http://localhost:4440").
            login: Login, for login-based authentication.
            password: Password, for login-based authentication.
            token: Auth-token, for token-based authentication.
            token_file: Path to a file containing the auth-token.
            transport: Optional httpx transport (tests, custom networking).
            **settings: Other ClientConfig settings (timeout, verify_ssl, ...).

        Raises:
            ValueError: If the url is blank, or if not exactly one of
                login/password and token is given.
            FileNotFoundError: If token_file is specified but doesn't exist.
        """
        if token_file:
            token = read_token_file(token_file)
        config = ClientConfig(
            url=url,
            login=login,
            password=password,
            token=token,
            **settings,
        )
        self._init(config, transport)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> "RundeckClient":
        """Create a client from an already validated configuration."""
        client = cls.__new__(cls)
        client._init(config, transport)
        return client

    def _init(self, config: ClientConfig, transport: httpx.BaseTransport | None) -> None:
        self.config = config
        self._call = ApiCall(config, transport=transport)
        logger.debug("RunDeck client created", url=config.url, auth_mode=config.auth_mode)

    @property
    def url(self) -> str:
        return self.config.url

    def __repr__(self) -> str:
        auth = f"login={self.config.login}" if self.config.auth_mode == "login" else "token=***"
        return f"RundeckClient(api_version={self.config.api_version}, url={self.url!r}, {auth})"

    # -----------------------------------------------------------------------
    # Server
    # -----------------------------------------------------------------------

    def ping(self) -> None:
        """Check that the RunDeck instance is alive."""
        self._call.ping()

    def test_auth(self) -> None:
        """Check the login/password or the auth-token against the instance."""
        self._call.test_auth()

    def get_system_info(self) -> SystemInfo:
        return self._call.get(
            ApiPathBuilder("/system/info"),
            at("result/system", parse_system_info),
        )

    # -----------------------------------------------------------------------
    # Projects
    # -----------------------------------------------------------------------

    def get_projects(self) -> list[Project]:
        return self._call.get(
            ApiPathBuilder("/projects"),
            list_of("result/projects/project", parse_project),
        )

    def get_project(self, project_name: str) -> Project:
        _require(project_name, "projectName is mandatory to get the details of a project")
        return self._call.get(
            ApiPathBuilder("/project/", project_name),
            at("result/projects/project", parse_project),
        )

    # -----------------------------------------------------------------------
    # Jobs
    # -----------------------------------------------------------------------

    def get_jobs(
        self,
        project: str | None = None,
        job_filter: str | None = None,
        group_path: str | None = None,
        job_ids: Iterable[str] = (),
    ) -> list[Job]:
        """List the jobs of a project, or of all projects.

        Args:
            project: Name of the project. None lists the jobs of every project.
            job_filter: Filter on the job name (partial match).
            group_path: Group or partial group path.
            job_ids: Only include these job IDs.
        """
        job_ids = list(job_ids)
        if project is None:
            jobs = []
            for each in self.get_projects():
                if not each.name:
                    continue
                jobs.extend(self.get_jobs(each.name, job_filter, group_path, job_ids))
            return jobs

        _require(project, "project is mandatory to get all jobs")
        return self._call.get(
            ApiPathBuilder("/jobs")
            .param("project", project)
            .param("jobFilter", job_filter)
            .param("groupPath", group_path)
            .param("idlist", ",".join(job_ids)),
            list_of("result/jobs/job", parse_job),
        )

    def find_job(self, project: str, group_path: str | None, name: str) -> Job | None:
        """Find a job by project, group and name. None if not found."""
        _require(project, "project is mandatory to find a job")
        _require(name, "job name is mandatory to find a job")
        jobs = self.get_jobs(project, job_filter=name, group_path=group_path)
        return jobs[0] if jobs else None

    def get_job(self, job_id: str) -> Job:
        _require(job_id, "jobId is mandatory to get the details of a job")
        return self._call.get(ApiPathBuilder("/job/", job_id), at("joblist/job", parse_job))

    def delete_job(self, job_id: str) -> str | None:
        """Delete a job.

        Returns:
            The success message from RunDeck.
        """
        _require(job_id, "jobId is mandatory to delete a job")
        return self._call.delete(
            ApiPathBuilder("/job/", job_id),
            at("result/success/message", parse_string),
        )

    def export_jobs(
        self,
        file_type: FileType | str,
        project: str,
        job_filter: str | None = None,
        group_path: str | None = None,
        job_ids: Iterable[str] = (),
    ) -> io.BytesIO:
        """Export the definitions of the jobs of a project.

        Returns:
            The definitions (XML or YAML), in memory.
        """
        _require(file_type, "format is mandatory to export jobs")
        _require(project, "project is mandatory to export jobs")
        return self._call.get_raw(
            ApiPathBuilder("/jobs/export")
            .param("format", _to_file_type(file_type))
            .param("project", project)
            .param("jobFilter", job_filter)
            .param("groupPath", group_path)
            .param("idlist", ",".join(job_ids)),
        )

    def export_jobs_to_file(
        self,
        filename: str | pathlib.Path,
        file_type: FileType | str,
        project: str,
        job_filter: str | None = None,
        group_path: str | None = None,
        job_ids: Iterable[str] = (),
    ) -> None:
        _require(filename, "filename is mandatory to export jobs")
        stream = self.export_jobs(file_type, project, job_filter, group_path, job_ids)
        pathlib.Path(filename).write_bytes(stream.getvalue())

    def export_job(self, file_type: FileType | str, job_id: str) -> io.BytesIO:
        """Export the definition of a single job."""
        _require(file_type, "format is mandatory to export a job")
        _require(job_id, "jobId is mandatory to export a job")
        return self._call.get_raw(
            ApiPathBuilder("/job/", job_id).param("format", _to_file_type(file_type)),
        )

    def export_job_to_file(
        self,
        filename: str | pathlib.Path,
        file_type: FileType | str,
        job_id: str,
    ) -> None:
        _require(filename, "filename is mandatory to export a job")
        stream = self.export_job(file_type, job_id)
        pathlib.Path(filename).write_bytes(stream.getvalue())

    def import_jobs(
        self,
        source: Source,
        file_type: FileType | str,
        import_method: ImportMethod | None = None,
    ) -> JobsImportResult:
        """Import job definitions.

        Args:
            source: Filename, bytes or binary stream of the definitions.
            file_type: Format of the definitions (XML or YAML).
            import_method: What to do with jobs that already exist.
        """
        _require(source, "definitions are mandatory to import jobs")
        _require(file_type, "fileType is mandatory to import jobs")
        with _open_source(source) as stream:
            return self._call.post(
                ApiPathBuilder("/jobs/import")
                .param("format", _to_file_type(file_type))
                .param("dupeOption", import_method)
                .attach("xmlBatch", stream),
                at("result", parse_jobs_import_result),
            )

    def trigger_job(
        self,
        job_id: str,
        options: Mapping[str, Any] | None = None,
        node_filters: Mapping[str, Any] | None = None,
    ) -> Execution:
        """Trigger a job and return at once, without waiting for its end.

        Args:
            job_id: ID of the job.
            options: Job options, sent as an argString.
            node_filters: Override the nodes the job is dispatched to.
        """
        _require(job_id, "jobId is mandatory to trigger a job")
        return self._call.get(
            ApiPathBuilder("/job/", job_id, "/run")
            .param("argString", generate_arg_string(options))
            .node_filters(node_filters),
            at("result/executions/execution", parse_execution),
        )

    def run_job(
        self,
        job_id: str,
        options: Mapping[str, Any] | None = None,
        node_filters: Mapping[str, Any] | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_unit: TimeUnit | None = DEFAULT_POLL_UNIT,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Execution:
        """Run a job and wait until its execution is finished (or aborted).

        See ``run_to_completion`` for the polling parameters.
        """
        return run_to_completion(
            lambda: self.trigger_job(job_id, options, node_filters),
            self.get_execution,
            poll_interval,
            poll_unit,
            cancel=cancel,
            deadline=deadline,
        )

    # -----------------------------------------------------------------------
    # Ad-hoc commands and scripts
    # -----------------------------------------------------------------------

    def trigger_adhoc_command(
        self,
        project: str,
        command: str,
        node_filters: Mapping[str, Any] | None = None,
        node_threadcount: int | None = None,
        node_keepgoing: bool | None = None,
    ) -> Execution:
        """Trigger an ad-hoc command and return at once.

        Without node filters, the command runs on the RunDeck server.

        Args:
            project: Name of the project.
            command: Command line to execute.
            node_filters: Nodes to dispatch the command to.
            node_threadcount: Number of nodes to run on in parallel.
            node_keepgoing: Keep going on the other nodes when one fails.
        """
        _require(project, "project is mandatory to trigger an ad-hoc command")
        _require(command, "command is mandatory to trigger an ad-hoc command")
        started = self._call.get(
            ApiPathBuilder("/run/command")
            .param("project", project)
            .param("exec", command)
            .param("nodeThreadcount", node_threadcount)
            .param("nodeKeepgoing", node_keepgoing)
            .node_filters(node_filters),
            at("result/execution", parse_execution),
        )
        # The first call only returns the execution ID
        return self.get_execution(started.id)

    def run_adhoc_command(
        self,
        project: str,
        command: str,
        node_filters: Mapping[str, Any] | None = None,
        node_threadcount: int | None = None,
        node_keepgoing: bool | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_unit: TimeUnit | None = DEFAULT_POLL_UNIT,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Execution:
        """Run an ad-hoc command and wait until its execution is finished."""
        return run_to_completion(
            lambda: self.trigger_adhoc_command(
                project,
                command,
                node_filters,
                node_threadcount,
                node_keepgoing,
            ),
            self.get_execution,
            poll_interval,
            poll_unit,
            cancel=cancel,
            deadline=deadline,
        )

    def trigger_adhoc_script(
        self,
        project: str,
        script: Source,
        options: Mapping[str, Any] | None = None,
        node_filters: Mapping[str, Any] | None = None,
        node_threadcount: int | None = None,
        node_keepgoing: bool | None = None,
    ) -> Execution:
        """Upload and trigger an ad-hoc script, and return at once.

        Args:
            project: Name of the project.
            script: Filename, bytes or binary stream of the script.
            options: Arguments of the script, sent as an argString.
            node_filters: Nodes to dispatch the script to.
            node_threadcount: Number of nodes to run on in parallel.
            node_keepgoing: Keep going on the other nodes when one fails.
        """
        _require(project, "project is mandatory to trigger an ad-hoc script")
        _require(script, "script is mandatory to trigger an ad-hoc script")
        with _open_source(script) as stream:
            started = self._call.post(
                ApiPathBuilder("/run/script")
                .param("project", project)
                .attach("scriptFile", stream)
                .param("argString", generate_arg_string(options))
                .param("nodeThreadcount", node_threadcount)
                .param("nodeKeepgoing", node_keepgoing)
                .node_filters(node_filters),
                at("result/execution", parse_execution),
            )
        return self.get_execution(started.id)

    def run_adhoc_script(
        self,
        project: str,
        script: Source,
        options: Mapping[str, Any] | None = None,
        node_filters: Mapping[str, Any] | None = None,
        node_threadcount: int | None = None,
        node_keepgoing: bool | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_unit: TimeUnit | None = DEFAULT_POLL_UNIT,
        *,
        cancel: threading.Event | None = None,
        deadline: float | None = None,
    ) -> Execution:
        """Run an ad-hoc script and wait until its execution is finished."""
        _require(project, "project is mandatory to run an ad-hoc script")
        _require(script, "script is mandatory to run an ad-hoc script")
        # Read once: the trigger may only consume a stream a single time
        with _open_source(script) as stream:
            payload = stream if isinstance(stream, bytes) else stream.read()
        return run_to_completion(
            lambda: self.trigger_adhoc_script(
                project,
                payload,
                options,
                node_filters,
                node_threadcount,
                node_keepgoing,
            ),
            self.get_execution,
            poll_interval,
            poll_unit,
            cancel=cancel,
            deadline=deadline,
        )

    # -----------------------------------------------------------------------
    # Executions
    # -----------------------------------------------------------------------

    def get_running_executions(self, project: str | None = None) -> list[Execution]:
        """List the running executions of a project, or of all projects."""
        if project is None:
            executions = []
            for each in self.get_projects():
                if not each.name:
                    continue
                executions.extend(self.get_running_executions(each.name))
            return executions

        _require(project, "project is mandatory to get all running executions")
        return self._call.get(
            ApiPathBuilder("/executions/running").param("project", project),
            list_of("result/executions/execution", parse_execution),
        )

    def get_job_executions(
        self,
        job_id: str,
        status: ExecutionStatus | str | None = None,
        max_results: int | None = None,
        offset: int | None = None,
    ) -> list[Execution]:
        """List the executions of a job, most recent first.

        Args:
            job_id: ID of the job.
            status: Only include executions with this status.
            max_results: Maximum number of executions to return.
            offset: Offset for paging.
        """
        _require(job_id, "jobId is mandatory to get the executions of a job")
        if isinstance(status, str):
            status = status.lower()
        return self._call.get(
            ApiPathBuilder("/job/", job_id, "/executions")
            .param("status", status)
            .param("max", max_results)
            .param("offset", offset),
            list_of("result/executions/execution", parse_execution),
        )

    def get_execution(self, execution_id: int) -> Execution:
        _require(execution_id, "executionId is mandatory to get the details of an execution")
        return self._call.get(
            ApiPathBuilder("/execution/", str(execution_id)),
            at("result/executions/execution", parse_execution),
        )

    def abort_execution(self, execution_id: int) -> Abort:
        _require(execution_id, "executionId is mandatory to abort an execution")
        return self._call.get(
            ApiPathBuilder("/execution/", str(execution_id), "/abort"),
            at("result/abort", parse_abort),
        )

    # -----------------------------------------------------------------------
    # History
    # -----------------------------------------------------------------------

    def get_history(
        self,
        project: str,
        job_id: str | None = None,
        report_id: str | None = None,
        user: str | None = None,
        recent: str | None = None,
        begin: datetime | None = None,
        end: datetime | None = None,
        max_results: int | None = None,
        offset: int | None = None,
    ) -> History:
        """Get the history of finished executions of a project.

        Args:
            project: Name of the project.
            job_id: Only include events of this job.
            report_id: Only include events with this report ID.
            user: Only include events started by this user.
            recent: Only include recent events, e.g. "1h", "2d", "3w".
            begin: Only include events ended after this datetime.
            end: Only include events ended before this datetime.
            max_results: Maximum number of events to return.
            offset: Offset for paging.
        """
        _require(project, "project is mandatory to get the history")
        return self._call.get(
            ApiPathBuilder("/history")
            .param("project", project)
            .param("jobIdFilter", job_id)
            .param("reportIdFilter", report_id)
            .param("userFilter", user)
            .param("recentFilter", recent)
            .param("begin", begin)
            .param("end", end)
            .param("max", max_results)
            .param("offset", offset),
            at("result/events", parse_history),
        )

    # -----------------------------------------------------------------------
    # Nodes
    # -----------------------------------------------------------------------

    def get_nodes(
        self,
        project: str | None = None,
        node_filters: Mapping[str, Any] | None = None,
    ) -> list[Node]:
        """List the nodes of a project (or of all projects), optionally filtered."""
        if project is None:
            nodes = []
            for each in self.get_projects():
                if not each.name:
                    continue
                nodes.extend(self.get_nodes(each.name, node_filters))
            return nodes

        _require(project, "project is mandatory to get all nodes")
        return self._call.get(
            ApiPathBuilder("/resources").param("project", project).node_filters(node_filters),
            list_of("project/node", parse_node),
        )

    def get_node(self, name: str, project: str) -> Node:
        _require(name, "the name of the node is mandatory to get a node")
        _require(project, "project is mandatory to get a node")
        return self._call.get(
            ApiPathBuilder("/resource/", name).param("project", project),
            at("project/node", parse_node),
        )
