"""HTTP calls to the RunDeck API.

Each call runs in its own short-lived ``httpx.Client`` (connection pool and
cookie jar): the session is opened, authenticated, used for one request (plus
at most one redirect), and closed before the call returns. No state is shared
between calls, so one ``ApiCall`` can serve concurrent callers.
"""

import io
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

import httpx
import structlog

from .. import __version__
from ..config import ClientConfig
from .exceptions import RundeckApiError, RundeckApiLoginError, RundeckApiTokenError
from .parsers import XmlParser, load_document
from .paths import ApiPathBuilder

logger = structlog.get_logger(__name__)

T = TypeVar("T")

LOGIN_PATH = "/j_security_check"

# Present in the body whenever RunDeck answers with its login form again.
LOGIN_FORM_MARKER = "j_security_check"

# Where RunDeck sends unauthenticated browsers.
LOGIN_PAGE_PATH = "/user/login"

TOKEN_HEADER = "X-RunDeck-Auth-Token"
TOKEN_PARAM = "authtoken"


def _status_line(response: httpx.Response) -> str:
    return f"{response.http_version} {response.status_code} {response.reason_phrase}"


def _is_redirect(response: httpx.Response) -> bool:
    return response.status_code // 100 == 3  # noqa: PLR2004


def _is_success(response: httpx.Response) -> bool:
    return response.status_code // 100 == 2  # noqa: PLR2004


class ApiCall:
    """Executes authenticated HTTP calls against a RunDeck instance.

    Handles the login handshake (or the auth-token), redirects, HTTP status
    checks and the decoding of the response, which is then handed to a
    parser to build the result.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API call executor.

        Args:
            config: Connection settings of the RunDeck instance.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
                in tests. Defaults to the regular network transport.
        """
        self.config = config
        self._transport = transport

    # -----------------------------------------------------------------------
    # Sessions
    # -----------------------------------------------------------------------

    def _build_session(self, *, authenticated: bool, follow_redirects: bool) -> httpx.Client:
        headers = {"User-Agent": f"rundeck-api-client/{__version__}"}
        if authenticated and self._uses_token_header:
            headers[TOKEN_HEADER] = self.config.token.get_secret_value()

        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": self.config.timeout,
            "follow_redirects": follow_redirects,
            "verify": self.config.verify_ssl,
        }
        if self.config.proxy:
            kwargs["proxy"] = self.config.proxy
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    @contextmanager
    def _session(
        self,
        *,
        authenticated: bool = True,
        follow_redirects: bool = False,
    ) -> Iterator[httpx.Client]:
        """Open a session, and release it whatever happens.

        A failure to release never hides the error raised by the call itself.
        """
        session = self._build_session(
            authenticated=authenticated,
            follow_redirects=follow_redirects,
        )
        try:
            yield session
        finally:
            try:
                session.close()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to release HTTP session")

    @property
    def _uses_token_header(self) -> bool:
        return self.config.auth_mode == "token" and not self.config.token_as_param

    def _with_token_param(self, url: str) -> str:
        """Add the token to the query string of ``url``, when sent as a param."""
        if self.config.auth_mode != "token" or not self.config.token_as_param:
            return url
        token = self.config.token.get_secret_value()
        return str(httpx.URL(url).copy_merge_params({TOKEN_PARAM: token}))

    # -----------------------------------------------------------------------
    # Authentication
    # -----------------------------------------------------------------------

    def _login(self, session: httpx.Client) -> None:
        """Log in through the web form, leaving the session cookie in ``session``.

        The form is POSTed again at each redirect target until RunDeck answers
        without redirecting. Redirects are followed by hand so that the form
        is re-submitted instead of being turned into a GET.

        Raises:
            RundeckApiLoginError: If the login fails, or if the redirect
                chain is longer than ``max_login_redirects``.
        """
        login = self.config.login
        location = f"{self.config.url}{LOGIN_PATH}"
        form = {
            "j_username": login,
            "j_password": self.config.password.get_secret_value(),
            "action": "login",
        }

        redirects = 0
        while True:
            try:
                response = session.post(location, data=form)
            except httpx.HTTPError as exc:
                msg = f"Failed to post login form on {location}"
                raise RundeckApiLoginError(msg) from exc

            if not _is_redirect(response):
                break

            redirects += 1
            if redirects > self.config.max_login_redirects:
                msg = (
                    f"Too many redirects ({self.config.max_login_redirects}) "
                    f"while logging in on {self.config.url}"
                )
                raise RundeckApiLoginError(msg, status_code=response.status_code)
            next_location = response.headers.get("Location")
            if not next_location:
                msg = f"Invalid HTTP response '{_status_line(response)}' for {location} (no location)"
                raise RundeckApiLoginError(msg, status_code=response.status_code)
            location = str(response.url.join(next_location))
            logger.debug("Following login redirect", location=location, hop=redirects)

        if not _is_success(response):
            msg = f"Invalid HTTP response '{_status_line(response)}' for {location}"
            raise RundeckApiLoginError(msg, status_code=response.status_code)
        if LOGIN_FORM_MARKER in response.text:
            msg = f"Login failed for user {login}"
            raise RundeckApiLoginError(msg, status_code=response.status_code)

        logger.debug("Logged in", login=login, redirects=redirects)

    def _check_token_redirect(self, location: str) -> None:
        # A rejected token sends us to the login page, like a browser
        if self.config.auth_mode == "token" and LOGIN_PAGE_PATH in httpx.URL(location).path:
            msg = f"Token auth failed ! Redirected to {location}"
            raise RundeckApiTokenError(msg)

    # -----------------------------------------------------------------------
    # Calls
    # -----------------------------------------------------------------------

    def _execute(self, method: str, api_path: ApiPathBuilder) -> bytes:
        """Execute an HTTP request on the API and return the response body.

        Logs in first (login-based auth), then executes the request. A
        redirect (RunDeck redirects to an error page on failures) is followed
        once with a GET.

        Args:
            method: "GET", "POST" or "DELETE".
            api_path: Path below the API endpoint, with its attachments.

        Returns:
            The response body, fully read.

        Raises:
            RundeckApiLoginError: If the login fails.
            RundeckApiTokenError: If the token is rejected.
            RundeckApiError: On network failure, non-2xx status or empty body.
        """
        url = f"{self.config.api_url}{api_path}"
        files = None
        if method == "POST" and api_path.attachments:
            files = {name: (name, stream) for name, stream in api_path.attachments.items()}

        start_time = time.time()
        with self._session() as session:
            if self.config.auth_mode == "login":
                self._login(session)

            logger.debug("Making API request", method=method, url=url)
            try:
                response = session.request(method, self._with_token_param(url), files=files)
            except httpx.HTTPError as exc:
                logger.exception(
                    "API request failed",
                    method=method,
                    url=url,
                    duration_seconds=round(time.time() - start_time, 3),
                )
                msg = f"Failed to execute an HTTP {method} on url : {url}"
                raise RundeckApiError(msg) from exc

            if _is_redirect(response):
                location = response.headers.get("Location")
                if not location:
                    msg = f"Invalid HTTP response '{_status_line(response)}' for {url} (no location)"
                    raise RundeckApiError(msg, status_code=response.status_code)
                url = str(response.url.join(location))
                self._check_token_redirect(url)
                logger.debug("Following redirect", method="GET", url=url)
                try:
                    response = session.get(self._with_token_param(url))
                except httpx.HTTPError as exc:
                    msg = f"Failed to execute an HTTP GET on url : {url}"
                    raise RundeckApiError(msg) from exc

            if self.config.auth_mode == "token" and response.status_code == httpx.codes.FORBIDDEN:
                msg = f"Invalid token ! Got HTTP response '{_status_line(response)}' for {url}"
                raise RundeckApiTokenError(msg, status_code=response.status_code)
            if not _is_success(response):
                msg = f"Invalid HTTP response '{_status_line(response)}' for {url}"
                raise RundeckApiError(msg, status_code=response.status_code)
            if not response.content:
                logger.warning("Empty API response", url=url, status=_status_line(response))
                msg = "Empty response"
                raise RundeckApiError(msg, status_code=response.status_code)
            body = response.content

        logger.debug(
            "API request completed",
            method=method,
            url=url,
            duration_seconds=round(time.time() - start_time, 3),
        )
        return body

    def get(self, api_path: ApiPathBuilder, parser: XmlParser[T]) -> T:
        """Execute a GET on the given path and parse the response."""
        return parser(load_document(self._execute("GET", api_path)))

    def post(self, api_path: ApiPathBuilder, parser: XmlParser[T]) -> T:
        """Execute a multipart POST (with the path's attachments) and parse the response."""
        return parser(load_document(self._execute("POST", api_path)))

    def delete(self, api_path: ApiPathBuilder, parser: XmlParser[T]) -> T:
        """Execute a DELETE on the given path and parse the response."""
        return parser(load_document(self._execute("DELETE", api_path)))

    def get_raw(self, api_path: ApiPathBuilder) -> io.BytesIO:
        """Execute a GET on the given path and return the raw body.

        An XML body is still checked for a server error before it is
        returned. Other formats (YAML exports) are returned as-is.

        Returns:
            An in-memory stream, not tied to any network resource.
        """
        body = self._execute("GET", api_path)
        if body.lstrip().startswith(b"<"):
            load_document(body)
        return io.BytesIO(body)

    def ping(self) -> None:
        """Check that the RunDeck instance is alive (no authentication).

        Raises:
            RundeckApiError: If the instance doesn't answer with a 2xx status.
        """
        url = self.config.url
        with self._session(authenticated=False, follow_redirects=True) as session:
            try:
                response = session.get(url)
            except httpx.HTTPError as exc:
                msg = f"Failed to ping RunDeck instance at {url}"
                raise RundeckApiError(msg) from exc
            if not _is_success(response):
                msg = f"Invalid HTTP response '{_status_line(response)}' when pinging {url}"
                raise RundeckApiError(msg, status_code=response.status_code)

    def test_auth(self) -> None:
        """Check the credentials (login/password) or the auth-token.

        Raises:
            RundeckApiLoginError: If the login fails (login-based auth).
            RundeckApiTokenError: If the token is rejected (token-based auth).
        """
        if self.config.auth_mode == "login":
            with self._session() as session:
                self._login(session)
        else:
            load_document(self._execute("GET", ApiPathBuilder("/system/info")))
