"""HTTP transport for talking to FHIR servers"""

import logging
import re
from typing import Any

import httpx

from fhirkit import errors

FHIR_JSON = "application/fhir+json"
JSON_PATCH = "application/json-patch+json"

DEFAULT_HEADERS = {"Accept": FHIR_JSON}

URL_SCHEME_REGEX = re.compile(r"https?://", re.IGNORECASE)

# Request options are a dictionary with an optional "headers" key.
# Every other key is handed to httpx as-is (timeout, extensions, params, etc).
RequestOptions = dict[str, Any]


def _redact(headers: httpx.Headers) -> dict:
    """Returns a copy of headers that is safe to log"""
    return {
        key: "<redacted>" if key.lower() == "authorization" else value
        for key, value in headers.items()
    }


def _error_message(response: httpx.Response) -> str | None:
    """Find a nice message to show user, if possible"""
    try:
        json_response = response.json()
    except ValueError:
        return response.text

    if not isinstance(json_response, dict):
        return response.text
    elif json_response.get("resourceType") == "OperationOutcome":
        issue = (json_response.get("issue") or [{}])[0]  # just grab first issue
        message = issue.get("details", {}).get("text")
        return message or issue.get("diagnostics")
    elif "error_description" in json_response:  # standard oauth2 error field
        return json_response["error_description"]
    elif "error_uri" in json_response:  # another standard oauth2 error field
        return f'visit "{json_response["error_uri"]}" for more details'

    return None


async def request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: httpx.Headers | dict | None = None,
    **kwargs,  # passed on to AsyncClient
) -> httpx.Response:
    """
    Issues a single HTTP request.

    There are no retries here -- any error is raised to the caller as a NetworkError,
    which keeps the response around for inspection.

    :param client: Client to use
    :param method: HTTP method to issue
    :param url: URL to hit
    :param headers: optional header dictionary
    :returns: The response object
    """
    request = client.build_request(method, url, headers=headers, **kwargs)
    try:
        response = await client.send(request, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise errors.NetworkError(str(exc), None) from exc

    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        message = _error_message(exc.response) or str(exc)
        raise errors.NetworkError(
            f'An error occurred when connecting to "{url}": {message}',
            response,
        ) from exc

    return response


def _parse_body(response: httpx.Response, url: str) -> Any:
    if not response.content:
        return {}

    try:
        return response.json()
    except ValueError as exc:
        raise errors.NetworkError(
            f'An error occurred when connecting to "{url}": response was not JSON',
            response,
        ) from exc


def _with_content_type(options: RequestOptions | None, content_type: str) -> RequestOptions:
    """Adds a default Content-Type to the options, without overriding a caller-supplied one"""
    options = dict(options or {})
    headers = httpx.Headers({"Content-Type": content_type})
    headers.update(options.get("headers") or {})
    options["headers"] = headers
    return options


class HttpClient:
    """
    Issues FHIR requests against a base URL and hands back parsed JSON.

    Use this as an async context manager (or call aclose()) to release the connection pool,
    unless you passed in your own session, which stays yours to close.
    """

    def __init__(
        self,
        base_url: str,
        *,
        custom_headers: dict | None = None,
        bearer_token: str | None = None,
        session: httpx.AsyncClient | None = None,
        timeout: float = 300,
    ):
        """
        :param base_url: relative request paths are resolved against this URL
        :param custom_headers: headers added to every request
        :param bearer_token: an OAuth2 access token, sent as an Authorization header
        :param session: an existing httpx client to share (connection pools are per-session)
        :param timeout: seconds to wait on the server (five minutes by default, to be generous)
        """
        self.base_url = base_url
        self.custom_headers = dict(custom_headers or {})
        self.bearer_token = bearer_token

        self._owns_session = session is None
        if session is None:
            # Limit the number of connections open at once, because EHRs tend to be very busy.
            session = httpx.AsyncClient(limits=httpx.Limits(max_connections=5), timeout=timeout)
        self._session = session

    @property
    def base_url(self) -> str:
        return self._base_url

    @base_url.setter
    def base_url(self, url: str) -> None:
        if not isinstance(url, str):
            raise ValueError("baseUrl must be a string")
        if not url:
            raise ValueError("baseUrl cannot be blank")
        self._base_url = url

    @property
    def session(self) -> httpx.AsyncClient:
        return self._session

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_session:
            await self._session.aclose()

    def expand_url(self, url: str = "") -> str:
        """Turns a path relative to the base URL into a full URL (absolute URLs pass through)"""
        if URL_SCHEME_REGEX.match(url):
            return url
        if self.base_url.endswith("/") and url.startswith("/"):
            return self.base_url + url[1:]
        if self.base_url.endswith("/") or url.startswith("/"):
            return self.base_url + url
        return f"{self.base_url}/{url}"

    def merge_headers(self, request_headers: httpx.Headers | dict | None = None) -> httpx.Headers:
        """Layers headers: defaults, then auth, then client-wide custom headers, then per-request ones"""
        headers = httpx.Headers(DEFAULT_HEADERS)
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        headers.update(self.custom_headers)
        headers.update(request_headers or {})
        return headers

    async def request(
        self, method: str, url: str, options: RequestOptions | None = None, body: Any = None
    ) -> Any:
        """
        Issues a request and returns the parsed JSON body ({} if the body was empty).

        May raise a NetworkError.

        :param method: HTTP method to issue
        :param url: full URL or path relative to the base URL
        :param options: "headers" plus any extra httpx request arguments (like "timeout")
        :param body: request payload, sent as-is if already text, otherwise as JSON
        """
        kwargs = dict(options or {})
        headers = self.merge_headers(kwargs.pop("headers", None))
        if body is not None:
            if isinstance(body, (str, bytes)):
                kwargs["content"] = body
            else:
                kwargs["json"] = body

        full_url = self.expand_url(url)
        logging.debug("%s %s", method, full_url)
        logging.debug("Headers: %s", _redact(headers))

        response = await request(self._session, method, full_url, headers=headers, **kwargs)

        logging.debug("Response: %s", response.status_code)
        return _parse_body(response, full_url)

    async def get(self, url: str, options: RequestOptions | None = None) -> Any:
        return await self.request("GET", url, options)

    async def delete(self, url: str, options: RequestOptions | None = None) -> Any:
        return await self.request("DELETE", url, options)

    async def post(self, url: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.request("POST", url, _with_content_type(options, FHIR_JSON), body)

    async def put(self, url: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.request("PUT", url, _with_content_type(options, FHIR_JSON), body)

    async def patch(self, url: str, body: Any = None, options: RequestOptions | None = None) -> Any:
        return await self.request("PATCH", url, _with_content_type(options, JSON_PATCH), body)
