"""Various test helper methods"""

import contextlib
import functools
import inspect
import io
import json
import os
import tempfile
import unittest
from unittest import mock

import httpx
import respx
import rich.console

from fhirkit import fhir


class AsyncTestCase(unittest.IsolatedAsyncioTestCase):
    """Base test case with fixture helpers (fine for both async and sync test methods)"""

    def setUp(self):
        super().setUp()

        # It's so common to want to see more than the tiny default fragment.
        # So we just enable this across the board.
        self.maxDiff = None

        # Make it easy to grab test data, regardless of where the test is
        self.datadir = os.path.join(os.path.dirname(__file__), "data")

    def read_data(self, filename: str) -> dict:
        """Loads a fresh copy of a json fixture from the data dir"""
        with open(os.path.join(self.datadir, filename), encoding="utf8") as f:
            return json.load(f)

    def make_tempdir(self) -> str:
        """Creates a temporary dir that will be automatically cleaned up"""
        tempdir = tempfile.TemporaryDirectory()
        self.addCleanup(tempdir.cleanup)
        return tempdir.name

    def patch(self, *args, **kwargs) -> mock.Mock:
        """Syntactic sugar to ease making a mock over a test's lifecycle, without decorators"""
        patcher = mock.patch(*args, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def capture_console(self) -> io.StringIO:
        """Redirects rich console output (like printed json) into a buffer, without any styling"""
        output = io.StringIO()
        console = rich.console.Console(file=output, force_terminal=False, width=200)
        self.patch("rich.get_console", return_value=console)
        return output

    @contextlib.contextmanager
    def assert_fatal_exit(self, code: int | None = None):
        with self.assertRaises(SystemExit) as cm:
            yield
        if code is not None:
            self.assertEqual(cm.exception.code, code)

    async def _catch_system_exit(self, method):
        try:
            ret = method()
            if inspect.isawaitable(ret):
                return await ret
            return ret
        except SystemExit:
            self.fail("Raised unexpected system exit")

    def _callTestMethod(self, method):
        """
        Turns an uncaught SystemExit in a test method into a test failure.

        On python 3.10, an async test that raises SystemExit hangs the event loop forever
        (see https://github.com/python/cpython/issues/83282), so we catch it ourselves.
        This can go away once 3.10 is no longer supported.
        """
        return super()._callTestMethod(functools.partial(self._catch_system_exit, method))


class FhirClientMixin(unittest.TestCase):
    """Mixin that provides a realistic FhirClient talking to a mocked server"""

    def setUp(self):
        super().setUp()

        self.fhir_base = "https://example.com"

        # Every test here is offline, so any request without a route is an error
        self.respx_mock = respx.MockRouter(assert_all_called=False)
        self.addCleanup(self.respx_mock.stop)
        self.respx_mock.start()

    def fhir_client(self, url: str | None = None, **kwargs) -> fhir.FhirClient:
        client = fhir.FhirClient(url or self.fhir_base, **kwargs)
        self.addAsyncCleanup(client.aclose)
        return client

    def assert_no_requests(self) -> None:
        self.assertEqual(0, self.respx_mock.calls.call_count)


def make_response(
    status_code: int = 200, json_payload=None, text: str | None = None, reason: str | None = None
) -> httpx.Response:
    """
    Builds a canned server response, for routes that need more control than respx's respond().

    Example:
        self.respx_mock.get(url).mock(return_value=make_response(400, text="Bad request"))
    """
    if json_payload:
        content = json.dumps(json_payload).encode("utf8")
        content_type = "application/json"
    else:
        content = (text or "").encode("utf8")
        content_type = "text/plain; charset=utf-8"

    return httpx.Response(
        status_code,
        content=content,
        headers={"Content-Type": content_type},
        extensions=reason and {"reason_phrase": reason.encode("utf8")},
    )
