import threading
import time
from logging import Logger

import pytest
import requests

from logger.basic_logger import setup_logger


# ----- simple logger used across tests -----
class CaptureLog:
    def __init__(self):
        self.infos = []
        self.errors = []

    def info(self, msg, *a, **k):
        self.infos.append(msg)

    def error(self, msg, *a, **k):
        self.errors.append(msg)


@pytest.fixture
def capture_log():
    return CaptureLog()


# ----- lightweight HTTP fakes -----
class FakeResponse:
    def __init__(self, *, json_data=None, status_code=200, delay=0.0):
        self._json = json_data
        self.status_code = status_code
        self.delay = delay
        self.reason = "Fake"

    def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(
                f"{self.status_code} Client Error: {self.reason}", response=self
            )


class FakeSession:
    """
    Responses are looked up by (url, offset); offset is None for object
    endpoints. ``handler`` may be a FakeResponse, an exception instance, or a
    callable taking (url, params).

    mapping = {
      ("https://svc.microcms.io/api/v1/news", 0): FakeResponse(...),
      ("https://svc.microcms.io/api/v1/site", None): FakeResponse(...),
    }
    """

    def __init__(self, mapping):
        self._m = dict(mapping)
        self.headers = {}
        self.proxies = {}
        self.verify = True
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def close(self):
        self.closed = True

    def get(self, url, **kw):
        params = kw.get("params") or {}
        with self._lock:
            self.calls.append((url, dict(params), dict(kw.get("headers") or {})))
        handler = self._m.get((url, params.get("offset")))
        if handler is None:
            return FakeResponse(json_data={}, status_code=404)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            handler = handler(url, params)
        if handler.delay:
            time.sleep(handler.delay)
        return handler

    @property
    def offsets(self):
        return sorted(p.get("offset") for _, p, _ in self.calls)


@pytest.fixture
def fake_sess():
    return FakeSession


def list_page(items, total, offset=0, limit=100, delay=0.0):
    return FakeResponse(
        json_data={
            "contents": items,
            "totalCount": total,
            "offset": offset,
            "limit": limit,
        },
        delay=delay,
    )


@pytest.fixture(scope="session", autouse=True)
def log() -> Logger:
    log = setup_logger()
    return log


@pytest.fixture
def fake_resp():
    return FakeResponse


@pytest.fixture
def page():
    return list_page
