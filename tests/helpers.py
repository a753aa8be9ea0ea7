"""Test doubles shared across the test suite."""

import json
from typing import Any

import requests

START_TIME = 1_700_000_000.0


class FakeClock:
    """Deterministic clock that also stands in for a threading.Event.

    wait() advances time by the requested timeout and records it. Set
    ``cancel_on_wait`` to simulate an external cancellation arriving during
    the n-th wait (1-based).
    """

    def __init__(self, now: float = START_TIME):
        self.now = now
        self.waits: list[float] = []
        self.cancel_on_wait: int | None = None
        self._cancelled = False

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    # threading.Event interface
    def wait(self, timeout: float | None = None) -> bool:
        if self._cancelled:
            return True
        self.waits.append(timeout or 0.0)
        if self.cancel_on_wait is not None and len(self.waits) >= self.cancel_on_wait:
            self._cancelled = True
            return True
        self.now += timeout or 0.0
        return False

    def is_set(self) -> bool:
        return self._cancelled

    def set(self) -> None:
        self._cancelled = True


def make_response(
    status_code: int = 200,
    payload: Any = None,
    text: str | None = None,
    reason: str = "",
) -> requests.Response:
    """Build a real requests.Response with a JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    response.encoding = "utf-8"
    return response


def device_code_payload(expires_in: int = 600, interval: int = 5) -> dict[str, Any]:
    """Device code response used across scenarios."""
    return {
        "device_code": "D1",
        "user_code": "ABCD-1234",
        "verification_uri": "https://example/device",
        "expires_in": expires_in,
        "interval": interval,
    }


def pending() -> requests.Response:
    return make_response(200, {"error": "authorization_pending"})


def copilot_token(token: str = "tid=new", expires_at: int = int(START_TIME) + 1800):
    return make_response(200, {"token": token, "expires_at": expires_at})
