"""Test doubles shared across the suite: a frozen clock, a fake Vault and a slow server."""

from __future__ import annotations

import json
import socket
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

VAULT_URL = "https://vault.test:8200"
T0 = datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def login_payload(token: str = "T1", nonce: str = "N1", lease: int = 3600, **auth: Any) -> dict:
    return {
        "request_id": "req-1",
        "auth": {
            "client_token": token,
            "accessor": "acc-1",
            "policies": ["default", "svc"],
            "renewable": False,
            "lease_duration": lease,
            "metadata": {"nonce": nonce, "role": "svc-a", "instance_id": "i-0123"},
            **auth,
        },
        "warnings": None,
    }


class FakeVault:
    """
    httpx.MockTransport handler serving both the EC2 metadata endpoint and
    the Vault login endpoint.

    ``responses`` is a queue of ``(status, body)`` pairs for login calls; the
    last entry repeats once the queue is drained. ``body`` may be a dict
    (sent as JSON) or a str (sent as text).
    """

    def __init__(self, proof: bytes = b"PROOF1", mount: str = "aws-ec2") -> None:
        self.proof = proof
        self.mount = mount
        self.responses: list[tuple[int, Any]] = [(200, login_payload())]
        self.login_bodies: list[dict] = []
        self.login_urls: list[str] = []
        self.on_login = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "169.254.169.254":
            return httpx.Response(200, content=self.proof)
        if request.method == "POST" and request.url.path == f"/v1/auth/{self.mount}/login":
            self.login_bodies.append(json.loads(request.content))
            self.login_urls.append(str(request.url))
            if self.on_login is not None:
                self.on_login()
            status, body = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
            if isinstance(body, dict):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body)
        return httpx.Response(404, text="no handler")

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@contextmanager
def slow_http_server(body: bytes, interval: float, status: int = 200) -> Iterator[str]:
    """
    Serve one HTTP response on 127.0.0.1, sending the body one byte every
    *interval* seconds. Yields the base URL.
    """
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    listener.settimeout(5)
    done = threading.Event()

    def serve() -> None:
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            try:
                conn.recv(65536)
                conn.sendall(
                    b"HTTP/1.1 %d OK\r\nContent-Length: %d\r\nConnection: close\r\n\r\n"
                    % (status, len(body))
                )
                for i in range(len(body)):
                    if done.is_set():
                        return
                    conn.sendall(body[i : i + 1])
                    time.sleep(interval)
            except OSError:
                return

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{listener.getsockname()[1]}"
    finally:
        done.set()
        listener.close()
        thread.join(timeout=5)
