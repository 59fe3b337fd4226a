"""Shared fixtures for trackerlink tests."""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Any, Callable

import bencodepy
import httpx
import pytest

from trackerlink.common.session import ClientSession

PIECE_HASHES = b"\x11" * 20 + b"\x22" * 20
PEER_ID = b"-TL0001-abcdefghijkl"


def build_metainfo(**overrides: Any) -> dict:
    """Return a single-file metainfo dict; ``None`` overrides drop the key."""
    metainfo = {
        b"announce": b"http://tracker.example.com/announce",
        b"creation date": 1700000000,
        b"created by": b"trackerlink tests",
        b"info": {
            b"name": b"sample.iso",
            b"piece length": 262144,
            b"pieces": PIECE_HASHES,
            b"length": 400000,
        },
    }
    for key, value in overrides.items():
        raw_key = key.replace("_", " ").encode() if key != "announce_list" else b"announce-list"
        if value is None:
            metainfo.pop(raw_key, None)
        else:
            metainfo[raw_key] = value
    return metainfo


@pytest.fixture
def write_torrent(tmp_path: Path) -> Callable[..., Path]:
    """Bencode a metainfo dict into a .torrent file under tmp_path."""
    counter = iter(range(1000))

    def _write(metainfo: dict | None = None, raw: bytes | None = None) -> Path:
        path = tmp_path / f"sample-{next(counter)}.torrent"
        data = raw if raw is not None else bencodepy.encode(metainfo or build_metainfo())
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def session() -> ClientSession:
    return ClientSession(peer_id=PEER_ID, port=6881, left=400000)


def tracker_body(**fields: Any) -> bytes:
    """Bencode a tracker response from keyword fields (underscores become spaces)."""
    return bencodepy.encode({k.replace("_", " ").encode(): v for k, v in fields.items()})


class FakeTrackers:
    """httpx mock transport routing announces by host and recording each attempt."""

    def __init__(self, routes: dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.attempts: list[str] = []
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.attempts.append(host)
        self.requests.append(request)
        return self.routes[host](request)


def ok(peers: bytes = b"\x7f\x00\x00\x01\x1a\xe1", interval: int = 1800):
    return lambda request: httpx.Response(200, content=tracker_body(interval=interval, peers=peers))


def rejected(reason: bytes = b"unregistered torrent"):
    return lambda request: httpx.Response(200, content=tracker_body(failure_reason=reason))


def unreachable():
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return _raise


def status(code: int):
    return lambda request: httpx.Response(code, content=b"<html>error</html>")


def occupy(port: int, host: str = "127.0.0.1") -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((host, port))
    sock.listen()
    return sock
