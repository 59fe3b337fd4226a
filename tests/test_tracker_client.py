"""Tests for the single-tracker HTTP announce and compact peer decoding."""

from __future__ import annotations

from urllib.parse import unquote_to_bytes

import httpx
import pytest

from conftest import PEER_ID, FakeTrackers, ok, rejected, status, tracker_body, unreachable
from trackerlink.common.errors import (
    DecodeError,
    MalformedPeerListError,
    TrackerFailure,
    TransportError,
)
from trackerlink.tracker.models import AnnounceRequest, AnnounceResponse, Event, PeerEndpoint
from trackerlink.tracker.tracker_client import TrackerClient, decode_response, parse_peers

pytestmark = [pytest.mark.unit, pytest.mark.tracker]

# contains bytes that must be percent-encoded: space, '&', '/', '=', '%'
INFO_HASH = b" &/=%\x00\xff" + bytes(range(0x41, 0x4e))


@pytest.fixture
def request_():
    return AnnounceRequest(
        info_hash=INFO_HASH,
        peer_id=PEER_ID,
        port=6885,
        uploaded=10,
        downloaded=20,
        left=30,
        event=Event.COMPLETED,
    )


def query_params(request: httpx.Request) -> dict[str, bytes]:
    params = {}
    for pair in request.url.query.split(b"&"):
        key, _, value = pair.partition(b"=")
        params[key.decode()] = unquote_to_bytes(value)
    return params


class TestParsePeers:
    """Compact peer list decoding."""

    def test_single_peer(self):
        assert parse_peers(bytes([127, 0, 0, 1, 0x1A, 0xE1])) == [PeerEndpoint("127.0.0.1", 6881)]

    def test_multiple_peers_keep_order(self):
        data = bytes([10, 0, 0, 1, 0, 80]) + bytes([255, 255, 255, 255, 0xFF, 0xFF]) + bytes(6)
        assert parse_peers(data) == [
            PeerEndpoint("10.0.0.1", 80),
            PeerEndpoint("255.255.255.255", 65535),
            PeerEndpoint("0.0.0.0", 0),
        ]

    def test_empty(self):
        assert parse_peers(b"") == []

    @pytest.mark.parametrize("length", [1, 5, 7, 11, 13])
    def test_length_not_multiple_of_six(self, length):
        with pytest.raises(MalformedPeerListError):
            parse_peers(b"\x01" * length)

    def test_endpoint_unpacks_like_a_tuple(self):
        ip, port = parse_peers(bytes([192, 168, 1, 2, 0x1A, 0xE2]))[0]
        assert (ip, port) == ("192.168.1.2", 6882)


class TestDecodeResponse:
    """Tracker response bodies."""

    def test_compact_response(self):
        response = decode_response(
            tracker_body(interval=900, min_interval=60, complete=5, incomplete=2, peers=bytes([1, 2, 3, 4, 0, 1]))
        )
        assert response.failure_reason is None
        assert not response.failed
        assert response.interval == 900
        assert response.min_interval == 60
        assert response.complete == 5
        assert response.incomplete == 2
        assert response.peers == (PeerEndpoint("1.2.3.4", 1),)

    def test_dictionary_peers(self):
        body = tracker_body(
            interval=60,
            peers=[{b"ip": b"10.1.1.1", b"port": 51413, b"peer id": b"x" * 20}],
        )
        assert decode_response(body).peers == (PeerEndpoint("10.1.1.1", 51413),)

    def test_failure_reason_is_carried_not_raised(self):
        response = decode_response(tracker_body(failure_reason=b"invalid info_hash"))
        assert response.failed
        assert response.failure_reason == "invalid info_hash"
        assert response.peers == ()
        with pytest.raises(TrackerFailure) as exc_info:
            response.raise_for_failure()
        assert exc_info.value.reason == "invalid info_hash"

    def test_malformed_peers(self):
        with pytest.raises(MalformedPeerListError):
            decode_response(tracker_body(interval=60, peers=b"\x00" * 7))

    def test_not_bencoded(self):
        with pytest.raises(DecodeError):
            decode_response(b"<html>not a tracker</html>")

    def test_not_a_dict(self):
        with pytest.raises(DecodeError):
            decode_response(b"i42e")

    @pytest.mark.parametrize(
        "peer",
        [
            {b"ip": 7, b"port": 1},
            {b"ip": b"10.0.0.1", b"port": b"6881"},
            {b"ip": b"10.0.0.1", b"port": -1},
            {b"ip": b"10.0.0.1"},
        ],
    )
    def test_badly_typed_dictionary_peer(self, peer):
        with pytest.raises(DecodeError):
            decode_response(tracker_body(interval=60, peers=[peer]))

    def test_peers_of_wrong_type(self):
        with pytest.raises(DecodeError):
            decode_response(tracker_body(interval=60, peers=42))

    def test_interval_of_wrong_type(self):
        with pytest.raises(DecodeError):
            decode_response(tracker_body(interval=b"soon"))

    def test_empty_response(self):
        response = AnnounceResponse.empty()
        assert response.peers == ()
        assert response.interval is None
        assert response.raise_for_failure() is response


class TestTrackerClient:
    """One announce against one tracker."""

    @pytest.mark.asyncio
    async def test_query_carries_raw_bytes(self, request_):
        trackers = FakeTrackers({"tracker.example.com": ok()})
        client = TrackerClient("http://tracker.example.com/announce", transport=trackers.transport)

        response = await client.announce(request_)

        assert response.peers == (PeerEndpoint("127.0.0.1", 6881),)
        assert response.interval == 1800
        sent = trackers.requests[0]
        assert sent.method == "GET"
        assert sent.url.path == "/announce"
        params = query_params(sent)
        assert params["info_hash"] == INFO_HASH
        assert params["peer_id"] == PEER_ID
        assert params["port"] == b"6885"
        assert params["uploaded"] == b"10"
        assert params["downloaded"] == b"20"
        assert params["left"] == b"30"
        assert params["compact"] == b"1"
        assert params["event"] == b"completed"

    def test_existing_query_is_kept(self, request_):
        client = TrackerClient("http://tracker.example.com/announce?passkey=abc")
        url = client.build_url(request_)
        assert url.startswith("http://tracker.example.com/announce?passkey=abc&info_hash=")

    @pytest.mark.asyncio
    async def test_failure_reason_returned(self, request_):
        trackers = FakeTrackers({"tracker.example.com": rejected(b"banned client")})
        client = TrackerClient("http://tracker.example.com/announce", transport=trackers.transport)

        response = await client.announce(request_)
        assert response.failure_reason == "banned client"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [301, 404, 500, 503])
    async def test_non_success_status(self, request_, code):
        trackers = FakeTrackers({"tracker.example.com": status(code)})
        client = TrackerClient("http://tracker.example.com/announce", transport=trackers.transport)

        with pytest.raises(TransportError):
            await client.announce(request_)

    @pytest.mark.asyncio
    async def test_connection_error(self, request_):
        trackers = FakeTrackers({"tracker.example.com": unreachable()})
        client = TrackerClient("http://tracker.example.com/announce", transport=trackers.transport)

        with pytest.raises(TransportError) as exc_info:
            await client.announce(request_)
        assert exc_info.value.details["url"] == "http://tracker.example.com/announce"

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self, request_):
        trackers = FakeTrackers({})
        client = TrackerClient("udp://tracker.example.com:1337/announce", transport=trackers.transport)

        with pytest.raises(TransportError):
            await client.announce(request_)
        assert trackers.attempts == []
