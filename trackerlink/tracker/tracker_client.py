import httpx
from urllib.parse import quote, urlencode, urlparse
import socket
import struct
import bencodepy
import logging

from trackerlink.common.errors import (
    DecodeError,
    MalformedPeerListError,
    TransportError,
)
from trackerlink.tracker.models import AnnounceRequest, AnnounceResponse, PeerEndpoint

logger = logging.getLogger(__name__)

COMPACT_PEER_LENGTH = 6
DEFAULT_TIMEOUT = 10.0
SUPPORTED_SCHEMES = {"http", "https"}


def parse_peers(peers_raw: bytes) -> list[PeerEndpoint]:
    """Decode a compact peer string: 4 address octets then a big-endian port."""
    if len(peers_raw) % COMPACT_PEER_LENGTH != 0:
        raise MalformedPeerListError(
            f"Peer string length {len(peers_raw)} is not a multiple of "
            f"{COMPACT_PEER_LENGTH}"
        )

    peers = []
    for i in range(0, len(peers_raw), COMPACT_PEER_LENGTH):
        ip = socket.inet_ntoa(peers_raw[i : i + 4])
        peer_port = struct.unpack(">H", peers_raw[i + 4 : i + 6])[0]
        peers.append(PeerEndpoint(ip, peer_port))
    return peers


def _parse_peer_dicts(peers_raw: list) -> list[PeerEndpoint]:
    peers = []
    for peer in peers_raw:
        if not isinstance(peer, dict) or b"ip" not in peer or b"port" not in peer:
            raise DecodeError("Peer entry is missing 'ip' or 'port'")
        ip, peer_port = peer[b"ip"], peer[b"port"]
        if not isinstance(ip, bytes):
            raise DecodeError("Peer 'ip' is not a string")
        if not isinstance(peer_port, int) or not 0 <= peer_port <= 0xFFFF:
            raise DecodeError(f"Peer 'port' is not a valid port: {peer_port!r}")
        peers.append(PeerEndpoint(ip.decode("utf-8", errors="replace"), peer_port))
    return peers


def _optional_int(decoded: dict, key: bytes) -> int | None:
    value = decoded.get(key)
    if value is not None and not isinstance(value, int):
        raise DecodeError(f"Field {key.decode()!r} is not an integer")
    return value


def _optional_str(decoded: dict, key: bytes) -> str | None:
    value = decoded.get(key)
    if value is None:
        return None
    if not isinstance(value, bytes):
        raise DecodeError(f"Field {key.decode()!r} is not a string")
    return value.decode("utf-8", errors="replace")


def decode_response(body: bytes) -> AnnounceResponse:
    try:
        decoded = bencodepy.decode(body)
    except bencodepy.BencodeDecodeError as e:
        raise DecodeError(f"Failed to decode tracker response: {e}") from e
    if not isinstance(decoded, dict):
        raise DecodeError("Tracker response is not a dictionary")

    peers_raw = decoded.get(b"peers", b"")
    if isinstance(peers_raw, bytes):
        peers = parse_peers(peers_raw)
    elif isinstance(peers_raw, list):
        peers = _parse_peer_dicts(peers_raw)
    else:
        raise DecodeError("Field 'peers' is neither a string nor a list")

    return AnnounceResponse(
        failure_reason=_optional_str(decoded, b"failure reason"),
        interval=_optional_int(decoded, b"interval"),
        peers=tuple(peers),
        min_interval=_optional_int(decoded, b"min interval"),
        tracker_id=decoded.get(b"tracker id"),
        complete=_optional_int(decoded, b"complete"),
        incomplete=_optional_int(decoded, b"incomplete"),
        warning_message=_optional_str(decoded, b"warning message"),
    )


class TrackerClient:
    __slots__ = (
        "announce_url",
        "timeout",
        "transport",
    )

    def __init__(
        self,
        announce_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.announce_url = announce_url
        self.timeout = timeout
        self.transport = transport

    def _build_query(self, request: AnnounceRequest) -> str:
        params = {
            "info_hash": request.info_hash,  # raw bytes, percent-encoded as-is
            "peer_id": request.peer_id,
            "port": request.port,
            "uploaded": request.uploaded,
            "downloaded": request.downloaded,
            "left": request.left,
            "compact": request.compact,
            "event": request.event,
        }
        return urlencode(params, quote_via=quote)

    def build_url(self, request: AnnounceRequest) -> str:
        separator = "&" if urlparse(self.announce_url).query else "?"
        return f"{self.announce_url}{separator}{self._build_query(request)}"

    async def announce(self, request: AnnounceRequest) -> AnnounceResponse:
        scheme = urlparse(self.announce_url).scheme
        if scheme not in SUPPORTED_SCHEMES:
            raise TransportError(
                f"Unsupported tracker protocol: {scheme or '<none>'}",
                {"url": self.announce_url},
            )

        url = self.build_url(request)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(
                f"Tracker announcement failed: {e!r}", {"url": self.announce_url}
            ) from e

        if not response.is_success:
            raise TransportError(
                f"Tracker announcement failed with status {response.status_code}",
                {"url": self.announce_url},
            )

        announce_response = decode_response(response.content)
        logger.debug(
            f"({self.announce_url}) interval={announce_response.interval} "
            f"peers={len(announce_response.peers)}"
        )
        return announce_response
