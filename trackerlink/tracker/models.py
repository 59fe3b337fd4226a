from enum import StrEnum
from typing import NamedTuple, Optional

from trackerlink.common.errors import TrackerFailure


class Event(StrEnum):
    STARTED = "started"
    STOPPED = "stopped"
    COMPLETED = "completed"


class PeerEndpoint(NamedTuple):
    address: str
    port: int

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


class AnnounceRequest(NamedTuple):
    info_hash: bytes
    peer_id: bytes
    port: int
    uploaded: int
    downloaded: int
    left: int
    compact: int = 1
    event: Event = Event.STARTED


class AnnounceResponse(NamedTuple):
    """Decoded tracker reply.

    A present ``failure_reason`` means the tracker was reachable but refused
    the announce; ``peers`` is then usually empty.
    """

    failure_reason: Optional[str] = None
    interval: Optional[int] = None
    peers: tuple[PeerEndpoint, ...] = ()
    min_interval: Optional[int] = None
    tracker_id: Optional[bytes] = None
    complete: Optional[int] = None
    incomplete: Optional[int] = None
    warning_message: Optional[str] = None

    @classmethod
    def empty(cls) -> "AnnounceResponse":
        return cls()

    @property
    def failed(self) -> bool:
        return bool(self.failure_reason)

    def raise_for_failure(self) -> "AnnounceResponse":
        if self.failed:
            raise TrackerFailure(self.failure_reason)
        return self
