import hashlib
import logging
import os
import time

from trackerlink.torrent.metadata import TorrentIdentity
from trackerlink.tracker.models import AnnounceRequest, Event

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6881


def generate_peer_id() -> bytes:
    """SHA-1 of the current epoch seconds and the process id, both in decimal."""
    digest = hashlib.sha1()
    digest.update(str(int(time.time())).encode("ascii"))
    digest.update(str(os.getpid()).encode("ascii"))
    return digest.digest()


class ClientSession:
    """Per-session client state handed to every announce.

    Holds what a tracker needs to know about us: our peer id, the port we
    accept peers on and the running transfer totals.
    """

    __slots__ = (
        "peer_id",
        "port",
        "uploaded",
        "downloaded",
        "left",
    )

    def __init__(
        self,
        peer_id: bytes | None = None,
        port: int = DEFAULT_PORT,
        uploaded: int = 0,
        downloaded: int = 0,
        left: int = 0,
    ):
        self.peer_id = peer_id if peer_id is not None else generate_peer_id()
        if len(self.peer_id) != 20:
            raise ValueError(f"peer_id must be 20 bytes, got {len(self.peer_id)}")
        self.port = port
        self.uploaded = uploaded
        self.downloaded = downloaded
        self.left = left

    @classmethod
    def for_torrent(cls, identity: TorrentIdentity, **kwargs) -> "ClientSession":
        kwargs.setdefault("left", identity.metadata.total_length)
        session = cls(**kwargs)
        logger.debug(
            f"Session for {identity.metadata.name}: peer_id={session.peer_id.hex()} "
            f"left={session.left}"
        )
        return session

    def build_request(
        self, identity: TorrentIdentity, event: Event = Event.STARTED
    ) -> AnnounceRequest:
        return AnnounceRequest(
            info_hash=identity.info_hash,
            peer_id=self.peer_id,
            port=self.port,
            uploaded=self.uploaded,
            downloaded=self.downloaded,
            left=self.left,
            event=Event(event),
        )
