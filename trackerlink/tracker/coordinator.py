import httpx
import logging
import random

from trackerlink.common.errors import DecodeError, TrackerError, TrackerFailure
from trackerlink.common.session import ClientSession
from trackerlink.torrent.metadata import TorrentIdentity
from trackerlink.tracker.models import AnnounceRequest, AnnounceResponse, Event
from trackerlink.tracker.tracker_client import DEFAULT_TIMEOUT, TrackerClient

logger = logging.getLogger(__name__)


class AnnounceCoordinator:
    """Picks one tracker out of a torrent's announce tiers and announces to it.

    Tiers are walked in declared order, each shuffled. The first tracker
    that answers without a failure reason wins. When every tier is
    exhausted, the top-level ``announce`` URL is tried as a last resort.
    """

    __slots__ = ("timeout", "transport", "rng")

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self.rng = rng if rng is not None else random.Random()

    def _client(self, url: str) -> TrackerClient:
        return TrackerClient(url, timeout=self.timeout, transport=self.transport)

    async def _announce_tiers(
        self, identity: TorrentIdentity, request: AnnounceRequest
    ) -> AnnounceResponse | None:
        for tier_index, tier in enumerate(identity.announce_list):
            for index in self.rng.sample(range(len(tier)), len(tier)):
                url = tier[index]
                logger.debug(f"({url}) Announcing... (tier {tier_index})")
                try:
                    response = await self._client(url).announce(request)
                    return response.raise_for_failure()
                except TrackerFailure as e:
                    logger.info(
                        f"({url}) Tracker rejected announce: {e.reason}",
                        extra={"tracker_url": url},
                    )
                except (TrackerError, DecodeError) as e:
                    logger.info(
                        f"({url}) Announce failed: {e}", extra={"tracker_url": url}
                    )
        return None

    async def announce(
        self,
        identity: TorrentIdentity,
        session: ClientSession,
        event: Event = Event.STARTED,
    ) -> tuple[AnnounceResponse, bool]:
        request = session.build_request(identity, event)

        if identity.has_tiers:
            response = await self._announce_tiers(identity, request)
            if response is not None:
                return response, True

        url = identity.announce
        if not url:
            logger.warning("No tracker in the announce list answered and no announce URL")
            return AnnounceResponse.empty(), False

        logger.debug(f"({url}) Announcing...")
        try:
            response = await self._client(url).announce(request)
        except (TrackerError, DecodeError) as e:
            logger.warning(f"({url}) Announce failed: {e}", extra={"tracker_url": url})
            return AnnounceResponse.empty(), False

        # the fallback tracker is accepted even if it reports a failure reason
        if response.failed:
            logger.warning(
                f"({url}) Accepting response with failure reason: "
                f"{response.failure_reason}",
                extra={"tracker_url": url},
            )
        return response, True
