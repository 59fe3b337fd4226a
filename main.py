#!/usr/bin/env python3
"""
trackerlink - BitTorrent torrent identity and tracker announce client
Main entry point for the application.
"""

import asyncio
import argparse
import sys
from pathlib import Path
from trackerlink.common.errors import NoAvailablePortError, TorrentError, DecodeError
from trackerlink.common.logging import config_logging
from trackerlink.common.session import ClientSession
from trackerlink.network.acceptor import ConnectionAcceptor
from trackerlink.torrent.metadata import TorrentIdentity
from trackerlink.torrent.parser import load_torrent
from trackerlink.tracker.coordinator import AnnounceCoordinator
from trackerlink.tracker.models import Event
from trackerlink.tracker.tracker_client import DEFAULT_TIMEOUT
import logging

logger = logging.getLogger(__name__)


async def handle_inbound(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
    # peer wire protocol is not spoken here; drop the connection
    logger.info(f"Closing inbound connection from {writer.get_extra_info('peername')}")
    writer.close()
    await writer.wait_closed()


def print_summary(identity: TorrentIdentity):
    metadata = identity.metadata
    print(f"\n{'='*60}")
    print(f"Torrent: {metadata.name}")
    print(f"Info hash: {identity.info_hash.hex()}")
    print(f"Size: {metadata.total_length / (1024*1024):.2f} MB")
    print(f"Pieces: {metadata.piece_count} x {metadata.piece_length / 1024:.0f} KB")
    if metadata.is_multi_file:
        print(f"Files: {len(metadata.files)}")
    print(f"Tracker: {identity.announce or '-'}")
    for i, tier in enumerate(identity.announce_list):
        print(f"Tier {i}: {', '.join(tier)}")
    print(f"{'='*60}\n")


async def announce_torrent(
    torrent_path: Path,
    event: Event = Event.STARTED,
    timeout: float = DEFAULT_TIMEOUT,
    listen: bool = True,
) -> int:
    """
    Load a torrent and announce it to its trackers.

    Args:
        torrent_path: Path to the .torrent file
        event: Lifecycle event sent to the tracker
        timeout: Per-tracker request timeout in seconds
        listen: Accept inbound peer connections while announcing

    Returns:
        Process exit code
    """
    try:
        identity = load_torrent(torrent_path)
    except (TorrentError, DecodeError) as e:
        logger.error(f"Failed to load torrent: {e}")
        print(f"\n✗ Failed to load torrent: {e}")
        return 1

    print_summary(identity)
    session = ClientSession.for_torrent(identity)

    acceptor = None
    if listen:
        acceptor = ConnectionAcceptor()
        try:
            session.port = await acceptor.start(handle_inbound)
            print(f"Listening for peers on port {session.port}")
        except NoAvailablePortError as e:
            logger.warning(f"Inbound connections disabled: {e}")
            print(f"⚠ {e}; continuing outbound-only")
            acceptor = None

    coordinator = AnnounceCoordinator(timeout=timeout)
    try:
        response, succeeded = await coordinator.announce(identity, session, event)
        if not succeeded:
            print("✗ Announce failed: no tracker answered")
            return 0

        if response.failed:
            print(f"⚠ Tracker reported failure: {response.failure_reason}")
        print(f"Re-announce interval: {response.interval}s")
        print(f"Peers ({len(response.peers)}):")
        for peer in response.peers:
            print(f"  {peer}")

        if event == Event.STARTED:
            await coordinator.announce(identity, session, Event.STOPPED)
        return 0
    finally:
        if acceptor is not None:
            await acceptor.close()


def main():
    """Main entry point for the trackerlink client."""
    parser = argparse.ArgumentParser(
        description="trackerlink - announce a torrent to its trackers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ubuntu.torrent
  %(prog)s file.torrent --event completed
  %(prog)s file.torrent --no-listen -v
        """,
    )

    parser.add_argument("torrent", type=Path, help="Path to the .torrent file")

    parser.add_argument(
        "--event",
        type=Event,
        choices=list(Event),
        default=Event.STARTED,
        help="Event to announce (default: started)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Per-tracker request timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )

    parser.add_argument(
        "--no-listen",
        action="store_true",
        help="Do not accept inbound peer connections",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=Path("trackerlink.log.jsonl"),
        help="Name of the JSON log file under data/logs (default: trackerlink.log.jsonl)",
    )

    args = parser.parse_args()

    config_logging(
        str(args.log_file), level=logging.DEBUG if args.verbose else logging.INFO
    )

    try:
        code = asyncio.run(
            announce_torrent(
                args.torrent,
                event=args.event,
                timeout=args.timeout,
                listen=not args.no_listen,
            )
        )
    except KeyboardInterrupt:
        print("\n\nShutting down...")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
