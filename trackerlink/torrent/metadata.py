from pathlib import Path
from typing import NamedTuple

HASH_LENGTH = 20


class TorrentFile:
    __slots__ = ("length", "md5sum", "path")

    def __init__(self, length: int, path: list[str], md5sum: str | None = None):
        self.length = length
        self.path = path
        self.md5sum = md5sum

    def __repr__(self) -> str:
        return f"TorrentFile(path={'/'.join(self.path)!r}, length={self.length})"


class TorrentMetadata:
    """Typed view of the ``info`` dictionary.

    Single-file torrents set ``length`` and leave ``files`` as ``None``;
    multi-file torrents do the opposite.
    """

    __slots__ = (
        "name",
        "piece_length",
        "pieces",
        "private",
        "length",
        "md5sum",
        "files",
    )

    def __init__(
        self,
        name: str,
        piece_length: int,
        pieces: bytes,
        private: bool = False,
        length: int | None = None,
        md5sum: str | None = None,
        files: list[TorrentFile] | None = None,
    ):
        self.name = name
        self.piece_length = piece_length
        self.pieces = pieces
        self.private = private
        self.length = length
        self.md5sum = md5sum
        self.files = files

    @property
    def is_multi_file(self) -> bool:
        return self.files is not None

    @property
    def total_length(self) -> int:
        if self.files is not None:
            return sum(f.length for f in self.files)
        return self.length

    @property
    def piece_count(self) -> int:
        return len(self.pieces) // HASH_LENGTH

    @property
    def piece_hashes(self) -> list[bytes]:
        return [
            self.pieces[i : i + HASH_LENGTH]
            for i in range(0, len(self.pieces), HASH_LENGTH)
        ]


class TorrentIdentity(NamedTuple):
    """A loaded torrent: where to announce, what it holds, and its info-hash."""

    announce: str
    announce_list: tuple[tuple[str, ...], ...]
    metadata: TorrentMetadata
    info_hash: bytes
    encoding: str | None = None
    creation_date: int | None = None
    created_by: str | None = None
    path: Path | None = None

    @property
    def has_tiers(self) -> bool:
        return any(self.announce_list)
