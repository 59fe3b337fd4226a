import hashlib
import bencodepy
from pathlib import Path
from trackerlink.common.errors import DecodeError, SchemaError, TorrentIOError
from trackerlink.torrent.metadata import (
    HASH_LENGTH,
    TorrentFile,
    TorrentIdentity,
    TorrentMetadata,
)
import logging

logger = logging.getLogger(__name__)


def _text(value, field: str) -> str:
    if not isinstance(value, bytes):
        raise DecodeError(f"Field {field!r} is not a string")
    return value.decode("utf-8", errors="replace")


def _integer(value, field: str) -> int:
    if not isinstance(value, int):
        raise DecodeError(f"Field {field!r} is not an integer")
    return value


def _optional_text(mapping: dict, key: bytes) -> str | None:
    if key not in mapping:
        return None
    return _text(mapping[key], key.decode())


def _parse_files(raw_files) -> list[TorrentFile]:
    if not isinstance(raw_files, list):
        raise DecodeError("Field 'files' is not a list")

    files = []
    for file_dict in raw_files:
        if not isinstance(file_dict, dict):
            raise DecodeError("Entry in 'files' is not a dictionary")
        if b"length" not in file_dict or b"path" not in file_dict:
            raise SchemaError("File entry missing 'length' or 'path'")
        raw_path = file_dict[b"path"]
        if not isinstance(raw_path, list):
            raise DecodeError("Field 'path' is not a list")
        files.append(
            TorrentFile(
                length=_integer(file_dict[b"length"], "length"),
                path=[_text(seg, "path") for seg in raw_path],
                md5sum=_optional_text(file_dict, b"md5sum"),
            )
        )
    return files


def _parse_info(info: dict) -> TorrentMetadata:
    if not isinstance(info, dict):
        raise DecodeError("Field 'info' is not a dictionary")

    pieces = info.get(b"pieces", b"")
    if not isinstance(pieces, bytes):
        raise DecodeError("Field 'pieces' is not a string")
    if len(pieces) % HASH_LENGTH != 0:
        raise SchemaError(
            f"Field 'pieces' length {len(pieces)} is not a multiple of {HASH_LENGTH}"
        )

    name = _text(info.get(b"name", b""), "name")
    piece_length = _integer(info.get(b"piece length", 0), "piece length")
    private = _integer(info.get(b"private", 0), "private") == 1

    if b"files" in info:
        files = _parse_files(info[b"files"])
        logger.info(
            f"Parsed multi-file torrent: {name} ({len(files)} files, "
            f"{sum(f.length for f in files)} bytes)"
        )
        return TorrentMetadata(
            name=name,
            piece_length=piece_length,
            pieces=pieces,
            private=private,
            files=files,
        )

    if b"length" not in info:
        raise SchemaError("Info dictionary has neither 'length' nor 'files'")
    length = _integer(info[b"length"], "length")
    logger.info(f"Parsed single-file torrent: {name} ({length} bytes)")
    return TorrentMetadata(
        name=name,
        piece_length=piece_length,
        pieces=pieces,
        private=private,
        length=length,
        md5sum=_optional_text(info, b"md5sum"),
    )


def _parse_announce_list(raw) -> tuple[tuple[str, ...], ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(tier, list) for tier in raw):
        raise DecodeError("Field 'announce-list' is not a list of lists")
    return tuple(
        tuple(_text(url, "announce-list") for url in tier) for tier in raw
    )


def compute_info_hash(raw_info) -> bytes:
    """SHA-1 over the re-encoded raw ``info`` tree, unknown keys included."""
    return hashlib.sha1(bencodepy.encode(raw_info)).digest()


def parse_torrent(data: bytes, path: Path | None = None) -> TorrentIdentity:
    try:
        metainfo = bencodepy.decode(data)
    except bencodepy.BencodeDecodeError as e:
        raise DecodeError(f"Failed to decode torrent file: {e}") from e

    if not isinstance(metainfo, dict):
        raise DecodeError("Torrent file is not a dictionary")
    if b"info" not in metainfo:
        raise SchemaError("Torrent file has no 'info' dictionary")

    metadata = _parse_info(metainfo[b"info"])

    logger.debug("Computing torrent info hash")
    info_hash = compute_info_hash(metainfo[b"info"])

    announce = _optional_text(metainfo, b"announce") or ""
    creation_date = metainfo.get(b"creation date")
    if creation_date is not None:
        creation_date = _integer(creation_date, "creation date")

    logger.debug(f"Announce URL: {announce}")
    logger.debug(f"Hash: {info_hash.hex()}")

    return TorrentIdentity(
        announce=announce,
        announce_list=_parse_announce_list(metainfo.get(b"announce-list")),
        metadata=metadata,
        info_hash=info_hash,
        encoding=_optional_text(metainfo, b"encoding"),
        creation_date=creation_date,
        created_by=_optional_text(metainfo, b"created by"),
        path=path,
    )


def load_torrent(path: Path) -> TorrentIdentity:
    path = Path(path)
    logger.debug(f"Opening {path}")
    try:
        with path.open("rb") as f:
            data = f.read()
    except OSError as e:
        raise TorrentIOError(
            f"Failed to open torrent file: {e}", {"path": str(path)}
        ) from e

    logger.info(f"Parsing torrent file: {path}")
    return parse_torrent(data, path)
