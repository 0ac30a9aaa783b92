"""Binary encoding of classifier counts.

Layout (little-endian)::

    magic      4 bytes  b"SSNB"
    version    u8
    spam_docs  u64
    ham_docs   u64
    spam_map   u32 entry count, entries
    ham_map    u32 entry count, entries
    checksum   u32      CRC-32 of all preceding bytes

    entry      u32 token byte length, UTF-8 token, u64 count

Entries are sorted by token so equal counts always encode to equal bytes.
"""

from __future__ import annotations

import struct
import zlib
from collections.abc import Mapping
from dataclasses import dataclass

MAGIC = b"SSNB"
FORMAT_VERSION = 1

_HEADER = struct.Struct("<4sBQQ")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_MAX_U64 = 2**64 - 1


class CorruptDataError(OSError):
    """Raised when serialized model data is truncated or malformed."""


@dataclass(frozen=True)
class ModelCounts:
    """Raw counts exchanged between the model and the codec."""

    spam_documents: int
    ham_documents: int
    word_spam_counts: Mapping[str, int]
    word_ham_counts: Mapping[str, int]


def encode(counts: ModelCounts) -> bytes:
    """Serialise ``counts`` into the versioned binary layout."""

    for value in (counts.spam_documents, counts.ham_documents):
        if not 0 <= value <= _MAX_U64:
            raise ValueError(f"document count out of range: {value}")
    parts = [
        _HEADER.pack(MAGIC, FORMAT_VERSION, counts.spam_documents, counts.ham_documents),
        _encode_map(counts.word_spam_counts),
        _encode_map(counts.word_ham_counts),
    ]
    body = b"".join(parts)
    return body + _U32.pack(zlib.crc32(body))


def decode(data: bytes) -> ModelCounts:
    """Parse bytes produced by :func:`encode`, validating every field."""

    reader = _Reader(data)
    magic, version, spam_documents, ham_documents = reader.unpack(_HEADER, "header")
    if magic != MAGIC:
        raise CorruptDataError(f"not a spamsift model (magic {magic!r})")
    if version != FORMAT_VERSION:
        raise CorruptDataError(f"unsupported model format version {version}")
    word_spam_counts = _decode_map(reader, "spam", spam_documents)
    word_ham_counts = _decode_map(reader, "ham", ham_documents)

    body_end = reader.offset
    (checksum,) = reader.unpack(_U32, "checksum")
    if reader.remaining:
        raise CorruptDataError(f"{reader.remaining} unexpected trailing byte(s)")
    if zlib.crc32(data[:body_end]) != checksum:
        raise CorruptDataError("checksum mismatch")

    return ModelCounts(
        spam_documents=spam_documents,
        ham_documents=ham_documents,
        word_spam_counts=word_spam_counts,
        word_ham_counts=word_ham_counts,
    )


def _encode_map(counts: Mapping[str, int]) -> bytes:
    chunks = [_U32.pack(len(counts))]
    for token in sorted(counts):
        raw = token.encode("utf-8")
        count = counts[token]
        if not 0 < count <= _MAX_U64:
            raise ValueError(f"token count out of range for {token!r}: {count}")
        chunks.append(_U32.pack(len(raw)))
        chunks.append(raw)
        chunks.append(_U64.pack(count))
    return b"".join(chunks)


def _decode_map(reader: _Reader, label: str, documents: int) -> dict[str, int]:
    (size,) = reader.unpack(_U32, f"{label} map size")
    counts: dict[str, int] = {}
    for index in range(size):
        (length,) = reader.unpack(_U32, f"{label} token length")
        raw = reader.take(length, f"{label} token")
        try:
            token = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptDataError(f"{label} token #{index} is not valid UTF-8") from exc
        (count,) = reader.unpack(_U64, f"{label} token count")
        if not token:
            raise CorruptDataError(f"{label} token #{index} is empty")
        if token in counts:
            raise CorruptDataError(f"duplicate {label} token {token!r}")
        if count == 0:
            raise CorruptDataError(f"{label} token {token!r} has zero count")
        if count > documents:
            raise CorruptDataError(
                f"{label} token {token!r} count {count} exceeds {documents} document(s)"
            )
        counts[token] = count
    return counts


class _Reader:
    """Bounds-checked cursor over a byte buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise CorruptDataError(
                f"truncated model data while reading {what} "
                f"(needed {size} byte(s), {self.remaining} left)"
            )
        start = self.offset
        self.offset += size
        return self._data[start : self.offset].tobytes()

    def unpack(self, layout: struct.Struct, what: str) -> tuple:
        return layout.unpack(self.take(layout.size, what))


__all__ = [
    "CorruptDataError",
    "ModelCounts",
    "encode",
    "decode",
    "MAGIC",
    "FORMAT_VERSION",
]
