from __future__ import annotations

import struct
import zlib

import pytest

from spamsift.codec import FORMAT_VERSION, MAGIC, CorruptDataError, ModelCounts, decode, encode


def _counts() -> ModelCounts:
    return ModelCounts(
        spam_documents=3,
        ham_documents=2,
        word_spam_counts={"WIN": 2, "$$$": 1, "ünïcode": 3},
        word_ham_counts={"hello": 2, "meeting": 1},
    )


def _with_checksum(body: bytes) -> bytes:
    return body + struct.pack("<I", zlib.crc32(body))


def _entry(token: str, count: int) -> bytes:
    raw = token.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw + struct.pack("<Q", count)


def _payload(*, spam_docs=1, ham_docs=1, spam_entries=(), ham_entries=()) -> bytes:
    body = struct.pack("<4sBQQ", MAGIC, FORMAT_VERSION, spam_docs, ham_docs)
    body += struct.pack("<I", len(spam_entries)) + b"".join(spam_entries)
    body += struct.pack("<I", len(ham_entries)) + b"".join(ham_entries)
    return _with_checksum(body)


def test_decode_restores_encoded_counts() -> None:
    counts = _counts()

    assert decode(encode(counts)) == counts


def test_encoding_is_independent_of_insertion_order() -> None:
    forward = _counts()
    backward = ModelCounts(
        spam_documents=3,
        ham_documents=2,
        word_spam_counts=dict(reversed(list(forward.word_spam_counts.items()))),
        word_ham_counts=dict(reversed(list(forward.word_ham_counts.items()))),
    )

    assert encode(forward) == encode(backward)


def test_encoded_header_layout() -> None:
    data = encode(ModelCounts(0, 0, {}, {}))

    assert data[:4] == MAGIC
    assert data[4] == FORMAT_VERSION
    assert len(data) == 4 + 1 + 8 + 8 + 4 + 4 + 4


def test_encode_rejects_zero_counts() -> None:
    with pytest.raises(ValueError):
        encode(ModelCounts(1, 0, {"x": 0}, {}))


@pytest.mark.parametrize("cut", [0, 3, 5, 12, 21, 30, -5, -1])
def test_truncated_data_is_rejected(cut: int) -> None:
    data = encode(_counts())

    with pytest.raises(CorruptDataError):
        decode(data[:cut])


def test_corrupt_data_error_is_an_os_error() -> None:
    with pytest.raises(OSError):
        decode(b"")


def test_bad_magic_is_rejected() -> None:
    data = bytearray(encode(_counts()))
    data[:4] = b"NOPE"

    with pytest.raises(CorruptDataError, match="magic"):
        decode(bytes(data))


def test_unsupported_version_is_rejected() -> None:
    body = struct.pack("<4sBQQ", MAGIC, FORMAT_VERSION + 1, 0, 0) + struct.pack("<II", 0, 0)

    with pytest.raises(CorruptDataError, match="version"):
        decode(_with_checksum(body))


def test_flipped_byte_fails_checksum() -> None:
    data = bytearray(encode(_counts()))
    # Change a token byte without affecting any length field.
    index = data.index(b"hello")
    data[index] = ord("j")

    with pytest.raises(CorruptDataError, match="checksum"):
        decode(bytes(data))


def test_trailing_bytes_are_rejected() -> None:
    with pytest.raises(CorruptDataError, match="trailing"):
        decode(encode(_counts()) + b"\x00")


@pytest.mark.parametrize(
    "payload, message",
    [
        (_payload(spam_entries=[_entry("x", 0)]), "zero count"),
        (_payload(spam_docs=1, spam_entries=[_entry("x", 2)]), "exceeds"),
        (_payload(ham_entries=[_entry("x", 1), _entry("x", 1)]), "duplicate"),
        (_payload(ham_entries=[_entry("", 1)]), "empty"),
        (
            _payload(
                spam_entries=[struct.pack("<I", 2) + b"\xff\xfe" + struct.pack("<Q", 1)],
            ),
            "UTF-8",
        ),
    ],
)
def test_semantically_invalid_entries_are_rejected(payload: bytes, message: str) -> None:
    with pytest.raises(CorruptDataError, match=message):
        decode(payload)


def test_hand_built_payload_decodes() -> None:
    payload = _payload(
        spam_docs=2,
        ham_docs=1,
        spam_entries=[_entry("cash", 2)],
        ham_entries=[_entry("lunch", 1)],
    )

    assert decode(payload) == ModelCounts(2, 1, {"cash": 2}, {"lunch": 1})
