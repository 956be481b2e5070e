"""
Minimal ABI support for the aggregator interface.

Only static selectors, 32-byte words and one dynamic string are needed, so the
encoding is spelled out here rather than derived from a JSON ABI.
"""
from __future__ import annotations

from typing import List

from ..errors import AbiDecodeError

SELECTORS = {
    "decimals": "0x313ce567",
    "description": "0x7284e416",
    "latestAnswer": "0x50d25bcd",
    "latestRoundData": "0xfeaf968c",
}

# keccak256("AnswerUpdated(int256,uint256,uint256)")
ANSWER_UPDATED_TOPIC = "0x0559884fd3a460db3073b7fc896cc77986f16e378210ded43186175bf646fc5f"

WORD = 32


def _raw(hexdata: str) -> bytes:
    s = (hexdata or "").strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    try:
        return bytes.fromhex(s)
    except ValueError as exc:
        raise AbiDecodeError(f"not hex data: {hexdata!r}") from exc


def words(hexdata: str, expected: int = 1) -> List[bytes]:
    raw = _raw(hexdata)
    if len(raw) < expected * WORD:
        raise AbiDecodeError(f"expected {expected} words, got {len(raw)} bytes")
    return [raw[i:i + WORD] for i in range(0, len(raw) - len(raw) % WORD, WORD)]


def to_uint(word: bytes) -> int:
    return int.from_bytes(word, "big", signed=False)


def to_int(word: bytes) -> int:
    return int.from_bytes(word, "big", signed=True)


def decode_uint(hexdata: str) -> int:
    return to_uint(words(hexdata)[0])


def decode_int(hexdata: str) -> int:
    return to_int(words(hexdata)[0])


def decode_string(hexdata: str) -> str:
    raw = _raw(hexdata)
    if len(raw) < 2 * WORD:
        raise AbiDecodeError("string result too short")
    offset = to_uint(raw[:WORD])
    if offset + WORD > len(raw):
        raise AbiDecodeError("string offset out of range")
    length = to_uint(raw[offset:offset + WORD])
    start = offset + WORD
    if start + length > len(raw):
        raise AbiDecodeError("string length out of range")
    return raw[start:start + length].decode("utf-8", errors="replace")


def topic_int(topic: str, signed: bool = False) -> int:
    word = words(topic)[0]
    return to_int(word) if signed else to_uint(word)


def block_tag(number: int) -> str:
    return hex(number)
