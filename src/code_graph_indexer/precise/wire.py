"""Bounds-checked protobuf wire-format reader.

Just enough of the encoding to walk SCIP indexes without generated classes:
varints, length-delimited payloads and skipping of fixed-width fields. Every
read is checked against the caller-supplied window, so truncated or hostile
input surfaces as `WireFormatError` instead of an IndexError or a runaway loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LEN = 2
WIRE_FIXED32 = 5

_MAX_VARINT_BYTES = 10


class WireFormatError(ValueError):
    """Raised when a buffer does not hold a well-formed message."""


@dataclass(frozen=True)
class WireField:
    number: int
    wire_type: int
    value: int = 0  # varint payload
    start: int = 0  # length-delimited payload window [start, end)
    end: int = 0


def read_varint(buf: bytes, offset: int, end: int) -> tuple[int, int]:
    """Decode one varint at `offset`; returns `(value, next_offset)`."""

    result = 0
    shift = 0
    for i in range(_MAX_VARINT_BYTES):
        pos = offset + i
        if pos >= end:
            raise WireFormatError(f"truncated varint at offset {offset}")
        byte = buf[pos]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos + 1
        shift += 7
    raise WireFormatError(f"varint longer than {_MAX_VARINT_BYTES} bytes at offset {offset}")


def iter_fields(buf: bytes, start: int = 0, end: int | None = None) -> Iterator[WireField]:
    """Yield the fields of the message occupying `buf[start:end]`.

    Requires `0 <= start <= end <= len(buf)`; length-delimited payloads must
    fit inside the window.
    """

    if end is None:
        end = len(buf)
    if not 0 <= start <= end <= len(buf):
        raise WireFormatError(f"message window [{start}, {end}) outside buffer of {len(buf)} bytes")

    offset = start
    while offset < end:
        tag, offset = read_varint(buf, offset, end)
        number, wire_type = tag >> 3, tag & 0x7
        if number == 0:
            raise WireFormatError(f"field number 0 at offset {offset}")

        if wire_type == WIRE_VARINT:
            value, offset = read_varint(buf, offset, end)
            yield WireField(number=number, wire_type=wire_type, value=value)
        elif wire_type == WIRE_LEN:
            length, offset = read_varint(buf, offset, end)
            field_end = offset + length
            if field_end > end:
                raise WireFormatError(
                    f"field {number} length {length} overruns message end {end} at offset {offset}"
                )
            yield WireField(number=number, wire_type=wire_type, start=offset, end=field_end)
            offset = field_end
        elif wire_type in (WIRE_FIXED64, WIRE_FIXED32):
            width = 8 if wire_type == WIRE_FIXED64 else 4
            if offset + width > end:
                raise WireFormatError(f"truncated fixed-width field {number} at offset {offset}")
            offset += width
        else:
            # Groups (3/4) are deprecated and never emitted by SCIP indexers.
            raise WireFormatError(f"unsupported wire type {wire_type} for field {number}")


def read_packed_varints(buf: bytes, start: int, end: int) -> tuple[int, ...]:
    out: list[int] = []
    offset = start
    while offset < end:
        value, offset = read_varint(buf, offset, end)
        out.append(value)
    return tuple(out)


def read_string(buf: bytes, start: int, end: int) -> str:
    return bytes(buf[start:end]).decode("utf-8", errors="replace")
