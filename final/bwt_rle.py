#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
bwt_rle.py -- Burrows–Wheeler transform followed by run‑length coding.

This module contains a self‑contained reference implementation of a
lossless byte compressor built from two stages.  The input is first
augmented with a synthetic end‑of‑string marker (the *sentinel*), which
orders strictly below every byte value.  All cyclic rotations of the
augmented sequence are sorted and the last column of the sorted matrix
is kept; this is the Burrows–Wheeler transform (BWT).  Because the
sentinel is unique and minimal, the row starting with the sentinel is
always row 0, so the decode anchor never needs to be stored.  The BWT
output is then serialised as a run‑length coded stream.

The sentinel is modelled as a distinct Python object rather than a
reserved byte, so the full 256 value alphabet remains available.

### Stream format

* ``u64 sentinel_index`` – position of the sentinel in the BWT output,
  little endian.
* A sequence of records until end of input, each being:

  * ``u8 byte`` – the literal byte.
  * ``u16 run_length`` – number of repetitions, little endian.

Runs longer than 65535 are split; a full 65535 record is always followed
by another record for the remainder, which is 0 when the run is an exact
multiple of 65535.  The sentinel itself is never written.

### Rotation sorting

Two engines produce the sorted rotation matrix.  ``naive`` materialises
every rotation and sorts the rows directly (O(L² log L)); it is kept as
the reference.  ``doubling`` sorts rotation offsets by prefix doubling
over a single backing sequence and is the default.  Both yield the same
order.
"""

from __future__ import annotations

import argparse
import itertools
import logging
import os
import struct
import sys
from collections import deque
from dataclasses import dataclass
from typing import BinaryIO, Callable, Deque, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

log = logging.getLogger(__name__)

# Engine used by forward_transform when none is given (CLI --engine).
DEFAULT_ENGINE = "doubling"

# The naive engine is quadratic in memory; warn above this many symbols.
NAIVE_WARN_LIMIT = 4096

MAX_RUN = 0xFFFF
HEADER = struct.Struct('<Q')
RECORD = struct.Struct('<BH')

###############################################################################
# Errors
###############################################################################

class BWTError(ValueError):
    """Base class for transform and stream format errors."""


class ValidationError(BWTError):
    """A symbol sequence or index violates the transform invariants."""


class MalformedStreamError(BWTError):
    """A compressed stream is truncated or internally inconsistent."""

###############################################################################
# Symbols
###############################################################################

class SentinelType:
    """The end‑of‑string marker.  Orders below every byte value."""
    __slots__ = ()
    _instance: Optional["SentinelType"] = None

    def __new__(cls) -> "SentinelType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "$"

    def __reduce__(self):
        return (SentinelType, ())

    def __lt__(self, other: object) -> bool:
        if isinstance(other, int):
            return True
        if other is self:
            return False
        return NotImplemented

    def __le__(self, other: object) -> bool:
        if isinstance(other, int) or other is self:
            return True
        return NotImplemented

    def __gt__(self, other: object) -> bool:
        if isinstance(other, int) or other is self:
            return False
        return NotImplemented

    def __ge__(self, other: object) -> bool:
        if isinstance(other, int):
            return False
        if other is self:
            return True
        return NotImplemented


SENTINEL = SentinelType()

Symbol = Union[int, SentinelType]


def is_sentinel(sym: Symbol) -> bool:
    return sym is SENTINEL


def symbol_key(sym: Symbol) -> int:
    """Integer sort key: -1 for the sentinel, the byte value otherwise."""
    return -1 if sym is SENTINEL else sym  # type: ignore[return-value]


def augment(data: bytes) -> List[Symbol]:
    """Return ``data`` as a symbol list with the sentinel appended."""
    seq: List[Symbol] = list(data)
    seq.append(SENTINEL)
    return seq


def sentinel_position(seq: Sequence[Symbol]) -> int:
    """Return the index of the single sentinel in ``seq``.

    Raises ``ValidationError`` if the sentinel is missing or repeated,
    or if any other element is not a byte value.
    """
    pos = -1
    for i, sym in enumerate(seq):
        if sym is SENTINEL:
            if pos >= 0:
                raise ValidationError(
                    f"sequence holds more than one sentinel (at {pos} and {i})")
            pos = i
        elif not isinstance(sym, int) or not 0 <= sym <= 0xFF:
            raise ValidationError(f"invalid symbol {sym!r} at position {i}")
    if pos < 0:
        raise ValidationError("sequence holds no sentinel")
    return pos


def strip_sentinel(seq: Sequence[Symbol]) -> bytes:
    """Return the byte values of ``seq`` with its sentinel removed."""
    pos = sentinel_position(seq)
    return bytes(seq[:pos]) + bytes(seq[pos + 1:])  # type: ignore[arg-type]


def format_symbols(seq: Iterable[Symbol]) -> str:
    """Render symbols as comma separated decimals, ``$`` for the sentinel."""
    return ", ".join("$" if sym is SENTINEL else str(sym) for sym in seq)


def parse_byte_list(line: str) -> bytes:
    """Parse decimal byte values separated by whitespace or commas.

    Tokens which are not an integer in 0..255 are skipped.
    """
    out = bytearray()
    for tok in line.replace(",", " ").split():
        try:
            v = int(tok, 10)
        except ValueError:
            continue
        if 0 <= v <= 0xFF:
            out.append(v)
    return bytes(out)

###############################################################################
# Rotation matrix
###############################################################################

@dataclass(frozen=True)
class Rotation:
    """Row of the rotation matrix: the sequence rotated left by ``offset``.

    Rows are views onto the backing sequence; ``sentinel_index`` is the
    column holding the sentinel in this row.
    """
    offset: int
    sentinel_index: int

    def symbols(self, seq: Sequence[Symbol]) -> List[Symbol]:
        k = self.offset
        return list(seq[k:]) + list(seq[:k])

    def first(self, seq: Sequence[Symbol]) -> Symbol:
        return seq[self.offset]

    def last(self, seq: Sequence[Symbol]) -> Symbol:
        return seq[(self.offset - 1) % len(seq)]


def rotate_left(row: Deque) -> None:
    """Move the front element of ``row`` to the back."""
    if row:
        row.append(row.popleft())


def all_rotations(seq: Sequence[Symbol]) -> List[Rotation]:
    """Return the L rotations of ``seq`` in offset order."""
    n = len(seq)
    p = sentinel_position(seq)
    return [Rotation(k, (p - k) % n) for k in range(n)]


def sorted_rotations_naive(seq: Sequence[Symbol]) -> List[Rotation]:
    """Sort rotations by materialising every row.

    Reference engine: O(L²) memory and O(L² log L) time.
    """
    n = len(seq)
    if n > NAIVE_WARN_LIMIT:
        log.warning("naive rotation sort on %d symbols; use the doubling engine", n)
    rotations = all_rotations(seq)
    row: Deque[int] = deque(symbol_key(s) for s in seq)
    rows: List[Tuple[Tuple[int, ...], Rotation]] = []
    for rot in rotations:
        rows.append((tuple(row), rot))
        rotate_left(row)
    rows.sort(key=lambda item: item[0])
    return [rot for _, rot in rows]


def sorted_rotations(seq: Sequence[Symbol]) -> List[Rotation]:
    """Sort rotations by prefix doubling on rotation offsets.

    Each round ranks every offset by the first 2k symbols of its
    rotation, using the ranks of the first k symbols at ``i`` and at
    ``i + k`` (cyclically).  The unique sentinel makes all rotations
    distinct, so ranking ends once every rank is unique.
    """
    n = len(seq)
    p = sentinel_position(seq)
    rank = [symbol_key(s) + 1 for s in seq]
    idx = list(range(n))
    if n > 1:
        tmp = [0] * n
        k = 1
        while True:
            idx.sort(key=lambda i: (rank[i], rank[(i + k) % n]))
            tmp[idx[0]] = 0
            for j in range(1, n):
                a, b = idx[j - 1], idx[j]
                tmp[b] = tmp[a] + (
                    (rank[a], rank[(a + k) % n]) < (rank[b], rank[(b + k) % n])
                )
            rank, tmp = tmp, rank
            if rank[idx[-1]] == n - 1:
                break
            k <<= 1
    return [Rotation(i, (p - i) % n) for i in idx]


RotationEngine = Callable[[Sequence[Symbol]], List[Rotation]]

ENGINES: Dict[str, RotationEngine] = {
    "doubling": sorted_rotations,
    "naive": sorted_rotations_naive,
}

###############################################################################
# Forward transform
###############################################################################

@dataclass
class BWTOutput:
    """Last column of the sorted rotation matrix plus its decode anchor."""
    symbols: List[Symbol]
    decode_anchor: int = 0

    @property
    def sentinel_index(self) -> int:
        return sentinel_position(self.symbols)

    def payload(self) -> bytes:
        """The last column as bytes, sentinel removed."""
        return strip_sentinel(self.symbols)

    @classmethod
    def from_payload(cls, payload: bytes, sentinel_index: int,
                     decode_anchor: int = 0) -> "BWTOutput":
        """Reinstate the sentinel at ``sentinel_index`` in ``payload``."""
        if not 0 <= sentinel_index <= len(payload):
            raise ValidationError(
                f"sentinel index {sentinel_index} outside [0, {len(payload)}]")
        symbols: List[Symbol] = list(payload)
        symbols.insert(sentinel_index, SENTINEL)
        return cls(symbols, decode_anchor)

    def __len__(self) -> int:
        return len(self.symbols)

    def __str__(self) -> str:
        return format_symbols(self.symbols)


def forward_transform(seq: Sequence[Symbol],
                      engine: str = DEFAULT_ENGINE) -> BWTOutput:
    """Burrows–Wheeler transform of a sentinel‑augmented sequence.

    The output holds the last symbol of each sorted rotation.  The
    decode anchor is the row whose first column is the sentinel, which
    by minimality of the sentinel is row 0.
    """
    try:
        sort_rotations = ENGINES[engine]
    except KeyError:
        raise ValueError(f"unknown rotation engine {engine!r}") from None
    n = len(seq)
    rows = sort_rotations(seq)
    symbols = [rot.last(seq) for rot in rows]
    anchor = next(i for i, rot in enumerate(rows) if rot.sentinel_index == 0)
    log.debug("forward transform: %d symbols, engine=%s, anchor=%d",
              n, engine, anchor)
    return BWTOutput(symbols, anchor)


def bwt_forward(data: bytes, engine: str = DEFAULT_ENGINE) -> BWTOutput:
    """Append the sentinel to ``data`` and transform it."""
    return forward_transform(augment(data), engine)

###############################################################################
# Inverse transform
###############################################################################

def rank_table(seq: Sequence[Symbol]) -> List[int]:
    """Number of earlier occurrences of the symbol at each position.

    The sentinel is unique and always ranked 0.
    """
    seen = [0] * 256
    ranks: List[int] = []
    for sym in seq:
        if sym is SENTINEL:
            ranks.append(0)
        else:
            ranks.append(seen[sym])  # type: ignore[index]
            seen[sym] += 1  # type: ignore[index]
    return ranks


def first_occurrences(seq: Sequence[Symbol]) -> List[int]:
    """Row of the first occurrence of each byte value in the sorted column.

    The sentinel occupies row 0, so byte rows start at 1.
    """
    counts = [0] * 256
    for sym in seq:
        if sym is not SENTINEL:
            counts[sym] += 1  # type: ignore[index]
    firsts = [0] * 256
    row = 1
    for b in range(256):
        firsts[b] = row
        row += counts[b]
    return firsts


def inverse_transform(right: Sequence[Symbol], decode_anchor: int = 0) -> bytes:
    """Reconstruct the original bytes from a BWT last column.

    Walks the LF mapping backwards from the anchor row.  The sorted
    first column is never built: the r‑th occurrence of byte ``b`` in it
    sits at row ``first_occurrences[b] + r``.
    """
    n = len(right)
    sentinel_position(right)
    if not 0 <= decode_anchor < n:
        raise ValidationError(f"decode anchor {decode_anchor} outside [0, {n})")
    if decode_anchor != 0:
        # the sorted first column starts with the sentinel
        raise ValidationError(
            f"decode anchor {decode_anchor} does not address the sentinel row")
    ranks = rank_table(right)
    firsts = first_occurrences(right)
    out = bytearray()
    i = decode_anchor
    while True:
        b = right[i]
        if b is SENTINEL:
            break
        out.append(b)  # type: ignore[arg-type]
        i = firsts[b] + ranks[i]  # type: ignore[index]
    if len(out) != n - 1:
        raise ValidationError(
            f"LF walk produced {len(out)} of {n - 1} symbols; "
            "input is not a Burrows–Wheeler transform")
    out.reverse()
    return bytes(out)


def bwt_inverse(out: BWTOutput) -> bytes:
    return inverse_transform(out.symbols, out.decode_anchor)

###############################################################################
# Run‑length codec
###############################################################################

def iter_runs(payload: bytes) -> Iterator[Tuple[int, int]]:
    """Yield ``(byte, count)`` records for ``payload``.

    Runs are chunked at ``MAX_RUN``; a full chunk is always followed by a
    record for the remainder, possibly 0.
    """
    for b, group in itertools.groupby(payload):
        run = sum(1 for _ in group)
        while run >= MAX_RUN:
            yield b, MAX_RUN
            run -= MAX_RUN
        yield b, run


def rle_encode(out: BWTOutput) -> bytes:
    """Serialise a BWT output: sentinel index header, then run records."""
    payload = out.payload()
    buf = bytearray(HEADER.pack(out.sentinel_index))
    nrec = 0
    for b, count in iter_runs(payload):
        buf += RECORD.pack(b, count)
        nrec += 1
    log.debug("rle encode: %d bytes, sentinel at %d, %d records",
              len(payload), out.sentinel_index, nrec)
    return bytes(buf)


def rle_decode(blob: bytes) -> BWTOutput:
    """Parse a stream produced by ``rle_encode``.

    Raises ``MalformedStreamError`` on a short header, a dangling partial
    record, or a sentinel index past the decoded length.
    """
    if len(blob) < HEADER.size:
        raise MalformedStreamError(
            f"stream of {len(blob)} bytes is shorter than the {HEADER.size} byte header")
    (sentinel_index,) = HEADER.unpack_from(blob, 0)
    body = memoryview(blob)[HEADER.size:]
    if len(body) % RECORD.size:
        raise MalformedStreamError(
            f"truncated record: {len(body) % RECORD.size} trailing bytes")
    payload = bytearray()
    for b, count in RECORD.iter_unpack(body):
        payload += bytes((b,)) * count
    if sentinel_index > len(payload):
        raise MalformedStreamError(
            f"sentinel index {sentinel_index} past decoded length {len(payload)}")
    log.debug("rle decode: %d bytes, sentinel at %d", len(payload), sentinel_index)
    return BWTOutput.from_payload(bytes(payload), sentinel_index)


def rle_write(out: BWTOutput, fp: BinaryIO) -> int:
    """Write the encoded stream to ``fp``; returns the byte count."""
    return fp.write(rle_encode(out))


def rle_read(fp: BinaryIO) -> BWTOutput:
    return rle_decode(fp.read())

###############################################################################
# Pipeline
###############################################################################

def compress(data: bytes, engine: str = DEFAULT_ENGINE) -> bytes:
    """Compress ``data``: sentinel, BWT, then run‑length coding."""
    return rle_encode(bwt_forward(data, engine))


def decompress(blob: bytes) -> bytes:
    """Inverse of ``compress``."""
    return bwt_inverse(rle_decode(blob))


def transform_stats(data: bytes, engine: str = DEFAULT_ENGINE) -> Dict[str, object]:
    """Summarise how well ``data`` compresses.

    ``input_runs`` and ``bwt_runs`` count maximal runs before and after
    the transform; ``records`` counts the records actually written.
    """
    out = bwt_forward(data, engine)
    payload = out.payload()
    records = sum(1 for _ in iter_runs(payload))
    blob_len = HEADER.size + records * RECORD.size
    return {
        'input_bytes': len(data),
        'input_runs': sum(1 for _ in itertools.groupby(data)),
        'bwt_runs': sum(1 for _ in itertools.groupby(payload)),
        'sentinel_index': out.sentinel_index,
        'records': records,
        'compressed_bytes': blob_len,
        'ratio': blob_len / len(data) if data else 1.0,
    }

###############################################################################
# CLI
###############################################################################

def _read_input(path: str) -> bytes:
    if path == '-':
        return sys.stdin.buffer.read()
    with open(path, 'rb') as f:
        return f.read()


def _write_output(path: str, data: bytes) -> None:
    if path == '-':
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return
    with open(path, 'wb') as f:
        f.write(data)


def _default_decompressed_name(path: str) -> str:
    root, ext = os.path.splitext(path)
    return root if ext == '.bwt' else path + '.out'


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bwt-rle', description='Burrows–Wheeler + run‑length compressor')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log transform details to stderr')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('compress', help='Compress a file')
    p.add_argument('input', help="Input file ('-' for stdin)")
    p.add_argument('-o', '--output',
                   help="Output file ('-' for stdout, default INPUT.bwt)")
    p.add_argument('--engine', choices=sorted(ENGINES), default=DEFAULT_ENGINE,
                   help=f'Rotation sort engine (default {DEFAULT_ENGINE})')

    p = sub.add_parser('decompress', help='Decompress a file')
    p.add_argument('input', help="Input file ('-' for stdin)")
    p.add_argument('-o', '--output',
                   help="Output file ('-' for stdout, default strips .bwt)")

    sub.add_parser('show', help='Read decimal bytes per line from stdin and '
                                'print their transform')

    p = sub.add_parser('stats', help='Print transform statistics for a file')
    p.add_argument('input', help="Input file ('-' for stdin)")
    p.add_argument('--engine', choices=sorted(ENGINES), default=DEFAULT_ENGINE)
    return parser


def _run_show() -> None:
    print("Please enter bytes in decimal separated by whitespace or comma. "
          "Non-byte values are ignored.", file=sys.stderr)
    for line in sys.stdin:
        out = bwt_forward(parse_byte_list(line))
        print(f"Burrows-Wheeler transform: {out}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(message)s')
    try:
        if args.command == 'show':
            _run_show()
        elif args.command == 'stats':
            stats = transform_stats(_read_input(args.input), args.engine)
            for key, value in stats.items():
                if isinstance(value, float):
                    value = f"{value:.3f}"
                print(f"{key:<17}{value}")
        elif args.command == 'compress':
            data = _read_input(args.input)
            blob = compress(data, args.engine)
            outname = args.output or (
                '-' if args.input == '-' else args.input + '.bwt')
            _write_output(outname, blob)
            if outname != '-':
                ratio = len(blob) / len(data) if data else 1.0
                print(f"Compressed {len(data)} bytes to {len(blob)} bytes "
                      f"(ratio {ratio:.3f}) → {outname}")
        else:
            blob = _read_input(args.input)
            data = decompress(blob)
            outname = args.output or (
                '-' if args.input == '-' else _default_decompressed_name(args.input))
            _write_output(outname, data)
            if outname != '-':
                print(f"Decompressed {len(blob)} bytes to {len(data)} bytes → {outname}")
    except (BWTError, OSError) as e:
        log.error("%s failed: %s", args.command, e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
