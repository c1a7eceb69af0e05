import copy
import random

import pytest

from bwt_rle import (
    ENGINES,
    SENTINEL,
    BWTOutput,
    ValidationError,
    all_rotations,
    augment,
    bwt_forward,
    bwt_inverse,
    first_occurrences,
    format_symbols,
    forward_transform,
    inverse_transform,
    is_sentinel,
    parse_byte_list,
    rank_table,
    sentinel_position,
    sorted_rotations,
    sorted_rotations_naive,
    strip_sentinel,
    symbol_key,
)

BANANA = bytes([98, 97, 110, 97, 110, 97])
BANANA_BWT = [97, 110, 110, 98, SENTINEL, 97, 97]


def test_sentinel_orders_below_every_byte():
    assert SENTINEL < 0
    assert SENTINEL <= 0
    assert not SENTINEL > 255
    assert 0 > SENTINEL
    assert not 0 < SENTINEL
    assert SENTINEL <= SENTINEL and SENTINEL >= SENTINEL
    assert sorted([3, SENTINEL, 0, 255]) == [SENTINEL, 0, 3, 255]
    assert symbol_key(SENTINEL) == -1
    assert symbol_key(7) == 7


def test_sentinel_is_a_singleton():
    assert copy.deepcopy([SENTINEL])[0] is SENTINEL
    assert is_sentinel(SENTINEL)
    assert not is_sentinel(0)
    assert SENTINEL != 0
    assert repr(SENTINEL) == "$"


def test_sentinel_position_validation():
    assert sentinel_position(augment(b"abc")) == 3
    with pytest.raises(ValidationError):
        sentinel_position([1, 2, 3])
    with pytest.raises(ValidationError):
        sentinel_position([SENTINEL, 1, SENTINEL])
    with pytest.raises(ValidationError):
        sentinel_position([SENTINEL, 256])
    assert strip_sentinel([1, SENTINEL, 2]) == b"\x01\x02"


def test_format_and_parse():
    assert format_symbols(BANANA_BWT) == "97, 110, 110, 98, $, 97, 97"
    assert parse_byte_list("98, 97 x 300 -1 110,,") == b"ban"
    assert parse_byte_list("") == b""


def test_all_rotations_has_no_wraparound_duplicate():
    seq = augment(BANANA)
    rotations = all_rotations(seq)
    assert len(rotations) == len(seq)
    assert sorted(r.offset for r in rotations) == list(range(len(seq)))
    for rot in rotations:
        assert rot.symbols(seq)[rot.sentinel_index] is SENTINEL


@pytest.mark.parametrize("engine", sorted(ENGINES))
def test_banana(engine):
    out = bwt_forward(BANANA, engine)
    assert out.symbols == BANANA_BWT
    assert out.decode_anchor == 0
    assert out.sentinel_index == 4
    assert out.payload() == b"annbaa"
    assert bwt_inverse(out) == BANANA


def test_empty_input():
    out = bwt_forward(b"")
    assert out.symbols == [SENTINEL]
    assert out.sentinel_index == 0
    assert out.payload() == b""
    assert bwt_inverse(out) == b""


def test_engines_agree():
    rng = random.Random(1234)
    samples = [b"", b"a", b"aaaa", b"abab", b"mississippi", b"\x00\x00\xff\x00"]
    samples += [bytes(rng.choice(b"ab\x00") for _ in range(rng.randrange(40)))
                for _ in range(30)]
    for data in samples:
        seq = augment(data)
        assert sorted_rotations(seq) == sorted_rotations_naive(seq)


def test_anchor_is_always_row_zero():
    rng = random.Random(7)
    for _ in range(20):
        data = bytes(rng.getrandbits(8) for _ in range(rng.randrange(50)))
        seq = augment(data)
        rows = sorted_rotations(seq)
        assert rows[0].first(seq) is SENTINEL
        assert bwt_forward(data).decode_anchor == 0


def test_sentinel_position_does_not_affect_round_trip():
    seq = [98, 97, SENTINEL, 110, 97]
    out = forward_transform(seq)
    rows = sorted_rotations(seq)
    assert rows[0].first(seq) is SENTINEL
    # reading from the sentinel row recovers the rotation that ends in it
    assert inverse_transform(out.symbols) == bytes([110, 97, 98, 97])


def test_round_trip_random():
    rng = random.Random(99)
    for n in (1, 2, 3, 17, 256, 1000):
        data = bytes(rng.choice(b"abc\x00\xff") for _ in range(n))
        assert bwt_inverse(bwt_forward(data)) == data


def test_round_trip_all_byte_values():
    data = bytes(range(256))
    assert bwt_inverse(bwt_forward(data)) == data


def test_rank_table_and_first_occurrences():
    assert rank_table(BANANA_BWT) == [0, 0, 1, 0, 0, 1, 2]
    firsts = first_occurrences(BANANA_BWT)
    assert firsts[ord("a")] == 1
    assert firsts[ord("b")] == 4
    assert firsts[ord("n")] == 5


def test_inverse_rejects_bad_input():
    with pytest.raises(ValidationError):
        inverse_transform([97, 98])
    with pytest.raises(ValidationError):
        inverse_transform([SENTINEL, SENTINEL])
    with pytest.raises(ValidationError):
        inverse_transform(BANANA_BWT, decode_anchor=7)
    with pytest.raises(ValidationError):
        inverse_transform(BANANA_BWT, decode_anchor=2)
    with pytest.raises(ValidationError):
        inverse_transform([])
    # one sentinel, but the LF walk closes before visiting every row
    with pytest.raises(ValidationError):
        inverse_transform([SENTINEL, 97, 98])


def test_unknown_engine():
    with pytest.raises(ValueError):
        bwt_forward(b"abc", engine="quick")


def test_from_payload():
    out = BWTOutput.from_payload(b"annbaa", 4)
    assert out.symbols == BANANA_BWT
    assert str(out) == "97, 110, 110, 98, $, 97, 97"
    assert len(out) == 7
    with pytest.raises(ValidationError):
        BWTOutput.from_payload(b"ab", 3)
