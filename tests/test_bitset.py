import base64

import pytest

from chunkscope.bitset import MAX_CONTRACT_BYTES, BitSet


def make(size, indexes=()):
    bs = BitSet(size)
    for index in indexes:
        bs.set(index)
    return bs


def seq(start, end):
    return list(range(start, end))


@pytest.mark.parametrize("size", [1, 64, 65, MAX_CONTRACT_BYTES])
def test_new_bitset_valid(size):
    bs = BitSet(size)
    assert bs.size() == size
    assert bs.count() == 0
    assert bs.proportion() == 0.0


@pytest.mark.parametrize("size", [MAX_CONTRACT_BYTES + 1, 100000, 0])
def test_new_bitset_invalid(size):
    with pytest.raises(ValueError):
        BitSet(size)


@pytest.mark.parametrize(
    "size, indexes, expected",
    [
        (10, [0], 1),
        (10, [0, 5, 9], 3),
        (10, [5, 5, 5], 1),
        (100, [0, 31, 32, 99], 4),
        (32, seq(0, 32), 32),
    ],
)
def test_set(size, indexes, expected):
    bs = BitSet(size)
    for index in indexes:
        assert bs.set(index) is bs
    assert bs.count() == expected


@pytest.mark.parametrize("index", [10, 100])
def test_set_out_of_bounds(index):
    bs = BitSet(10)
    with pytest.raises(IndexError):
        bs.set(index)
    assert bs.count() == 0


@pytest.mark.parametrize(
    "size, indexes, expected",
    [
        (10, [], 0),
        (32, [0], 1),
        (32, [0, 1, 2, 10, 31], 5),
        (200, [0, 31, 32, 63, 64, 199], 6),
        (32, seq(0, 32), 32),
        (1000, [0, 100, 200, 300, 400, 500, 600, 700, 800, 999], 10),
    ],
)
def test_count(size, indexes, expected):
    assert make(size, indexes).count() == expected


@pytest.mark.parametrize(
    "size, indexes, expected, tolerance",
    [
        (10, [], 0.0, 0.0),
        (10, [0], 0.1, 0.001),
        (10, [0, 1, 2, 3, 4], 0.5, 0.001),
        (10, seq(0, 10), 1.0, 0.001),
        (1000, [500], 0.001, 0.0001),
        (1, [0], 1.0, 0.0),
    ],
)
def test_proportion(size, indexes, expected, tolerance):
    assert make(size, indexes).proportion() == pytest.approx(expected, abs=tolerance)


@pytest.mark.parametrize(
    "size, indexes, expected",
    [
        (64, [], 0),
        (64, [0], 1),
        (64, [0, 1, 15, 31], 1),
        (64, [0, 32], 2),
        (128, [0, 32, 64, 96], 4),
        (200, [10, 50, 90, 130, 170], 5),
        (96, [0, 32, 64], 3),
        (100, [99], 1),
        (160, [5, 100, 155], 3),
    ],
)
def test_chunk_count(size, indexes, expected):
    assert make(size, indexes).chunk_count() == expected


@pytest.mark.parametrize(
    "size, indexes, expected, tolerance",
    [
        (64, [], 0.0, 0.0),
        (64, [0], 0.5, 0.001),
        (64, [0, 32], 1.0, 0.001),
        (128, [0, 64], 0.5, 0.001),
        (128, [0, 32, 64, 96], 1.0, 0.001),
        (320, [100], 0.1, 0.001),
        (320, [10, 100, 200], 0.3, 0.001),
        (10, [5], 1.0, 0.0),
    ],
)
def test_chunk_proportion(size, indexes, expected, tolerance):
    assert make(size, indexes).chunk_proportion() == pytest.approx(expected, abs=tolerance)


def test_single_chunk_bitset():
    bs = BitSet(20)
    assert bs.chunk_count() == 0
    assert bs.chunk_proportion() == 0.0
    bs.set(10)
    assert bs.chunk_count() == 1
    assert bs.chunk_proportion() == 1.0


def test_chunk_boundaries():
    bs = make(100, [31, 32, 63, 64])
    assert bs.chunk_count() == 3
    assert bs.chunk_proportion() == pytest.approx(3.0 / 4.0, abs=0.001)


def test_maximum_size_chunks():
    bs = make(MAX_CONTRACT_BYTES, [0, MAX_CONTRACT_BYTES - 1])
    assert bs.chunk_count() == 2
    total = (MAX_CONTRACT_BYTES + 31) // 32
    assert bs.chunk_proportion() == pytest.approx(2.0 / total, abs=1e-6)


def test_maximum_size_bitset():
    bs = make(MAX_CONTRACT_BYTES, [0, MAX_CONTRACT_BYTES - 1])
    assert bs.size() == MAX_CONTRACT_BYTES
    assert bs.count() == 2
    assert bs.proportion() == pytest.approx(2.0 / MAX_CONTRACT_BYTES, abs=1e-6)


def test_method_chaining():
    bs = BitSet(10)
    assert bs.set(0).set(1).set(2) is bs
    assert bs.count() == 3


def test_word_boundaries():
    indexes = [0, 1, 30, 31, 32, 33, 62, 63, 64, 65, 94, 95]
    bs = make(200, indexes)
    assert bs.count() == len(indexes)
    assert bs.proportion() == pytest.approx(len(indexes) / 200.0, abs=0.001)


@pytest.mark.parametrize(
    "size, bits1, bits2, expected",
    [
        (10, [], [], 0),
        (10, [], [1, 5, 9], 3),
        (10, [2, 4, 6], [], 3),
        (10, [0, 2, 4], [1, 3, 5], 6),
        (10, [0, 2, 4, 6], [2, 4, 6, 8], 5),
        (10, [1, 3, 5, 7, 9], [1, 3, 5, 7, 9], 5),
        (100, [0, 31, 32, 63], [15, 31, 47, 64], 7),
        (32, seq(0, 16), seq(16, 32), 32),
        (96, seq(0, 64), seq(32, 96), 96),
    ],
)
def test_merge(size, bits1, bits2, expected):
    bs1 = make(size, bits1)
    bs2 = make(size, bits2)
    assert bs1.merge(bs2) is bs1
    assert bs1.count() == expected
    assert bs2.count() == len(bits2)


def test_merge_size_mismatch():
    with pytest.raises(ValueError):
        BitSet(10).merge(BitSet(20))


@pytest.mark.parametrize(
    "size, indexes, expected",
    [
        (10, [], False),
        (10, [5], False),
        (5, [0, 1, 2, 3, 4], True),
        (10, seq(0, 9), False),
        (32, seq(0, 32), True),
        (32, seq(0, 31), False),
        (100, seq(0, 100), True),
        (100, seq(1, 100), False),
        (1, [], False),
        (1, [0], True),
        (96, seq(0, 32) + seq(33, 64) + seq(65, 96), False),
    ],
)
def test_is_full(size, indexes, expected):
    bs = make(size, indexes)
    assert bs.is_full() is expected
    assert bs.is_full() == (bs.count() == size)


def dist(**counts):
    values = [0] * 33
    for key, value in counts.items():
        values[int(key[1:])] = value
    return tuple(values)


@pytest.mark.parametrize(
    "indexes, accessed, average, distribution",
    [
        ([], 0, 0.0, dist()),
        ([0], 1, 1.0 / 32.0, dist(d1=1)),
        (seq(0, 32), 1, 1.0, dist(d32=1)),
        (
            seq(0, 8) + seq(32, 48) + seq(64, 96),
            3,
            (8.0 + 16.0 + 32.0) / (3.0 * 32.0),
            dist(d8=1, d16=1, d32=1),
        ),
    ],
)
def test_chunk_efficiency_stats(indexes, accessed, average, distribution):
    stats = make(128, indexes).chunk_efficiency_stats()
    assert stats.total_chunks == 4
    assert stats.accessed_chunks == accessed
    assert f"{stats.average_efficiency:.6f}" == f"{average:.6f}"
    assert len(stats.distribution) == 33
    assert stats.distribution == distribution


def test_chunk_efficiencies():
    bs = make(96, seq(0, 4) + seq(32, 48))
    efficiencies = bs.chunk_efficiencies()
    assert len(efficiencies) == 2
    assert [f"{e:.3f}" for e in efficiencies] == ["0.125", "0.500"]


CHUNK_CASES = [
    (128, [], [0, 0, 0, 0]),
    (128, [0], [1, 0, 0, 0]),
    (128, [0, 5, 10, 35, 40, 64, 65, 66, 67, 68], [3, 2, 5, 0]),
    (128, seq(0, 32), [32, 0, 0, 0]),
    (96, seq(0, 8) + seq(32, 48) + seq(64, 96), [8, 16, 32]),
    (256, [0, 63, 128, 129, 255], [1, 1, 0, 0, 2, 0, 0, 1]),
]


@pytest.mark.parametrize("size, indexes, expected", CHUNK_CASES)
def test_chunks(size, indexes, expected):
    assert make(size, indexes).chunks() == bytes(expected)


ALTERNATING = [
    i * 32 + j for i in range(16) for j in range(20 if i % 2 == 0 else 3)
]


@pytest.mark.parametrize(
    "size, indexes, expected",
    CHUNK_CASES + [(512, ALTERNATING, [20, 3] * 8)],
)
def test_encode_chunks(size, indexes, expected):
    bs = make(size, indexes)
    encoded = bs.encode_chunks()
    assert encoded == base64.b64encode(bytes(expected)).decode()
    assert base64.b64decode(encoded) == bs.chunks()


def test_chunk_details():
    bs = make(96, seq(0, 8) + seq(64, 88))
    details = bs.chunk_details()
    assert len(details) == 2
    assert details[0].index == 0
    assert details[0].bytes_accessed == 8
    assert f"{details[0].efficiency:.3f}" == "0.250"
    assert details[1].index == 2
    assert details[1].bytes_accessed == 24
    assert f"{details[1].efficiency:.3f}" == "0.750"