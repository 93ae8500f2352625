import random

import pytest

from archsim.caches import (
    BLOCK_SIZE,
    L1_SETS,
    L2_SETS,
    SRRIP_INSERT_AGE,
    CacheLine,
    LRUHierarchy,
    NRUHierarchy,
    SRRIPHierarchy,
)


def tiny(cls, l1_ways, l2_ways):
    return cls(l1_sets=1, l1_ways=l1_ways, l2_sets=1, l2_ways=l2_ways)


def access_blocks(cache, blocks):
    for block in blocks:
        address = block * BLOCK_SIZE
        cache.lookup(address, address)


def assert_inclusive(cache):
    for l1_index, lines in enumerate(cache.l1):
        for line in lines:
            block = (line.tag << cache.l1_index_bits) | l1_index
            l2_index = block & (len(cache.l2) - 1)
            l2_tag = block >> cache.l2_index_bits
            assert any(l2.valid and l2.tag == l2_tag for l2 in cache.l2[l2_index])


def workload(seed=7, count=3000):
    rng = random.Random(seed)
    return [
        (rng.randrange(0, 1 << 22), rng.choice([1, 4, 8, 64]))
        for _ in range(count)
    ]


def test_default_geometry():
    for cache in (LRUHierarchy(), SRRIPHierarchy(), NRUHierarchy()):
        assert len(cache.l1) == L1_SETS
        assert len(cache.l2) == L2_SETS


def test_range_end_is_inclusive_of_its_block():
    for cache in (LRUHierarchy(), SRRIPHierarchy(), NRUHierarchy()):
        cache.lookup(0, BLOCK_SIZE - 1)
        assert cache.stats.l1_accesses == 1
        cache.lookup(0, BLOCK_SIZE)
        assert cache.stats.l1_accesses == 3


def test_repeat_access_hits_l1():
    for cache in (LRUHierarchy(), SRRIPHierarchy(), NRUHierarchy()):
        cache.lookup(100, 100)
        cache.lookup(100, 100)
        assert cache.stats.l1_accesses == 2
        assert cache.stats.l1_misses == 1
        assert cache.stats.l2_misses == 1
        assert cache.stats.l2_accesses == cache.stats.l1_misses


def test_invalid_geometry_is_rejected():
    with pytest.raises(ValueError):
        LRUHierarchy(l1_sets=100)
    with pytest.raises(ValueError):
        SRRIPHierarchy(l2_ways=0)
    with pytest.raises(ValueError):
        NRUHierarchy().lookup(10, 5)


def test_lru_l1_conflict_then_l2_hit_counts():
    cache = LRUHierarchy()
    stride = L1_SETS  # same L1 set, different L2 sets
    blocks = [i * stride for i in range(cache.l1_ways + 1)]
    access_blocks(cache, blocks)
    assert cache.stats.l2_misses == len(blocks)
    access_blocks(cache, blocks[:1])
    assert cache.stats.l1_misses == len(blocks) + 1
    assert cache.stats.l2_misses == len(blocks)
    assert cache.stats.l2_hit_once == 1
    assert cache.stats.l2_hit_twice == 0
    access_blocks(cache, blocks[1:] + blocks[:1])
    assert cache.stats.l2_hit_twice == 1


def test_lru_eviction_back_invalidates_l1():
    cache = tiny(LRUHierarchy, l1_ways=4, l2_ways=2)
    sequence = [10, 11, 12, 10]
    access_blocks(cache, sequence)
    assert cache.stats.l1_misses == len(sequence)
    assert cache.stats.l2_misses == len(sequence)
    assert [line.tag for line in cache.l1[0]] == [10, 12]
    assert [line.tag for line in cache.l2[0]] == [10, 12]
    assert cache.stats.dead_on_fill == 2


def test_lru_resident_dead_blocks():
    cache = LRUHierarchy()
    blocks = [1, 2, 3, 4, 5]
    access_blocks(cache, blocks)
    assert cache.count_resident_dead_blocks() == len(blocks)
    assert cache.stats.l2_fills == len(blocks)
    small = tiny(LRUHierarchy, l1_ways=1, l2_ways=4)
    access_blocks(small, [20, 21, 20])
    assert small.count_resident_dead_blocks() == 1
    assert small.stats.l2_hit_once == 1


def test_srrip_replaces_distant_block_in_place():
    cache = tiny(SRRIPHierarchy, l1_ways=1, l2_ways=2)
    access_blocks(cache, [30, 31])
    assert all(line.age == SRRIP_INSERT_AGE for line in cache.l2[0])
    access_blocks(cache, [30, 32])
    assert [line.tag for line in cache.l2[0]] == [30, 32]
    assert cache.l2[0][1].age == SRRIP_INSERT_AGE
    assert cache.l2[0][0].age < SRRIP_INSERT_AGE
    assert [line.tag for line in cache.l1[0]] == [32]


def test_nru_replaces_first_unreferenced_block():
    cache = tiny(NRUHierarchy, l1_ways=1, l2_ways=2)
    access_blocks(cache, [40, 41, 42])
    assert [line.tag for line in cache.l2[0]] == [42, 41]
    assert [line.ref for line in cache.l2[0]] == [1, 0]
    access_blocks(cache, [41])
    assert cache.stats.l1_misses == 4
    assert cache.stats.l2_misses == 3


def test_nru_single_way_has_no_victim():
    cache = NRUHierarchy(l1_sets=1, l1_ways=1, l2_sets=1, l2_ways=1)
    cache.lookup(50 * BLOCK_SIZE, 50 * BLOCK_SIZE)
    assert [(line.tag, line.ref) for line in cache.l2[0]] == [(50, 1)]
    with pytest.raises(RuntimeError):
        cache.lookup(51 * BLOCK_SIZE, 51 * BLOCK_SIZE)
    assert cache.stats.l2_misses == 2


def test_workload_invariants():
    for cache in (LRUHierarchy(), SRRIPHierarchy(), NRUHierarchy()):
        total_blocks = 0
        for address, size in workload():
            cache.lookup(address, address + size)
            total_blocks += (address + size) // BLOCK_SIZE - address // BLOCK_SIZE + 1
        stats = cache.stats
        assert stats.l1_accesses == total_blocks
        assert stats.l2_accesses == stats.l1_misses
        assert stats.l2_misses <= stats.l2_accesses
        assert stats.l2_hit_twice <= stats.l2_hit_once
        for lines in cache.l1:
            assert len(lines) <= cache.l1_ways
            assert len({line.tag for line in lines}) == len(lines)
        for lines in cache.l2:
            assert len(lines) <= cache.l2_ways
            assert len({line.tag for line in lines}) == len(lines)
        assert_inclusive(cache)


def test_lru_fill_accounting_on_workload():
    cache = LRUHierarchy()
    for address, size in workload(seed=3):
        cache.lookup(address, address + size)
    resident = sum(len(lines) for lines in cache.l2)
    evicted = cache.stats.l2_fills - resident
    assert cache.stats.l2_fills == cache.stats.l2_misses
    assert cache.stats.dead_on_fill <= evicted
    assert cache.count_resident_dead_blocks() <= resident


def test_cache_line_defaults():
    line = CacheLine(tag=5)
    assert line.valid
    assert line.hits == 0
    assert line.ref == 1