# tpch_q3/core/engine/join.py
"""
JOIN MODULE - Inner equi-join of two keyed streams

Purpose:
    1. Match rows of two inputs whose keys are equal
    2. Keep full multiplicity: m left rows and n right rows with key K give m×n pairs
    3. Optionally split both sides into hash partitions joined independently

Algorithm:
    Hash join. The hash index is built on the smaller input and the larger
    input probes it. Pairs are always emitted as (left, right) whichever side
    was indexed. Unmatched rows on either side are dropped (inner join).
    Output order is not defined.
"""

from typing import Callable, Dict, Hashable, Iterator, List, Sequence, Tuple, TypeVar

L = TypeVar("L")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


def build_index(rows: Sequence[L], key_fn: Callable[[L], K]) -> Dict[K, List[L]]:
    """Group rows by key, keeping duplicates."""
    index: Dict[K, List[L]] = {}
    for row in rows:
        index.setdefault(key_fn(row), []).append(row)
    return index


def _hash_join_partition(
    left: Sequence[L],
    left_key: Callable[[L], K],
    right: Sequence[R],
    right_key: Callable[[R], K],
) -> Iterator[Tuple[L, R]]:
    if not left or not right:
        return

    if len(left) <= len(right):
        index = build_index(left, left_key)
        for r in right:
            for l in index.get(right_key(r), ()):
                yield (l, r)
    else:
        index = build_index(right, right_key)
        for l in left:
            for r in index.get(left_key(l), ()):
                yield (l, r)


def partition_by_key(
    rows: Sequence[L], key_fn: Callable[[L], K], partitions: int
) -> List[List[L]]:
    """Split rows into hash partitions; equal keys always land in the same one."""
    parts: List[List[L]] = [[] for _ in range(partitions)]
    for row in rows:
        parts[hash(key_fn(row)) % partitions].append(row)
    return parts


def hash_join(
    left: Sequence[L],
    left_key: Callable[[L], K],
    right: Sequence[R],
    right_key: Callable[[R], K],
    partitions: int = 1,
) -> Iterator[Tuple[L, R]]:
    """
    Inner-join two inputs on equal keys.

    Args:
        left: Left input rows
        left_key: Key of a left row
        right: Right input rows
        right_key: Key of a right row
        partitions: Number of hash partitions joined independently (1 = no split)

    Returns:
        Iterator over every (l, r) with left_key(l) == right_key(r)

    Example:
        hash_join([1, 1], lambda c: c, [(7, 1), (8, 1), (9, 2)], lambda o: o[1])
        → (1, (7, 1)), (1, (8, 1)), (1, (7, 1)), (1, (8, 1))   # 2×2 pairs
    """
    if partitions < 1:
        raise ValueError(f"partitions must be >= 1, got {partitions}")

    if partitions == 1:
        return _hash_join_partition(left, left_key, right, right_key)

    left_parts = partition_by_key(left, left_key, partitions)
    right_parts = partition_by_key(right, right_key, partitions)
    return _join_partitions(left_parts, left_key, right_parts, right_key)


def _join_partitions(left_parts, left_key, right_parts, right_key):
    for left_part, right_part in zip(left_parts, right_parts):
        yield from _hash_join_partition(left_part, left_key, right_part, right_key)
