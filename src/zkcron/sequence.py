"""Ordering of lock candidates by their service-assigned sequence suffix."""

from __future__ import annotations

from typing import Iterable

SEPARATOR = "-"


def sequence_of(name: str) -> str:
    """Return the sequence suffix following the last separator in ``name``.

    ZooKeeper formats sequence numbers as fixed-width zero-padded decimals,
    so the suffixes order correctly as plain strings.
    """
    _, sep, suffix = name.rpartition(SEPARATOR)
    if not sep:
        raise ValueError(f"candidate name has no sequence suffix: {name!r}")
    return suffix


def compare(a: str, b: str) -> int:
    seq_a = sequence_of(a)
    seq_b = sequence_of(b)
    if seq_a < seq_b:
        return -1
    if seq_a > seq_b:
        return 1
    return 0


def sort_candidates(names: Iterable[str]) -> list[str]:
    return sorted(names, key=sequence_of)
