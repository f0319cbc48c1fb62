# src/dnskeeper/tasks/matching.py

from __future__ import annotations

"""
Adapter-name wildcard matching and DNS list comparison.

Both helpers are pure and cheap; the monitor calls them for every
(task, adapter) pair on every cycle.
"""

from collections.abc import Sequence

WILDCARD = "*"


def matches_pattern(name: str, pattern: str) -> bool:
    """
    Match an adapter name against a pattern where '*' stands for any run of characters.

    - "*" alone matches everything
    - no '*' means exact (case-sensitive) equality
    - otherwise the first segment must be a prefix, the last a suffix,
      and interior segments must appear in order after the previous match

    Interior segments take the earliest occurrence at or after the cursor.
    There is no '?' and no character classes.
    """
    if pattern == WILDCARD:
        return True

    if WILDCARD not in pattern:
        return name == pattern

    parts = pattern.split(WILDCARD)
    last = len(parts) - 1
    pos = 0

    for i, part in enumerate(parts):
        if i == 0:
            if not name.startswith(part):
                return False
            pos = len(part)
        elif i == last:
            if not name.endswith(part):
                return False
        else:
            found = name.find(part, pos)
            if found < 0:
                return False
            pos = found + len(part)

    return True


def dns_equal(a: Sequence[str], b: Sequence[str]) -> bool:
    """Order-insensitive comparison of two DNS server lists (exact string values)."""
    if len(a) != len(b):
        return False

    remaining = set(a)
    for dns in b:
        if dns not in remaining:
            return False
        remaining.remove(dns)

    return not remaining
