"""
In-process per-slot locks.

Everything that reads a slot and then writes depending on what it read
(booking, cancelling, deleting) takes the slot's lock first. Entries are
dropped once no caller holds or waits for them.
"""
import threading
from contextlib import contextmanager
from typing import Dict

# slot id -> [lock, number of callers holding or waiting for it]
_slot_locks: Dict[int, list] = {}
_slot_locks_guard = threading.Lock()


@contextmanager
def slot_lock(slot_id: int):
    with _slot_locks_guard:
        entry = _slot_locks.setdefault(slot_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _slot_locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _slot_locks[slot_id]


def tracked_slot_locks() -> int:
    """Number of slot ids that currently have a lock entry."""
    with _slot_locks_guard:
        return len(_slot_locks)
