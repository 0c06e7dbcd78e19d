"""Group mutex: per-group serialization without leaking entries.

Invariants:
    - Callers on the same group id share one lock while any of them holds or waits
    - No entry survives once the last caller leaves, whatever the outcome
"""

import threading

import pytest

from core.exceptions import GroupNotFound
from core.group_manager import GroupManager
from core.locks import active_group_locks, group_mutex
from core.membership_registry import MembershipRegistry


def test_unknown_group_ids_leave_no_entries(db):
    for i in range(50):
        with pytest.raises(GroupNotFound):
            MembershipRegistry.join(db, f"missing-{i}", "bob")

    assert active_group_locks() == 0


def test_retired_group_leaves_no_entry(db, make_group):
    group_id = make_group(users=("A",))
    GroupManager.retire(db, group_id, "A")

    assert active_group_locks() == 0


def test_entry_released_after_error_inside_block():
    with pytest.raises(RuntimeError):
        with group_mutex("g"):
            raise RuntimeError("boom")

    assert active_group_locks() == 0


def test_waiters_share_the_lock():
    inside = threading.Event()
    release = threading.Event()
    order = []

    def holder():
        with group_mutex("g"):
            inside.set()
            release.wait(timeout=10)
            order.append("holder")

    def waiter():
        inside.wait(timeout=10)
        with group_mutex("g"):
            order.append("waiter")

    threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
    for t in threads:
        t.start()
    inside.wait(timeout=10)
    # Give the waiter time to block on the held lock
    threads[1].join(timeout=0.2)
    assert order == []
    release.set()
    for t in threads:
        t.join(timeout=10)

    assert order == ["holder", "waiter"]
    assert active_group_locks() == 0
