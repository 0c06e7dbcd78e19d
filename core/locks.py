"""
Concurrency control

Two layers keep concurrent transitions on the same group from interleaving:

1. group_mutex: an in-process lock per group id, held for the whole
   check-and-write of a transition. Covers databases without row locks
   (SQLite ignores FOR UPDATE).
2. with_group_lock: a row lock on the group (SELECT ... FOR UPDATE) for
   databases that support it, covering several server processes.
"""
import threading
from contextlib import contextmanager

from sqlalchemy.orm import Session, Query

from models import Group, Member

_registry_lock = threading.Lock()
# group_id -> [lock, number of callers holding or waiting for it]
_group_locks: dict = {}


@contextmanager
def group_mutex(group_id: str):
    """
    Hold the per-group lock for the duration of the block.

    Example:
        with group_mutex(group_id):
            GroupManager._assign(db, group_id, actor_id)

    Notes:
        - the transaction must commit or roll back inside the block,
          otherwise the next holder could read stale state
        - an entry lives only while some caller holds or waits for it,
          so unknown and retired group ids leave nothing behind
    """
    with _registry_lock:
        entry = _group_locks.get(group_id)
        if entry is None:
            entry = _group_locks[group_id] = [threading.Lock(), 0]
        entry[1] += 1

    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _group_locks[group_id]


def active_group_locks() -> int:
    """Number of group ids that currently have a lock entry"""
    with _registry_lock:
        return len(_group_locks)


def with_group_lock(group_id: str, db: Session) -> Query:
    """
    Lock a Group row (row-level lock)

    Use when:
    - checking preconditions and writing in the same transaction
    - the group must not change until commit

    Example:
        group = with_group_lock(group_id, db).first()
        if not group:
            raise GroupNotFound(group_id)

    Args:
        group_id: Group id
        db: SQLAlchemy Session

    Returns:
        Query object (call .first())

    Notes:
        - nowait=False waits for the lock instead of failing
        - must run inside a transaction (commit or rollback releases it)
    """
    return db.query(Group).filter(
        Group.id == group_id
    ).with_for_update(nowait=False)


def lock_group_members(group_id: str, db: Session) -> Query:
    """
    Lock every Member row of a group

    Args:
        group_id: Group id
        db: SQLAlchemy Session

    Returns:
        Query object (call .all()), ordered by join time
    """
    return db.query(Member).filter(
        Member.group_id == group_id
    ).order_by(Member.joined_at).with_for_update(nowait=False)
