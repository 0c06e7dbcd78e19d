"""
Match service: who-gives-to-whom generation

Pure computation, no database access and no state transitions.

A random derangement is built by shuffling the member ids and giving each
position the next one in shuffled order, with the last wrapping to the first.
For N >= 2 the successor of a position is never the position itself, so the
result has no fixed points. The result is still checked explicitly and the
shuffle is retried a bounded number of times if the check ever fails.
"""
import logging
import random
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from core.exceptions import (
    AssignmentInvariantViolation,
    InsufficientMembers,
    InvalidInput,
)
from database import settings

logger = logging.getLogger(__name__)


def rotate_pairs(shuffled: Sequence[Hashable]) -> List[Tuple[Hashable, Hashable]]:
    """
    Pair every id with its cyclic successor.

    Example:
        [A, C, B] -> [(A, C), (C, B), (B, A)]
    """
    n = len(shuffled)
    return [(shuffled[i], shuffled[(i + 1) % n]) for i in range(n)]


def find_self_assignments(pairs: Iterable[Tuple[Hashable, Hashable]]) -> List[Hashable]:
    """Return every giver mapped to itself"""
    return [giver for giver, recipient in pairs if giver == recipient]


def generate_matches(
    member_ids: Sequence[Hashable],
    rng: Optional[random.Random] = None,
    max_attempts: Optional[int] = None,
) -> Dict[Hashable, Hashable]:
    """
    Generate a random derangement over ``member_ids``.

    Args:
        member_ids: N distinct member identifiers (N >= 2)
        rng: random source; defaults to the module-level ``random``
        max_attempts: shuffle attempts before giving up
            (settings.match_max_attempts by default)

    Returns:
        {giver_id: recipient_id}. Every id appears exactly once as a key and
        exactly once as a value, and no id maps to itself.

    Raises:
        InsufficientMembers: fewer than two ids
        InvalidInput: duplicate ids
        AssignmentInvariantViolation: every attempt produced a self-assignment
    """
    ids = list(member_ids)
    if len(ids) < 2:
        raise InsufficientMembers(
            f"Need at least 2 members to assign manito, got {len(ids)}"
        )
    if len(set(ids)) != len(ids):
        raise InvalidInput("Member ids must be distinct")

    rng = rng or random
    attempts = max_attempts if max_attempts is not None else settings.match_max_attempts

    for attempt in range(1, attempts + 1):
        shuffled = ids[:]
        rng.shuffle(shuffled)
        pairs = rotate_pairs(shuffled)

        offenders = find_self_assignments(pairs)
        if not offenders:
            return dict(pairs)

        # Unreachable with the cyclic construction; reaching it is a bug.
        logger.warning(
            f"Self-assignment detected on attempt {attempt}/{attempts} "
            f"({len(offenders)} offending members), reshuffling"
        )

    raise AssignmentInvariantViolation(
        f"No valid assignment after {attempts} attempts"
    )
