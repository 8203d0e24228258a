"""
Rotation Sequencer

Advances a circular pointer over a chore's member sequence.

    sequence = [A, B, C], current_index = 0
    -> B (1), C (2), A (0), B (1), ...

With skip_members the scan continues past skipped members. An override
jumps straight to the override member's position, so the next normal
rotation continues from there.

Pure: callers persist current_index and create the next assignment.
"""

from typing import Iterable, Optional, Sequence

from flatmate.models.chores import RotationResult


class RotationError(ValueError):
    """The rotation request cannot be satisfied."""
    pass


def get_next_assignee(
    sequence: Sequence[str],
    current_index: int,
    *,
    skip_members: Optional[Iterable[str]] = None,
    override_member_id: Optional[str] = None,
) -> RotationResult:
    """
    Pick the next member in the rotation.

    Raises:
        RotationError: If the sequence is empty, the override member is
            not in the sequence, or every member is skipped
    """
    if not sequence:
        raise RotationError("Rotation sequence must include at least one member")

    if override_member_id:
        try:
            target_index = list(sequence).index(override_member_id)
        except ValueError:
            raise RotationError(
                f"Override member {override_member_id} is not part of the rotation sequence"
            ) from None
        return RotationResult(member_id=sequence[target_index], next_index=target_index)

    skip = set(skip_members or ())
    length = len(sequence)

    for step in range(length):
        next_index = (current_index + 1 + step) % length
        candidate = sequence[next_index]
        if candidate not in skip:
            return RotationResult(member_id=candidate, next_index=next_index)

    raise RotationError("No eligible member found for rotation")
