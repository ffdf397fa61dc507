"""
Auto-Assign: deterministic fixture-to-slot assignment

First-fit over caller-ordered fixtures. For each fixture the earliest
candidate slot is taken such that:
- the slot (court + interval) is not already used
- no participant already holds an overlapping slot that day
- no participant has a restriction covering the slot start
- the slot does not start before any listed predecessor ends

The whole call is computed in memory and either places every fixture or
raises CapacityError; callers persist only on success, so a failed run
leaves zero assignments.

Non-goals:
- Rest rules or match spacing
- Court balancing heuristics
- "Best fit" optimization
- Any randomness
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from torneos.errors import CapacityError
from torneos.utils.time_slots import CandidateSlot, end_to_minutes, time_to_minutes

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


@dataclass(frozen=True)
class FixtureRequest:
    """One fixture to place.

    participants: team ids, or any hashable stand-in (e.g. "1A" in previews).
    For unresolved slots the caller passes a stand-in for "winner/loser of X".
    The bracket plan passes every team that could still reach the match.
    after: keys of fixtures that must end before this one starts.
    """

    key: Hashable
    participants: FrozenSet[Hashable] = frozenset()
    after: Tuple[Hashable, ...] = ()


@dataclass(frozen=True)
class FixedOccupancy:
    """A slot already held by a fixture that is not being (re)assigned"""

    key: Hashable
    participants: FrozenSet[Hashable]
    slot: CandidateSlot


@dataclass(frozen=True)
class RestrictionWindow:
    day_date: date
    start_minute: int
    end_minute: int

    @classmethod
    def from_times(cls, day_date: date, start: time, end: time) -> "RestrictionWindow":
        return cls(day_date, time_to_minutes(start), end_to_minutes(end))

    def blocks(self, slot: CandidateSlot) -> bool:
        return slot.match_date == self.day_date and self.start_minute <= slot.start_minute < self.end_minute


@dataclass
class AssignResult:
    """Structured result from an assignment run"""

    assignments: Dict[Hashable, CandidateSlot] = field(default_factory=dict)
    total_fixtures: int = 0
    total_slots: int = 0

    @property
    def assigned_count(self) -> int:
        return len(self.assignments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assigned_count": self.assigned_count,
            "total_fixtures": self.total_fixtures,
            "total_slots": self.total_slots,
        }


def _emit(on_log: Optional[LogSink], message: str) -> None:
    logger.debug(message)
    if on_log is not None:
        on_log(message)


def slot_blocked_by_restrictions(
    slot: CandidateSlot,
    participants: Iterable[Hashable],
    restrictions: Mapping[Hashable, Sequence[RestrictionWindow]],
) -> bool:
    for participant in participants:
        for window in restrictions.get(participant, ()):
            if window.blocks(slot):
                return True
    return False


def non_overlapping_capacity(slots: Sequence[CandidateSlot]) -> int:
    """Most fixtures the slots can hold: overlapping catalogue entries on one court count once"""
    by_court: Dict[Tuple[int, date], List[CandidateSlot]] = defaultdict(list)
    for slot in slots:
        by_court[(slot.court_id, slot.match_date)].append(slot)
    capacity = 0
    for court_slots in by_court.values():
        last_end: Optional[int] = None
        for slot in sorted(court_slots, key=lambda s: (s.end_minute, s.start_minute)):
            if last_end is None or slot.start_minute >= last_end:
                capacity += 1
                last_end = slot.end_minute
    return capacity


def assign_fixtures(
    fixtures: Sequence[FixtureRequest],
    candidates: Sequence[CandidateSlot],
    restrictions: Optional[Mapping[Hashable, Sequence[RestrictionWindow]]] = None,
    fixed: Optional[Sequence[FixedOccupancy]] = None,
    on_log: Optional[LogSink] = None,
) -> AssignResult:
    """Place every fixture or raise CapacityError (nothing is persisted here)."""
    restrictions = restrictions or {}
    fixed = fixed or []

    result = AssignResult(total_fixtures=len(fixtures))

    used_slots: List[CandidateSlot] = [f.slot for f in fixed]
    free_candidates = [c for c in candidates if not any(c.overlaps(u) and c.court_id == u.court_id for u in used_slots)]
    capacity = non_overlapping_capacity(free_candidates)
    result.total_slots = capacity

    if not fixtures:
        return result

    if len(fixtures) > capacity:
        _emit(on_log, f"Not enough slots: {len(fixtures)} needed, {capacity} available")
        raise CapacityError(
            f"Not enough time slots: {len(fixtures)} fixtures need a slot but only {capacity} are available",
            slots_needed=len(fixtures),
            slots_available=capacity,
        )

    # participant -> slots already held (by fixed occupants or earlier fixtures)
    held: Dict[Hashable, List[CandidateSlot]] = defaultdict(list)
    placed_by_key: Dict[Hashable, CandidateSlot] = {}
    for occupant in fixed:
        placed_by_key[occupant.key] = occupant.slot
        for participant in occupant.participants:
            held[participant].append(occupant.slot)

    taken = [False] * len(free_candidates)

    for index, fixture in enumerate(fixtures):
        not_before: Optional[Tuple[date, int]] = None
        for predecessor in fixture.after:
            pred_slot = placed_by_key.get(predecessor)
            if pred_slot is None:
                continue
            bound = (pred_slot.match_date, pred_slot.end_minute)
            if not_before is None or bound > not_before:
                not_before = bound

        chosen: Optional[int] = None
        for slot_index, slot in enumerate(free_candidates):
            if taken[slot_index]:
                continue
            if not_before is not None and (slot.match_date, slot.start_minute) < not_before:
                continue
            if any(slot.overlaps(other) for p in fixture.participants for other in held[p]):
                continue
            if slot_blocked_by_restrictions(slot, fixture.participants, restrictions):
                continue
            chosen = slot_index
            break

        if chosen is None:
            _emit(on_log, f"No eligible slot for fixture {fixture.key}")
            raise CapacityError(
                f"Could not place fixture {fixture.key}: every remaining slot conflicts with "
                f"team availability or restrictions ({index} of {len(fixtures)} placed)",
                slots_needed=len(fixtures),
                slots_available=capacity,
                unplaced=[f.key for f in fixtures[index:]],
            )

        slot = free_candidates[chosen]
        # Occupy every candidate on the same court overlapping this one (catalogue slots may differ in length)
        for other_index, other in enumerate(free_candidates):
            if not taken[other_index] and other.court_id == slot.court_id and other.overlaps(slot):
                taken[other_index] = True
        placed_by_key[fixture.key] = slot
        result.assignments[fixture.key] = slot
        for participant in fixture.participants:
            held[participant].append(slot)
        _emit(
            on_log,
            f"Fixture {fixture.key} -> {slot.match_date.isoformat()} "
            f"{slot.start_time.strftime('%H:%M')} court {slot.court_id}",
        )

    return result
