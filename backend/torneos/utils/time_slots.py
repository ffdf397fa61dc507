"""
Candidate slot generation.

Expands a day/time-range/duration/court configuration into a chronologically
ordered list of CandidateSlot values, one per usable court per interval.
Times are handled as minutes from midnight; an end of 00:00 means 24:00.
"""
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from torneos.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


class ScheduleDay(BaseModel):
    date: date
    start_time: time
    end_time: time  # 00:00 = midnight at the end of the day


class SlotCatalogueEntry(BaseModel):
    date: date
    start_time: time
    end_time: time


class ScheduleConfig(BaseModel):
    """Scheduling input shared by close-registration, close-groups, preview and regenerate"""

    days: List[ScheduleDay] = Field(default_factory=list)
    court_ids: List[int] = Field(default_factory=list)
    match_duration: Optional[int] = None  # falls back to the tournament's duration
    slot_catalogue: Optional[List[SlotCatalogueEntry]] = None


@dataclass(frozen=True)
class CandidateSlot:
    match_date: date
    start_minute: int
    end_minute: int
    court_id: int

    @property
    def start_time(self) -> time:
        return minutes_to_time(self.start_minute)

    @property
    def end_time(self) -> time:
        return minutes_to_time(self.end_minute)

    def overlaps(self, other: "CandidateSlot") -> bool:
        return (
            self.match_date == other.match_date
            and self.start_minute < other.end_minute
            and other.start_minute < self.end_minute
        )

    def to_dict(self) -> dict:
        return {
            "date": self.match_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "court_id": self.court_id,
        }


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def end_to_minutes(value: time) -> int:
    """Like time_to_minutes, but 00:00 closes the day (24:00)"""
    minutes = time_to_minutes(value)
    return MINUTES_PER_DAY if minutes == 0 else minutes


def minutes_to_time(minutes: int) -> time:
    minutes = minutes % MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def slot_sort_key(slot: CandidateSlot, court_rank: Optional[dict] = None):
    """Order: date -> start -> court (caller's court order when given)"""
    rank = court_rank.get(slot.court_id, slot.court_id) if court_rank else slot.court_id
    return (slot.match_date, slot.start_minute, rank)


def _validate_courts(court_ids: Sequence[int]) -> None:
    if not court_ids:
        raise ValidationError("At least one court must be selected")
    if len(set(court_ids)) != len(court_ids):
        raise ValidationError("Duplicate court ids in schedule configuration")


def generate_time_slots(
    days: Iterable[ScheduleDay],
    duration_minutes: int,
    court_ids: Sequence[int],
) -> List[CandidateSlot]:
    """Expand days x duration into candidate slots, replicated per court.

    Only whole intervals are emitted: a 4-hour window with 60-minute matches
    yields 4 intervals, i.e. 4 * len(court_ids) slots.
    """
    days = list(days)
    if not days:
        raise ValidationError("At least one day must be selected")
    _validate_courts(court_ids)
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("match_duration must be a positive number of minutes")

    slots: List[CandidateSlot] = []
    for day in days:
        start = time_to_minutes(day.start_time)
        end = end_to_minutes(day.end_time)
        if start >= end:
            raise ValidationError(
                f"Start time must be before end time on {day.date.isoformat()} "
                f"({day.start_time.strftime('%H:%M')} >= {day.end_time.strftime('%H:%M')})"
            )
        current = start
        while current + duration_minutes <= end:
            for court_id in court_ids:
                slots.append(CandidateSlot(day.date, current, current + duration_minutes, court_id))
            current += duration_minutes

    court_rank = {court_id: idx for idx, court_id in enumerate(court_ids)}
    slots.sort(key=lambda s: slot_sort_key(s, court_rank))
    return slots


def expand_slot_catalogue(
    entries: Iterable[SlotCatalogueEntry],
    court_ids: Sequence[int],
) -> List[CandidateSlot]:
    """Discrete catalogue variant: each entry becomes one slot per court"""
    entries = list(entries)
    if not entries:
        raise ValidationError("Slot catalogue is empty")
    _validate_courts(court_ids)

    slots: List[CandidateSlot] = []
    seen = set()
    for entry in entries:
        start = time_to_minutes(entry.start_time)
        end = end_to_minutes(entry.end_time)
        if start >= end:
            raise ValidationError(f"Catalogue slot on {entry.date.isoformat()} has start >= end")
        for court_id in court_ids:
            slot = CandidateSlot(entry.date, start, end, court_id)
            if slot in seen:
                continue
            seen.add(slot)
            slots.append(slot)

    court_rank = {court_id: idx for idx, court_id in enumerate(court_ids)}
    slots.sort(key=lambda s: slot_sort_key(s, court_rank))
    return slots


def build_candidate_slots(config: ScheduleConfig, default_duration: int) -> List[CandidateSlot]:
    """Catalogue wins when present, otherwise expand the day ranges"""
    if config.slot_catalogue:
        return expand_slot_catalogue(config.slot_catalogue, config.court_ids)
    duration = config.match_duration if config.match_duration is not None else default_duration
    return generate_time_slots(config.days, duration, config.court_ids)
