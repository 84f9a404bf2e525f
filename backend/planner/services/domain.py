from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

TimeOfDay = Literal["any", "morning", "afternoon"]

MORNING_END_HOUR = 12
AFTERNOON_START_HOUR = 11

_LABEL_HOUR_PATTERN = re.compile(r"^\s*(\d{1,2})")


class SlotKind(str, Enum):
    SESSION = "SESSION"
    BREAK = "BREAK"
    MEAL = "MEAL"
    OTHER = "OTHER"


class SessionType(str, Enum):
    PLENARY = "PLENARY"
    MANDATORY = "MANDATORY"
    ELECTIVE = "ELECTIVE"


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    capacity: int


@dataclass(frozen=True)
class TimeSlot:
    id: int
    day: int
    label: str
    kind: SlotKind = SlotKind.SESSION
    title: str | None = None

    @property
    def is_session(self) -> bool:
        return self.kind is SlotKind.SESSION

    @property
    def start_hour(self) -> int | None:
        match = _LABEL_HOUR_PATTERN.match(self.label)
        if match is None:
            return None
        return int(match.group(1))


@dataclass(frozen=True)
class SessionConstraints:
    allowed_days: tuple[int, ...] = ()
    time_of_day: TimeOfDay = "any"

    def allows(self, slot: TimeSlot) -> bool:
        if self.allowed_days and slot.day not in self.allowed_days:
            return False
        if self.time_of_day == "any":
            return True
        hour = slot.start_hour
        if hour is None:
            return True
        if self.time_of_day == "morning":
            return hour < MORNING_END_HOUR
        return hour >= AFTERNOON_START_HOUR


@dataclass(frozen=True)
class Session:
    id: int
    title: str
    speaker: str = ""
    type: SessionType = SessionType.ELECTIVE
    repeats: int = 1
    constraints: SessionConstraints = field(default_factory=SessionConstraints)
    duration_minutes: int | None = None
    speaker_advisor_ids: tuple[int, ...] | None = None

    @property
    def requires_attendance(self) -> bool:
        return self.type in (SessionType.MANDATORY, SessionType.PLENARY)


@dataclass(frozen=True)
class Advisor:
    id: int
    name: str
    preferences: tuple[int, ...] = ()
    _ranks: dict[int, int] = field(init=False, repr=False, compare=False, hash=False)

    def __post_init__(self) -> None:
        ordered = tuple(dict.fromkeys(self.preferences))
        object.__setattr__(self, "preferences", ordered)
        object.__setattr__(self, "_ranks", {session_id: index for index, session_id in enumerate(ordered)})

    def preference_rank(self, session_id: int) -> int | None:
        """Zero-based rank of a session in this advisor's wish list, or None."""
        return self._ranks.get(session_id)


@dataclass(frozen=True)
class Gene:
    session_id: int
    slot_id: int
    room_id: str


@dataclass(frozen=True)
class FixedPlacement:
    session_id: int
    slot_id: int
    room_id: str


@dataclass
class ScheduledInstance:
    instance_id: str
    session_id: int
    slot_id: int
    room_id: str
    attendees: list[int] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, str]:
        return (self.slot_id, self.room_id)

    def gene(self) -> Gene:
        return Gene(session_id=self.session_id, slot_id=self.slot_id, room_id=self.room_id)

    def empty_copy(self) -> "ScheduledInstance":
        return ScheduledInstance(
            instance_id=self.instance_id,
            session_id=self.session_id,
            slot_id=self.slot_id,
            room_id=self.room_id,
        )


@dataclass(frozen=True)
class PresenterObligation:
    advisor_id: int
    session_id: int
    slot_id: int
    room_id: str


@dataclass
class ScheduleStats:
    mandatory_met_percent: float = 100.0
    capacity_violations: int = 0
    unfilled_slots: int = 0
    preference_met_percent: float = 100.0
    duplicates_found: int = 0
    min_size_violations: int = 0
    average_preference_rank: float = 0.0

    @property
    def is_perfect(self) -> bool:
        return (
            self.mandatory_met_percent >= 100.0
            and self.unfilled_slots == 0
            and self.capacity_violations == 0
            and self.duplicates_found == 0
        )

    @property
    def is_feasible(self) -> bool:
        return self.mandatory_met_percent >= 100.0 and self.capacity_violations == 0 and self.duplicates_found == 0


@dataclass
class ScheduleResult:
    instances: list[ScheduledInstance]
    advisors: list[Advisor]
    fitness: float
    stats: ScheduleStats
    generations: int
    runtime_ms: int
    perfect: bool
    obligations: list[PresenterObligation] = field(default_factory=list)
