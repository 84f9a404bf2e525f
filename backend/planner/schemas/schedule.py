from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from planner.models.schedule_run import ScheduleRunStatus
from planner.schemas.solver import SolverSettings, VenueRules

SlotKindValue = Literal["SESSION", "BREAK", "MEAL", "OTHER"]
SessionTypeValue = Literal["PLENARY", "MANDATORY", "ELECTIVE"]
TimeOfDayValue = Literal["any", "morning", "afternoon"]


class RoomPayload(BaseModel):
    id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    capacity: int = Field(ge=0, le=10_000)


class TimeSlotPayload(BaseModel):
    id: int
    day: int = Field(ge=1, le=2)
    label: str = Field(min_length=1, max_length=50)
    kind: SlotKindValue = "SESSION"
    title: str | None = Field(default=None, max_length=200)


class SessionConstraintsPayload(BaseModel):
    allowedDays: list[int] = Field(default_factory=list, max_length=2)
    timeOfDay: TimeOfDayValue = "any"

    @field_validator("allowedDays")
    @classmethod
    def validate_days(cls, value: list[int]) -> list[int]:
        invalid = [day for day in value if day not in (1, 2)]
        if invalid:
            raise ValueError(f"Invalid conference day(s): {', '.join(str(day) for day in invalid)}")
        return sorted(set(value))


class SessionPayload(BaseModel):
    id: int
    title: str = Field(min_length=1, max_length=300)
    speaker: str = Field(default="", max_length=300)
    type: SessionTypeValue = "ELECTIVE"
    repeats: int = Field(default=1, ge=1, le=50)
    constraints: SessionConstraintsPayload | None = None
    durationMinutes: int | None = Field(default=None, ge=1, le=600)
    speakerAdvisorIds: list[int] | None = None


class AdvisorPayload(BaseModel):
    id: int
    name: str = Field(min_length=1, max_length=200)
    preferences: list[int] = Field(default_factory=list, max_length=200)


class FixedPlacementPayload(BaseModel):
    sessionId: int
    slotId: int
    roomId: str = Field(min_length=1, max_length=100)


class SolveScheduleRequest(BaseModel):
    rooms: list[RoomPayload] | None = None
    time_slots: list[TimeSlotPayload] | None = None
    sessions: list[SessionPayload] = Field(min_length=1)
    advisors: list[AdvisorPayload] = Field(min_length=1)
    fixed_placements: list[FixedPlacementPayload] = Field(default_factory=list)
    settings_override: SolverSettings | None = None
    rules_override: VenueRules | None = None


class ScheduleStatsOut(BaseModel):
    mandatoryMetPercent: float
    capacityViolations: int
    unfilledSlots: int
    preferenceMetPercent: float
    duplicatesFound: int
    minSizeViolations: int = 0
    averagePreferenceRank: float = 0.0


class ScheduledInstanceOut(BaseModel):
    instanceId: str
    sessionId: int
    sessionTitle: str
    slotId: int
    roomId: str
    capacity: int
    attendees: list[int] = Field(default_factory=list)
    presenters: list[int] = Field(default_factory=list)


class PresenterObligationOut(BaseModel):
    advisorId: int
    sessionId: int
    slotId: int
    roomId: str


class SolveScheduleResponse(BaseModel):
    run_id: str
    status: ScheduleRunStatus
    perfect: bool
    fitness: float
    stats: ScheduleStatsOut
    instances: list[ScheduledInstanceOut]
    obligations: list[PresenterObligationOut] = Field(default_factory=list)
    generations: int
    runtime_ms: int
    settings_used: SolverSettings


class ScheduleRunSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: ScheduleRunStatus
    fitness: float
    stats: ScheduleStatsOut
    generations: int
    runtime_ms: int
    random_seed: int | None = None
    created_at: datetime


class ScheduleRunOut(ScheduleRunSummary):
    inputs_summary: dict = Field(default_factory=dict)
    instances: list[ScheduledInstanceOut] = Field(default_factory=list)
    obligations: list[PresenterObligationOut] = Field(default_factory=list)


class AgendaEntry(BaseModel):
    slotId: int
    day: int
    label: str
    sessionId: int | None = None
    sessionTitle: str | None = None
    roomId: str | None = None
    presenting: bool = False
    preferenceRank: int | None = None


class AdvisorAgendaOut(BaseModel):
    run_id: str
    advisor_id: int
    name: str
    entries: list[AgendaEntry]


class VenueOut(BaseModel):
    rooms: list[RoomPayload]
    time_slots: list[TimeSlotPayload]
