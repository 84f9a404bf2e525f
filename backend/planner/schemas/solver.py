from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class FitnessWeights(BaseModel):
    duplicate_session: int = Field(default=-100_000, le=-1)
    mandatory_missing: int = Field(default=-100_000, le=-1)
    capacity_violation: int = Field(default=-50_000, le=-1)
    unfilled_slot: int = Field(default=-5_000, le=-1)
    preference_met: int = Field(default=100, ge=1)
    min_size_violation: int = Field(default=-10, le=0)

    @model_validator(mode="after")
    def validate_ordering(self) -> "FitnessWeights":
        # The mutation mode selector relies on each defect class outweighing the next.
        critical = min(abs(self.duplicate_session), abs(self.mandatory_missing))
        if not critical > abs(self.capacity_violation):
            raise ValueError("duplicate_session and mandatory_missing must outweigh capacity_violation")
        if not abs(self.capacity_violation) > abs(self.unfilled_slot):
            raise ValueError("capacity_violation must outweigh unfilled_slot")
        if not abs(self.unfilled_slot) > self.preference_met:
            raise ValueError("unfilled_slot must outweigh preference_met")
        if not self.preference_met > abs(self.min_size_violation):
            raise ValueError("preference_met must outweigh min_size_violation")
        return self


class VenueRules(BaseModel):
    plenary_room_id: str = Field(default="molenhoek", min_length=1, max_length=100)
    plenary_session_id: int | None = None
    plenary_capacity: int = Field(default=300, ge=1, le=10_000)
    plenary_slot_id: int = 2
    closed_room_id: str | None = Field(default="kinderdijk", min_length=1, max_length=100)
    closed_day: int = Field(default=2, ge=1, le=2)
    small_room_threshold: int = Field(default=27, ge=0, le=10_000)
    mandatory_overflow_delta: int = Field(default=5, ge=0, le=1000)
    mandatory_days: tuple[int, ...] = (1,)
    elective_overprovision: float = Field(default=1.1, ge=1.0, le=5.0)
    min_speaker_fragment_length: int = Field(default=3, ge=1, le=50)

    @model_validator(mode="after")
    def validate_days(self) -> "VenueRules":
        if not self.mandatory_days:
            raise ValueError("mandatory_days must name at least one day")
        if any(day not in (1, 2) for day in self.mandatory_days):
            raise ValueError("mandatory_days may only contain 1 and 2")
        return self


class SolverSettings(BaseModel):
    population_size: int = Field(default=200, ge=2, le=5000)
    elite_count: int = Field(default=10, ge=1, le=500)
    mutation_rate: float = Field(default=0.15, ge=0.0, le=1.0)
    max_mutation_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    max_generations: int = Field(default=3000, ge=0, le=100_000)
    time_limit_seconds: float = Field(default=300.0, gt=0.0, le=3600.0)
    local_search_top_k: int = Field(default=8, ge=0, le=500)
    tournament_size: int = Field(default=4, ge=1, le=50)
    stagnation_limit: int = Field(default=20, ge=1, le=10_000)
    progress_interval: int = Field(default=10, ge=1, le=10_000)
    repair_attempt_limit: int = Field(default=200, ge=1, le=10_000)
    min_group_size: int = Field(default=7, ge=0, le=1000)
    backfill_small_groups: bool = True
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    weights: FitnessWeights = Field(default_factory=FitnessWeights)

    @model_validator(mode="after")
    def validate_relationships(self) -> "SolverSettings":
        if self.elite_count >= self.population_size:
            raise ValueError("elite_count must be less than population_size")
        if self.tournament_size > self.population_size:
            raise ValueError("tournament_size cannot exceed population_size")
        if self.max_mutation_rate < self.mutation_rate:
            raise ValueError("max_mutation_rate cannot be below mutation_rate")
        return self
