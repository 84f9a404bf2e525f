from __future__ import annotations

from collections import Counter
import logging
import random
from time import perf_counter
from typing import Callable, Iterable

from planner.core.exceptions import SchedulerError
from planner.schemas.solver import SolverSettings, VenueRules
from planner.services.bulldozer import refine_with_bulldozer
from planner.services.capacity import CapacityResolver
from planner.services.domain import (
    Advisor,
    FixedPlacement,
    Room,
    ScheduleResult,
    ScheduleStats,
    Session,
    TimeSlot,
)
from planner.services.fitness import evaluate
from planner.services.genome import Individual, PlanningContext, crossover, random_individual
from planner.services.master_schedule import generate_master_schedule
from planner.services.mutation import mutate
from planner.services.presenters import build_presenter_obligations

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, ScheduleStats], None]

REPAIR_PROGRESS_INTERVAL = 5


def _ensure_unique(kind: str, ids: Iterable[object]) -> None:
    repeated = sorted(str(item) for item, count in Counter(ids).items() if count > 1)
    if repeated:
        raise SchedulerError(message=f"Duplicate {kind} ids in scheduling input", details={"ids": repeated})


class ConferenceScheduler:
    """Memetic search over attendee assignments for one conference.

    The master schedule and presenter obligations are fixed in the
    constructor; ``run`` then evolves a population of individuals over that
    menu and finishes with a strict repair of the best one.
    """

    def __init__(
        self,
        *,
        rooms: list[Room],
        time_slots: list[TimeSlot],
        sessions: list[Session],
        advisors: list[Advisor],
        fixed_placements: Iterable[FixedPlacement] = (),
        settings: SolverSettings | None = None,
        rules: VenueRules | None = None,
    ) -> None:
        self.settings = settings or SolverSettings()
        self.rules = rules or VenueRules()
        self.random = random.Random(self.settings.random_seed)

        _ensure_unique("room", (room.id for room in rooms))
        _ensure_unique("time slot", (slot.id for slot in time_slots))
        _ensure_unique("session", (session.id for session in sessions))
        _ensure_unique("advisor", (advisor.id for advisor in advisors))
        if not rooms:
            raise SchedulerError(message="No rooms configured for scheduling")

        self.rooms = {room.id: room for room in rooms}
        self.slots = {slot.id: slot for slot in time_slots}
        self.sessions = {session.id: session for session in sessions}
        self.advisors = list(advisors)

        self.capacity = CapacityResolver(
            rooms=self.rooms,
            slots=self.slots,
            sessions=self.sessions,
            rules=self.rules,
        )
        menu = generate_master_schedule(
            sessions=self.sessions,
            rooms=self.rooms,
            slots=self.slots,
            advisors=self.advisors,
            capacity=self.capacity,
            rules=self.rules,
            rng=self.random,
            fixed_placements=fixed_placements,
        )
        presenters = build_presenter_obligations(
            self.sessions.values(),
            self.advisors,
            menu,
            min_fragment_length=self.rules.min_speaker_fragment_length,
        )
        self.context = PlanningContext(
            rooms=self.rooms,
            slots=self.slots,
            sessions=self.sessions,
            advisors=self.advisors,
            menu=menu,
            capacity=self.capacity,
            presenters=presenters,
        )
        self.mutation_rate = self.settings.mutation_rate

    # -- building blocks -------------------------------------------------

    def _evaluate(self, individual: Individual) -> float:
        return evaluate(individual, self.settings.weights, min_group_size=self.settings.min_group_size)

    def _refine(self, individual: Individual) -> None:
        refine_with_bulldozer(
            individual,
            min_group_size=self.settings.min_group_size,
            backfill_small_groups=self.settings.backfill_small_groups,
        )

    def repair_until_stable(
        self,
        individual: Individual,
        max_rounds: int,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Repair and re-score until perfect, unchanged, or out of rounds.

        Returns the number of rounds performed.
        """
        rounds = 0
        while rounds < max_rounds:
            before = individual.fingerprint()
            self._refine(individual)
            self._evaluate(individual)
            rounds += 1
            logger.debug("Repair round | round=%s/%s | fitness=%.1f", rounds, max_rounds, individual.fitness)
            if on_progress is not None and rounds % REPAIR_PROGRESS_INTERVAL == 0:
                on_progress(rounds, max_rounds, individual.stats)
            if individual.stats.is_perfect or individual.fingerprint() == before:
                break
        return rounds

    def _build_initial_population(self) -> list[Individual]:
        population: list[Individual] = []
        for _ in range(self.settings.population_size):
            individual = random_individual(self.context, self.random)
            self._evaluate(individual)
            population.append(individual)
        return population

    def _select(self, ranked: list[Individual]) -> Individual:
        # ``ranked`` is sorted best first, so the lowest index wins the tournament.
        contenders = self.random.sample(range(len(ranked)), min(self.settings.tournament_size, len(ranked)))
        return ranked[min(contenders)]

    def _adaptive_mutation_rate(self, stagnant_generations: int) -> float:
        if stagnant_generations == 0:
            self.mutation_rate = self.settings.mutation_rate
        elif stagnant_generations > self.settings.stagnation_limit:
            self.mutation_rate = min(self.settings.max_mutation_rate, self.mutation_rate * 1.5)
        return self.mutation_rate

    def _next_generation(self, ranked: list[Individual], mutation_rate: float) -> list[Individual]:
        next_population = ranked[: self.settings.elite_count]
        while len(next_population) < self.settings.population_size:
            parent_a = self._select(ranked)
            parent_b = self._select(ranked)
            child = crossover(parent_a, parent_b, self.random)
            mutate(child, self.random, rate=mutation_rate)
            self._evaluate(child)
            next_population.append(child)
        return next_population

    @staticmethod
    def _rank(population: list[Individual]) -> list[Individual]:
        return sorted(population, key=lambda item: item.fitness, reverse=True)

    # -- main loop -------------------------------------------------------

    def run(self, on_progress: ProgressCallback | None = None) -> ScheduleResult:
        start = perf_counter()
        settings = self.settings
        logger.info(
            "SCHEDULE SEARCH START | advisors=%s | sessions=%s | instances=%s | obligations=%s | seed=%s",
            len(self.advisors),
            len(self.sessions),
            len(self.context.menu),
            len(self.context.presenters),
            settings.random_seed,
        )

        population = self._build_initial_population()
        best: Individual | None = None
        stagnant = 0
        generations = 0

        for generation in range(settings.max_generations):
            if perf_counter() - start >= settings.time_limit_seconds:
                logger.info("SCHEDULE SEARCH TIME LIMIT | generation=%s", generation)
                break
            ranked = self._rank(population)
            for individual in ranked[: settings.local_search_top_k]:
                self.repair_until_stable(individual, 1)
            ranked = self._rank(ranked)
            generations = generation + 1

            leader = ranked[0]
            if best is None or leader.fitness > best.fitness:
                best = leader.clone()
                stagnant = 0
            else:
                stagnant += 1
            mutation_rate = self._adaptive_mutation_rate(stagnant)

            if generations % settings.progress_interval == 0:
                logger.info(
                    "GENERATION PROGRESS | generation=%s/%s | fitness=%.1f | mandatory=%.1f | capacity=%s | unfilled=%s | duplicates=%s | mutation_rate=%.3f",
                    generations,
                    settings.max_generations,
                    best.fitness,
                    best.stats.mandatory_met_percent,
                    best.stats.capacity_violations,
                    best.stats.unfilled_slots,
                    best.stats.duplicates_found,
                    mutation_rate,
                )
                if on_progress is not None:
                    on_progress(generations, settings.max_generations, best.stats)

            if best.stats.is_perfect:
                logger.info("SCHEDULE SEARCH PERFECT | generation=%s", generations)
                break
            population = self._next_generation(ranked, mutation_rate)

        if best is None:
            best = self._rank(population)[0].clone()

        rounds = self.repair_until_stable(best, settings.repair_attempt_limit, on_progress)
        best.verify_consistency()

        runtime_ms = int((perf_counter() - start) * 1000)
        logger.info(
            "SCHEDULE SEARCH COMPLETE | generations=%s | repair_rounds=%s | fitness=%.1f | perfect=%s | runtime_ms=%s",
            generations,
            rounds,
            best.fitness,
            best.stats.is_perfect,
            runtime_ms,
        )
        return ScheduleResult(
            instances=best.instances,
            advisors=self.advisors,
            fitness=best.fitness,
            stats=best.stats,
            generations=generations,
            runtime_ms=runtime_ms,
            perfect=best.stats.is_perfect,
            obligations=list(self.context.presenters),
        )
