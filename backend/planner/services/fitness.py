from __future__ import annotations

from planner.schemas.solver import FitnessWeights
from planner.services.domain import ScheduleStats, SessionType
from planner.services.genome import Individual


def evaluate(individual: Individual, weights: FitnessWeights, *, min_group_size: int = 0) -> float:
    """Score ``individual`` and refresh its stats snapshot in place.

    Weight magnitudes are ordered so that a duplicate or a missing mandatory
    session always costs more than a seat of overflow, which costs more than
    an empty slot, which costs more than a missed preference.
    """
    context = individual.context
    presenters = context.presenters
    session_slots = set(context.session_slot_ids)
    elective_budget = context.elective_slot_budget
    stats = ScheduleStats(mandatory_met_percent=0.0, preference_met_percent=0.0)
    score = 0.0

    mandatory_needed = 0
    mandatory_met = 0
    preferences_possible = 0
    preferences_met = 0
    matched_ranks: list[int] = []

    for advisor in context.advisors:
        genes = individual.genome.get(advisor.id, {})
        audience_slots: list[int] = []
        attending: set[int] = set()
        for slot_id in sorted(genes):
            obligation = presenters.obligation_for(advisor.id, slot_id)
            if obligation is not None and obligation.session_id == genes[slot_id].session_id:
                attending.add(obligation.session_id)
            else:
                audience_slots.append(slot_id)
        for slot_id in audience_slots:
            gene = genes[slot_id]
            if gene.session_id in attending:
                stats.duplicates_found += 1
                score += weights.duplicate_session
            attending.add(gene.session_id)

        for session in context.required_sessions:
            mandatory_needed += 1
            if session.id in attending:
                mandatory_met += 1
            else:
                score += weights.mandatory_missing

        max_matchable = min(len(advisor.preferences), elective_budget)
        if max_matchable > 0:
            personal = 0
            for rank, session_id in enumerate(advisor.preferences, start=1):
                if session_id in attending:
                    personal += 1
                    matched_ranks.append(rank)
            preferences_met += min(personal, max_matchable)
            preferences_possible += max_matchable
            score += personal * weights.preference_met

        covered = (set(genes) | presenters.presenting_slots(advisor.id)) & session_slots
        gap = len(session_slots) - len(covered)
        if gap > 0:
            stats.unfilled_slots += gap
            score += gap * weights.unfilled_slot

    for instance in individual.instances:
        seated = individual.seated(instance)
        overflow = seated - individual.capacity_of(instance)
        if overflow > 0:
            stats.capacity_violations += overflow
            score += overflow * weights.capacity_violation
        if min_group_size > 0 and 0 < seated < min_group_size:
            session = context.sessions.get(instance.session_id)
            if session is not None and session.type is SessionType.ELECTIVE:
                stats.min_size_violations += 1
                score += weights.min_size_violation

    stats.mandatory_met_percent = (mandatory_met / mandatory_needed) * 100 if mandatory_needed > 0 else 100.0
    stats.preference_met_percent = (
        (preferences_met / preferences_possible) * 100 if preferences_possible > 0 else 100.0
    )
    stats.average_preference_rank = sum(matched_ranks) / len(matched_ranks) if matched_ranks else 0.0

    individual.stats = stats
    individual.fitness = score
    return score
