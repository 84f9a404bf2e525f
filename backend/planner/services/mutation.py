from __future__ import annotations

from enum import Enum
import random

from planner.services.domain import Advisor, ScheduledInstance
from planner.services.genome import Individual


class MutationMode(str, Enum):
    MANDATORY_FIX = "MANDATORY_FIX"
    CAPACITY_FIX = "CAPACITY_FIX"
    FILL_SLOT = "FILL_SLOT"
    RANDOM_SWAP = "RANDOM_SWAP"


def _missing_required(individual: Individual) -> list[tuple[Advisor, int]]:
    missing: list[tuple[Advisor, int]] = []
    for advisor in individual.context.advisors:
        attended = individual.attended_sessions(advisor.id)
        for session in individual.context.required_sessions:
            if session.id not in attended and individual.instances_of_session(session.id):
                missing.append((advisor, session.id))
    return missing


def _empty_slots(individual: Individual) -> list[tuple[Advisor, int]]:
    presenters = individual.context.presenters
    holes: list[tuple[Advisor, int]] = []
    for advisor in individual.context.advisors:
        for slot_id in individual.context.session_slot_ids:
            if individual.is_busy(advisor.id, slot_id) or presenters.is_presenting(advisor.id, slot_id):
                continue
            if individual.instances_in_slot(slot_id):
                holes.append((advisor, slot_id))
    return holes


def diagnose(individual: Individual) -> MutationMode:
    """Pick the edit that targets the heaviest defect class present."""
    if _missing_required(individual):
        return MutationMode.MANDATORY_FIX
    if individual.overfull_instances():
        return MutationMode.CAPACITY_FIX
    if _empty_slots(individual):
        return MutationMode.FILL_SLOT
    return MutationMode.RANDOM_SWAP


def _fix_mandatory(individual: Individual, rng: random.Random) -> bool:
    missing = _missing_required(individual)
    if not missing:
        return False
    advisor, session_id = rng.choice(missing)
    presenters = individual.context.presenters
    options = [
        instance
        for instance in individual.instances_of_session(session_id)
        if not presenters.is_presenting(advisor.id, instance.slot_id)
    ]
    if not options:
        return False
    roomy = [instance for instance in options if individual.has_space(instance)]
    individual.add_gene(advisor.id, rng.choice(roomy or options))
    return True


def _fix_capacity(individual: Individual, rng: random.Random) -> bool:
    overfull = individual.overfull_instances()
    if not overfull:
        return False
    instance = rng.choice(overfull)
    presenters_here = individual.context.presenters.presenters_at(instance.slot_id, instance.room_id)
    movable = [advisor_id for advisor_id in instance.attendees if advisor_id not in presenters_here]
    if not movable:
        return False
    advisor_id = rng.choice(movable)
    destinations = [
        other
        for other in individual.instances_in_slot(instance.slot_id)
        if other is not instance
        and individual.has_space(other)
        and not individual.attends_session(advisor_id, other.session_id, exclude_slot=instance.slot_id)
        and not individual.context.presenters.presents_session(advisor_id, other.session_id)
    ]
    if not destinations:
        return False
    individual.add_gene(advisor_id, rng.choice(destinations))
    return True


def _fill_slot(individual: Individual, rng: random.Random) -> bool:
    holes = _empty_slots(individual)
    if not holes:
        return False
    advisor, slot_id = rng.choice(holes)
    presenters = individual.context.presenters
    options: list[ScheduledInstance] = [
        instance
        for instance in individual.instances_in_slot(slot_id)
        if individual.has_space(instance)
        and not individual.attends_session(advisor.id, instance.session_id)
        and not presenters.presents_session(advisor.id, instance.session_id)
    ]
    if not options:
        return False
    preferred = [instance for instance in options if advisor.preference_rank(instance.session_id) is not None]
    if preferred:
        choice = min(preferred, key=lambda item: advisor.preference_rank(item.session_id))
    else:
        choice = rng.choice(options)
    individual.add_gene(advisor.id, choice)
    return True


def _random_swap(individual: Individual, rng: random.Random) -> bool:
    context = individual.context
    if len(context.advisors) < 2 or not context.session_slot_ids:
        return False
    slot_id = rng.choice(context.session_slot_ids)
    first, second = rng.sample(context.advisors, 2)
    gene_a = individual.gene_at(first.id, slot_id)
    gene_b = individual.gene_at(second.id, slot_id)
    if gene_a is None or gene_b is None or gene_a == gene_b:
        return False
    presenters = context.presenters
    if presenters.is_presenting(first.id, slot_id) or presenters.is_presenting(second.id, slot_id):
        return False
    if individual.attends_session(first.id, gene_b.session_id, exclude_slot=slot_id):
        return False
    if individual.attends_session(second.id, gene_a.session_id, exclude_slot=slot_id):
        return False
    if presenters.presents_session(first.id, gene_b.session_id) or presenters.presents_session(second.id, gene_a.session_id):
        return False
    individual.add_gene(first.id, individual.instance_for(gene_b))
    individual.add_gene(second.id, individual.instance_for(gene_a))
    return True


_OPERATORS = {
    MutationMode.MANDATORY_FIX: _fix_mandatory,
    MutationMode.CAPACITY_FIX: _fix_capacity,
    MutationMode.FILL_SLOT: _fill_slot,
    MutationMode.RANDOM_SWAP: _random_swap,
}


def mutate(individual: Individual, rng: random.Random, *, rate: float) -> MutationMode | None:
    """Apply at most one targeted edit with probability ``rate``.

    Returns the mode that changed the individual, or None when nothing was
    applied. Presenter obligations are re-injected afterwards either way.
    """
    applied: MutationMode | None = None
    if rng.random() < rate:
        mode = diagnose(individual)
        if _OPERATORS[mode](individual, rng):
            applied = mode
    individual.enforce_presenter_obligations()
    return applied
