import random

import pytest

from planner.core.exceptions import GenomeConsistencyError
from planner.services.domain import Advisor, Gene, Room, ScheduledInstance, Session, SessionType
from planner.services.genome import Individual, crossover, materialize_attendees, random_individual

from conftest import build_context, session_slots


def small_context(*, advisor_count: int = 12):
    rooms = [
        Room(id="a", name="A", capacity=6),
        Room(id="b", name="B", capacity=6),
        Room(id="c", name="C", capacity=12),
    ]
    sessions = [
        Session(id=1, title="Mandatory", type=SessionType.MANDATORY, repeats=2),
        Session(id=2, title="Tax", speaker="Speaker One"),
        Session(id=3, title="Pensions"),
        Session(id=4, title="Mortgages"),
    ]
    rng = random.Random(4)
    advisors = [Advisor(id=1, name="Speaker One", preferences=(3, 4))]
    advisors.extend(
        Advisor(id=index, name=f"Advisor {index}", preferences=tuple(rng.sample([2, 3, 4], 3)))
        for index in range(2, advisor_count + 1)
    )
    return build_context(rooms=rooms, slots=session_slots(4), sessions=sessions, advisors=advisors)


def test_add_and_remove_gene_keep_both_views_in_sync():
    context = small_context()
    individual = Individual(context)
    first, second = individual.instances_in_slot(1)[:2]

    individual.add_gene(5, first)
    assert individual.gene_at(5, 1) == first.gene()
    assert first.attendees == [5]

    individual.add_gene(5, second)
    assert individual.gene_at(5, 1) == second.gene()
    assert first.attendees == []
    assert second.attendees == [5]

    removed = individual.remove_gene(5, 1)
    assert removed == second.gene()
    assert second.attendees == []
    assert individual.remove_gene(5, 1) is None
    individual.verify_consistency()


def test_add_gene_rejects_instances_of_other_individuals():
    context = small_context()
    first = Individual(context)
    second = Individual(context)
    with pytest.raises(GenomeConsistencyError):
        first.add_gene(2, second.instances[0])


def test_instance_for_rejects_genes_off_the_menu():
    individual = Individual(small_context())
    with pytest.raises(GenomeConsistencyError):
        individual.instance_for(Gene(session_id=99, slot_id=1, room_id="a"))


def test_verify_consistency_detects_direct_list_edits():
    individual = Individual(small_context())
    individual.instances[0].attendees.append(3)
    with pytest.raises(GenomeConsistencyError):
        individual.verify_consistency()


def test_random_individual_respects_seats_duplicates_and_presenters():
    context = small_context()
    individual = random_individual(context, random.Random(1))
    individual.verify_consistency()

    for instance in individual.instances:
        assert individual.seated(instance) <= individual.capacity_of(instance)
    for advisor in context.advisors:
        audience = [
            gene.session_id
            for slot_id, gene in individual.genes_of(advisor.id).items()
            if not context.presenters.is_presenting(advisor.id, slot_id)
        ]
        assert len(audience) == len(set(audience))
        assert not any(context.presenters.presents_session(advisor.id, session_id) for session_id in audience)
    for obligation in context.presenters:
        assert individual.gene_at(obligation.advisor_id, obligation.slot_id).session_id == obligation.session_id


def test_rebuild_from_genome_matches_materialized_instances():
    context = small_context()
    original = random_individual(context, random.Random(2))
    rebuilt = Individual.from_genome(context, original.genome)

    expected = materialize_attendees(context, original.genome)
    for instance in rebuilt.instances:
        assert sorted(instance.attendees) == expected.get(instance.key, [])
    assert rebuilt.fingerprint() == original.fingerprint()


def test_clone_is_independent():
    context = small_context()
    original = random_individual(context, random.Random(3))
    twin = original.clone()
    advisor_id = context.advisors[-1].id
    slot_id = next(iter(twin.genes_of(advisor_id)))

    twin.remove_gene(advisor_id, slot_id)
    assert original.gene_at(advisor_id, slot_id) is not None
    original.verify_consistency()
    twin.verify_consistency()


def test_crossover_leaves_parents_untouched():
    context = small_context()
    parent_a = random_individual(context, random.Random(5))
    parent_b = random_individual(context, random.Random(6))
    before_a = parent_a.fingerprint()
    before_b = parent_b.fingerprint()

    child = crossover(parent_a, parent_b, random.Random(7))

    assert parent_a.fingerprint() == before_a
    assert parent_b.fingerprint() == before_b
    child.verify_consistency()
    genes_a = {(advisor_id, slot_id, gene) for advisor_id, genes in parent_a.genome.items() for slot_id, gene in genes.items()}
    genes_b = {(advisor_id, slot_id, gene) for advisor_id, genes in parent_b.genome.items() for slot_id, gene in genes.items()}
    for advisor_id, genes in child.genome.items():
        for slot_id, gene in genes.items():
            assert (advisor_id, slot_id, gene) in genes_a | genes_b


def test_instance_lookups():
    menu = [
        ScheduledInstance(instance_id="inst-1", session_id=2, slot_id=1, room_id="a"),
        ScheduledInstance(instance_id="inst-2", session_id=2, slot_id=2, room_id="a"),
        ScheduledInstance(instance_id="inst-3", session_id=3, slot_id=2, room_id="b"),
    ]
    context = build_context(
        rooms=[Room(id="a", name="A", capacity=5), Room(id="b", name="B", capacity=5)],
        slots=session_slots(2),
        sessions=[Session(id=2, title="Tax"), Session(id=3, title="Pensions")],
        advisors=[Advisor(id=1, name="Someone")],
        menu=menu,
    )
    individual = Individual(context)
    assert [item.instance_id for item in individual.instances_of_session(2)] == ["inst-1", "inst-2"]
    assert [item.instance_id for item in individual.instances_in_slot(2)] == ["inst-2", "inst-3"]
    assert individual.instance_at(2, "b").session_id == 3
    assert individual.instance_at(1, "b") is None
