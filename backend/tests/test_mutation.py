import random

from planner.services.domain import Advisor, Room, ScheduledInstance, Session, SessionType
from planner.services.genome import Individual
from planner.services.mutation import MutationMode, diagnose, mutate

from conftest import build_context, session_slots


def mandatory_context():
    menu = [
        ScheduledInstance(instance_id="inst-1", session_id=1, slot_id=1, room_id="a"),
        ScheduledInstance(instance_id="inst-2", session_id=2, slot_id=1, room_id="b"),
        ScheduledInstance(instance_id="inst-3", session_id=3, slot_id=2, room_id="b"),
    ]
    return build_context(
        rooms=[Room(id="a", name="A", capacity=2), Room(id="b", name="B", capacity=5)],
        slots=session_slots(2),
        sessions=[
            Session(id=1, title="Mandatory", type=SessionType.MANDATORY),
            Session(id=2, title="Tax"),
            Session(id=3, title="Pensions"),
        ],
        advisors=[Advisor(id=index, name=f"Advisor {index}") for index in (1, 2, 3)],
        menu=menu,
    )


def elective_context():
    menu = [
        ScheduledInstance(instance_id="inst-1", session_id=1, slot_id=1, room_id="a"),
        ScheduledInstance(instance_id="inst-2", session_id=2, slot_id=1, room_id="b"),
        ScheduledInstance(instance_id="inst-3", session_id=3, slot_id=2, room_id="a"),
        ScheduledInstance(instance_id="inst-4", session_id=4, slot_id=2, room_id="b"),
    ]
    return build_context(
        rooms=[Room(id="a", name="A", capacity=5), Room(id="b", name="B", capacity=5)],
        slots=session_slots(2),
        sessions=[
            Session(id=1, title="Tax", speaker="Anna"),
            Session(id=2, title="Pensions"),
            Session(id=3, title="Mortgages"),
            Session(id=4, title="Insurance"),
        ],
        advisors=[
            Advisor(id=1, name="Anna", preferences=(3,)),
            Advisor(id=2, name="Bram", preferences=(2, 4)),
            Advisor(id=3, name="Cees", preferences=(1, 3)),
            Advisor(id=4, name="Dirk", preferences=(4, 2)),
        ],
        menu=menu,
    )


def test_diagnose_orders_defect_classes():
    individual = Individual(mandatory_context())
    assert diagnose(individual) is MutationMode.MANDATORY_FIX

    for advisor_id in (1, 2, 3):
        individual.add_gene(advisor_id, individual.instance_at(1, "a"))
    assert diagnose(individual) is MutationMode.CAPACITY_FIX

    electives = Individual(elective_context())
    assert diagnose(electives) is MutationMode.FILL_SLOT


def test_mandatory_fix_places_a_missing_session():
    individual = Individual(mandatory_context())
    assert mutate(individual, random.Random(1), rate=1.0) is MutationMode.MANDATORY_FIX
    attending = [advisor_id for advisor_id in (1, 2, 3) if individual.attends_session(advisor_id, 1)]
    assert len(attending) == 1
    individual.verify_consistency()


def test_capacity_fix_moves_one_seat_within_the_slot():
    individual = Individual(mandatory_context())
    crowded = individual.instance_at(1, "a")
    for advisor_id in (1, 2, 3):
        individual.add_gene(advisor_id, crowded)

    assert mutate(individual, random.Random(2), rate=1.0) is MutationMode.CAPACITY_FIX
    assert len(crowded.attendees) == 2
    assert len(individual.instance_at(1, "b").attendees) == 1
    individual.verify_consistency()


def test_fill_slot_prefers_ranked_sessions_and_keeps_presenters():
    context = elective_context()
    individual = Individual(context)
    assert mutate(individual, random.Random(3), rate=1.0) is MutationMode.FILL_SLOT
    assert individual.gene_at(1, 1).session_id == 1

    filled = [
        (advisor.id, slot_id)
        for advisor in context.advisors
        for slot_id in (1, 2)
        if individual.is_busy(advisor.id, slot_id) and not context.presenters.is_presenting(advisor.id, slot_id)
    ]
    assert len(filled) == 1
    advisor_id, slot_id = filled[0]
    gene = individual.gene_at(advisor_id, slot_id)
    advisor = context.advisors_by_id[advisor_id]
    offered = [item.session_id for item in individual.instances_in_slot(slot_id)]
    ranked = [session_id for session_id in offered if advisor.preference_rank(session_id) is not None]
    if ranked:
        assert gene.session_id == min(ranked, key=advisor.preference_rank)


def test_zero_rate_changes_nothing_but_obligations():
    individual = Individual(elective_context())
    assert mutate(individual, random.Random(4), rate=0.0) is None
    assert individual.fingerprint() == ((1, 1, "a"),)


def test_random_swaps_never_break_presenters_or_uniqueness():
    context = elective_context()
    individual = Individual(context)
    plan = {1: [(1, "a"), (2, "a")], 2: [(1, "b"), (2, "b")], 3: [(1, "b"), (2, "a")], 4: [(1, "b"), (2, "b")]}
    for advisor_id, keys in plan.items():
        for slot_id, room_id in keys:
            individual.add_gene(advisor_id, individual.instance_at(slot_id, room_id))
    assert diagnose(individual) is MutationMode.RANDOM_SWAP

    rng = random.Random(5)
    for _ in range(50):
        mutate(individual, rng, rate=1.0)
        individual.verify_consistency()
        assert individual.gene_at(1, 1).room_id == "a"
        for advisor in context.advisors:
            sessions = [gene.session_id for gene in individual.genes_of(advisor.id).values()]
            assert len(sessions) == len(set(sessions))
