import random

import pytest

from planner.core.exceptions import SchedulerError
from planner.schemas.solver import VenueRules
from planner.services.capacity import CapacityResolver
from planner.services.domain import (
    Advisor,
    FixedPlacement,
    Session,
    SessionConstraints,
    SessionType,
    SlotKind,
    TimeSlot,
)
from planner.services.master_schedule import generate_master_schedule, preference_demand
from planner.services.venue import default_rooms, default_time_slots


def conference_sessions() -> list[Session]:
    sessions = [
        Session(id=1, title="Opening plenary", type=SessionType.PLENARY),
        Session(id=2, title="Compliance update", type=SessionType.MANDATORY, repeats=4),
    ]
    sessions.extend(Session(id=session_id, title=f"Elective {session_id}") for session_id in range(3, 11))
    sessions.append(
        Session(
            id=11,
            title="Morning walk",
            constraints=SessionConstraints(time_of_day="morning"),
        )
    )
    sessions.append(
        Session(
            id=12,
            title="Day two workshop",
            constraints=SessionConstraints(allowed_days=(2,), time_of_day="afternoon"),
        )
    )
    return sessions


def conference_advisors(count: int = 60) -> list[Advisor]:
    rng = random.Random(11)
    elective_ids = list(range(3, 13))
    return [
        Advisor(id=index, name=f"Advisor {index}", preferences=tuple(rng.sample(elective_ids, 5)))
        for index in range(1, count + 1)
    ]


def build_menu(*, sessions=None, slots=None, rules=None, seed=3, fixed=()):
    sessions = {item.id: item for item in (sessions or conference_sessions())}
    rooms = {room.id: room for room in default_rooms()}
    slots = {slot.id: slot for slot in (slots or default_time_slots())}
    rules = rules or VenueRules()
    capacity = CapacityResolver(rooms=rooms, slots=slots, sessions=sessions, rules=rules)
    menu = generate_master_schedule(
        sessions=sessions,
        rooms=rooms,
        slots=slots,
        advisors=conference_advisors(),
        capacity=capacity,
        rules=rules,
        rng=random.Random(seed),
        fixed_placements=fixed,
    )
    return menu, capacity, slots


def test_preference_demand_weights_earlier_ranks_higher():
    advisors = [
        Advisor(id=1, name="A", preferences=(5, 6, 7)),
        Advisor(id=2, name="B", preferences=(7,)),
    ]
    assert preference_demand(advisors) == {5: 3, 6: 2, 7: 2}


def test_plenary_and_mandatory_placement():
    menu, capacity, slots = build_menu()

    plenary = [item for item in menu if item.session_id == 1]
    assert [(item.slot_id, item.room_id) for item in plenary] == [(2, "molenhoek")]
    assert [item for item in menu if item.slot_id == 2] == plenary

    mandatory = [item for item in menu if item.session_id == 2]
    assert len(mandatory) == 4
    assert len({item.slot_id for item in mandatory}) == 4
    assert all(slots[item.slot_id].day == 1 for item in mandatory)
    assert all(capacity.for_instance(item) > 0 for item in mandatory)


def test_menu_respects_rooms_and_constraints():
    menu, capacity, slots = build_menu()

    keys = [(item.slot_id, item.room_id) for item in menu]
    assert len(keys) == len(set(keys))
    assert len({item.instance_id for item in menu}) == len(menu)
    assert all(slots[item.slot_id].kind is SlotKind.SESSION for item in menu)
    assert all(capacity.for_instance(item) > 0 for item in menu)

    electives = [item for item in menu if item.session_id >= 3]
    assert electives
    assert all(item.room_id != "molenhoek" for item in electives)
    assert not [item for item in electives if item.room_id == "kinderdijk" and slots[item.slot_id].day == 2]
    assert all(slots[item.slot_id].start_hour < 12 for item in menu if item.session_id == 11)
    for item in (item for item in menu if item.session_id == 12):
        assert slots[item.slot_id].day == 2
        assert slots[item.slot_id].start_hour >= 11


def test_same_seed_builds_the_same_menu():
    first, _, _ = build_menu(seed=21)
    second, _, _ = build_menu(seed=21)
    assert [(i.session_id, i.slot_id, i.room_id) for i in first] == [
        (i.session_id, i.slot_id, i.room_id) for i in second
    ]


def test_fixed_placements_are_loaded_verbatim():
    menu, _, _ = build_menu(fixed=[FixedPlacement(session_id=5, slot_id=24, room_id="leeuw2")])
    assert menu[0].session_id == 5
    assert (menu[0].slot_id, menu[0].room_id) == (24, "leeuw2")
    assert len([item for item in menu if (item.slot_id, item.room_id) == (24, "leeuw2")]) == 1


@pytest.mark.parametrize(
    "placements",
    [
        [FixedPlacement(session_id=999, slot_id=4, room_id="witte")],
        [FixedPlacement(session_id=3, slot_id=4, room_id="attic")],
        [FixedPlacement(session_id=3, slot_id=3, room_id="witte")],
        [
            FixedPlacement(session_id=3, slot_id=4, room_id="witte"),
            FixedPlacement(session_id=4, slot_id=4, room_id="witte"),
        ],
    ],
)
def test_invalid_fixed_placements_are_rejected(placements):
    with pytest.raises(SchedulerError):
        build_menu(fixed=placements)


def test_no_session_slots_is_rejected():
    slots = [TimeSlot(id=1, day=1, label="12.15 - 13.15", kind=SlotKind.MEAL, title="Lunch")]
    with pytest.raises(SchedulerError) as exc_info:
        build_menu(slots=slots)
    assert exc_info.value.status_code == 400
