import random

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from planner.api.deps import get_db
from planner.db.base import Base
from planner.db.session import build_engine, make_session_factory
from planner.main import app
from planner.schemas.solver import VenueRules
from planner.services.capacity import CapacityResolver
from planner.services.domain import Room, TimeSlot
from planner.services.genome import PlanningContext
from planner.services.master_schedule import generate_master_schedule
from planner.services.presenters import build_presenter_obligations

SESSION_LABELS = (
    "08.15 - 09.15",
    "09.30 - 10.15",
    "10.30 - 11.15",
    "11.30 - 12.15",
    "13.15 - 14.00",
    "14.15 - 15.00",
    "15.15 - 16.00",
    "16.15 - 17.00",
)


@pytest.fixture()
def client():
    engine = build_engine("sqlite+pysqlite://", poolclass=StaticPool)
    TestingSessionLocal = make_session_factory(engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def session_slots(count: int, *, day: int = 1, first_id: int = 1) -> list[TimeSlot]:
    return [
        TimeSlot(id=first_id + index, day=day, label=SESSION_LABELS[index % len(SESSION_LABELS)])
        for index in range(count)
    ]


def plain_rules(**overrides) -> VenueRules:
    """Rules with no plenary room and no closed room, so nominal capacities apply."""
    values = {
        "plenary_room_id": "plenary",
        "closed_room_id": None,
        "small_room_threshold": 0,
        "plenary_slot_id": 1,
    }
    values.update(overrides)
    return VenueRules(**values)


def build_context(
    *,
    rooms: list[Room],
    slots: list[TimeSlot],
    sessions,
    advisors,
    rules: VenueRules | None = None,
    menu=None,
    seed: int = 7,
    fixed_placements=(),
) -> PlanningContext:
    rules = rules or plain_rules()
    rooms_by_id = {room.id: room for room in rooms}
    slots_by_id = {slot.id: slot for slot in slots}
    sessions_by_id = {session.id: session for session in sessions}
    capacity = CapacityResolver(rooms=rooms_by_id, slots=slots_by_id, sessions=sessions_by_id, rules=rules)
    if menu is None:
        menu = generate_master_schedule(
            sessions=sessions_by_id,
            rooms=rooms_by_id,
            slots=slots_by_id,
            advisors=list(advisors),
            capacity=capacity,
            rules=rules,
            rng=random.Random(seed),
            fixed_placements=fixed_placements,
        )
    presenters = build_presenter_obligations(
        sessions_by_id.values(),
        list(advisors),
        menu,
        min_fragment_length=rules.min_speaker_fragment_length,
    )
    return PlanningContext(
        rooms=rooms_by_id,
        slots=slots_by_id,
        sessions=sessions_by_id,
        advisors=list(advisors),
        menu=menu,
        capacity=capacity,
        presenters=presenters,
    )


@pytest.fixture()
def make_context():
    return build_context
