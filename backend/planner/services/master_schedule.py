from __future__ import annotations

from collections import Counter, defaultdict
import logging
import math
import random
from typing import Iterable

from planner.core.exceptions import SchedulerError
from planner.schemas.solver import VenueRules
from planner.services.capacity import CapacityResolver
from planner.services.domain import (
    Advisor,
    FixedPlacement,
    Room,
    ScheduledInstance,
    Session,
    SessionType,
    TimeSlot,
)

logger = logging.getLogger(__name__)


def preference_demand(advisors: Iterable[Advisor]) -> dict[int, int]:
    """Rank-weighted demand per session: a first choice weighs the most."""
    demand: Counter[int] = Counter()
    for advisor in advisors:
        total = len(advisor.preferences)
        for index, session_id in enumerate(advisor.preferences):
            demand[session_id] += max(1, total - index)
    return dict(demand)


class MasterScheduleBuilder:
    """Decides once per run which session occupies which room in which slot.

    The resulting instances are the menu the search later fills with
    attendees; the search never adds or removes instances.
    """

    def __init__(
        self,
        *,
        sessions: dict[int, Session],
        rooms: dict[str, Room],
        slots: dict[int, TimeSlot],
        advisors: list[Advisor],
        capacity: CapacityResolver,
        rules: VenueRules,
        rng: random.Random,
    ) -> None:
        self.sessions = sessions
        self.rooms = rooms
        self.slots = slots
        self.advisors = advisors
        self.capacity = capacity
        self.rules = rules
        self.random = rng

        self.session_slot_ids = sorted(slot.id for slot in slots.values() if slot.is_session)
        if not self.session_slot_ids:
            raise SchedulerError(message="No SESSION time slots configured for scheduling")

        self.instances: list[ScheduledInstance] = []
        self.used: dict[int, set[str]] = defaultdict(set)
        self.plenary_slot_ids: set[int] = set()
        self._counter = 0

    def build(self, fixed_placements: Iterable[FixedPlacement] = ()) -> list[ScheduledInstance]:
        self._load_fixed(fixed_placements)
        self._place_plenary()
        self._place_mandatory()
        self._place_electives()
        logger.info(
            "MASTER SCHEDULE BUILT | instances=%s | plenary=%s | mandatory=%s | elective=%s",
            len(self.instances),
            self._count_by_type(SessionType.PLENARY),
            self._count_by_type(SessionType.MANDATORY),
            self._count_by_type(SessionType.ELECTIVE),
        )
        return self.instances

    def _count_by_type(self, session_type: SessionType) -> int:
        return sum(1 for item in self.instances if self.sessions[item.session_id].type is session_type)

    def _is_used(self, slot_id: int, room_id: str) -> bool:
        return room_id in self.used.get(slot_id, set())

    def _place(self, session_id: int, slot_id: int, room_id: str) -> ScheduledInstance:
        self._counter += 1
        instance = ScheduledInstance(
            instance_id=f"inst-{self._counter}",
            session_id=session_id,
            slot_id=slot_id,
            room_id=room_id,
        )
        self.instances.append(instance)
        self.used[slot_id].add(room_id)
        if self.sessions[session_id].type is SessionType.PLENARY:
            self.plenary_slot_ids.add(slot_id)
        return instance

    def _placed_count(self, session_id: int) -> int:
        return sum(1 for item in self.instances if item.session_id == session_id)

    def _rooms_largest_first(self) -> list[Room]:
        # Equal capacities are shuffled so retries explore different menus.
        rooms = [room for room in self.rooms.values() if room.id != self.rules.plenary_room_id]
        tiebreak = {room.id: self.random.random() for room in rooms}
        return sorted(rooms, key=lambda room: (-room.capacity, tiebreak[room.id]))

    def _load_fixed(self, fixed_placements: Iterable[FixedPlacement]) -> None:
        for placement in fixed_placements:
            details = {
                "session_id": placement.session_id,
                "slot_id": placement.slot_id,
                "room_id": placement.room_id,
            }
            if placement.session_id not in self.sessions:
                raise SchedulerError(message="Fixed placement references an unknown session", details=details)
            if placement.room_id not in self.rooms:
                raise SchedulerError(message="Fixed placement references an unknown room", details=details)
            slot = self.slots.get(placement.slot_id)
            if slot is None or not slot.is_session:
                raise SchedulerError(message="Fixed placement must target a SESSION slot", details=details)
            if self._is_used(placement.slot_id, placement.room_id):
                raise SchedulerError(message="Two fixed placements share a room and slot", details=details)
            self._place(placement.session_id, placement.slot_id, placement.room_id)

    def _plenary_room(self) -> Room | None:
        preferred = self.rooms.get(self.rules.plenary_room_id)
        if preferred is not None:
            return preferred
        candidates = sorted(self.rooms.values(), key=lambda room: (-room.capacity, room.id))
        return candidates[0] if candidates else None

    def _place_plenary(self) -> None:
        designated = self.rules.plenary_slot_id
        slot_order = list(self.session_slot_ids)
        if designated in slot_order:
            slot_order.remove(designated)
            slot_order.insert(0, designated)

        plenaries = sorted(
            (session for session in self.sessions.values() if session.type is SessionType.PLENARY),
            key=lambda item: item.id,
        )
        for session in plenaries:
            if self._placed_count(session.id) > 0:
                continue
            room = self._plenary_room()
            if room is None:
                return
            for slot_id in slot_order:
                if slot_id in self.plenary_slot_ids or self._is_used(slot_id, room.id):
                    continue
                if self.capacity.capacity(room.id, session.id, slot_id) <= 0:
                    continue
                self._place(session.id, slot_id, room.id)
                break
            else:
                logger.warning("PLENARY NOT PLACED | session_id=%s | room_id=%s", session.id, room.id)

    def _place_mandatory(self) -> None:
        allowed_days = set(self.rules.mandatory_days)
        candidate_slots = [
            slot_id
            for slot_id in self.session_slot_ids
            if self.slots[slot_id].day in allowed_days and slot_id not in self.plenary_slot_ids
        ]
        rooms = self._rooms_largest_first()
        mandatory_load: Counter[int] = Counter(
            item.slot_id for item in self.instances if self.sessions[item.session_id].type is SessionType.MANDATORY
        )

        mandatory = sorted(
            (session for session in self.sessions.values() if session.type is SessionType.MANDATORY),
            key=lambda item: item.id,
        )
        for session in mandatory:
            needed = session.repeats - self._placed_count(session.id)
            while needed > 0:
                placed_this_sweep = 0
                own_slots = {item.slot_id for item in self.instances if item.session_id == session.id}
                sweep = sorted(candidate_slots, key=lambda slot_id: (slot_id in own_slots, mandatory_load[slot_id], slot_id))
                for slot_id in sweep:
                    if needed <= 0:
                        break
                    room = next(
                        (
                            room
                            for room in rooms
                            if not self._is_used(slot_id, room.id)
                            and self.capacity.capacity(room.id, session.id, slot_id) > 0
                        ),
                        None,
                    )
                    if room is None:
                        continue
                    self._place(session.id, slot_id, room.id)
                    mandatory_load[slot_id] += 1
                    placed_this_sweep += 1
                    needed -= 1
                if placed_this_sweep == 0:
                    logger.warning(
                        "MANDATORY UNDER-PLACED | session_id=%s | missing_instances=%s",
                        session.id,
                        needed,
                    )
                    break

    def _place_electives(self) -> None:
        electives = [session for session in self.sessions.values() if session.type is SessionType.ELECTIVE]
        if not electives:
            return
        demand = preference_demand(self.advisors)
        regular_rooms = [room for room in self.rooms.values() if room.id != self.rules.plenary_room_id]
        seats_per_instance = max(1.0, sum(room.capacity for room in regular_rooms) / max(1, len(regular_rooms)))
        targets = {
            session.id: math.ceil(
                max(session.repeats, math.ceil(demand.get(session.id, 0) / seats_per_instance))
                * self.rules.elective_overprovision
            )
            for session in electives
        }
        placed: Counter[int] = Counter(
            item.session_id for item in self.instances if item.session_id in targets
        )

        for slot_id in self.session_slot_ids:
            if slot_id in self.plenary_slot_ids:
                continue
            slot = self.slots[slot_id]
            offered = {item.session_id for item in self.instances if item.slot_id == slot_id}
            for room in self._rooms_largest_first():
                if self._is_used(slot_id, room.id):
                    continue
                candidates = [
                    session
                    for session in electives
                    if placed[session.id] < targets[session.id]
                    and session.constraints.allows(slot)
                    and self.capacity.capacity(room.id, session.id, slot_id) > 0
                ]
                if not candidates:
                    continue
                tiebreak = {session.id: self.random.random() for session in candidates}
                best = min(
                    candidates,
                    key=lambda session: (
                        -(demand.get(session.id, 0) / (placed[session.id] + 1)),
                        session.id in offered,
                        tiebreak[session.id],
                    ),
                )
                self._place(best.id, slot_id, room.id)
                placed[best.id] += 1
                offered.add(best.id)


def generate_master_schedule(
    *,
    sessions: dict[int, Session],
    rooms: dict[str, Room],
    slots: dict[int, TimeSlot],
    advisors: list[Advisor],
    capacity: CapacityResolver,
    rules: VenueRules,
    rng: random.Random,
    fixed_placements: Iterable[FixedPlacement] = (),
) -> list[ScheduledInstance]:
    builder = MasterScheduleBuilder(
        sessions=sessions,
        rooms=rooms,
        slots=slots,
        advisors=advisors,
        capacity=capacity,
        rules=rules,
        rng=rng,
    )
    return builder.build(fixed_placements)
