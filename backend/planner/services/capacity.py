from __future__ import annotations

from planner.schemas.solver import VenueRules
from planner.services.domain import Room, ScheduledInstance, Session, SessionType, TimeSlot


class CapacityResolver:
    """Effective seat capacity of a (room, session, slot) triple.

    Rules are evaluated in order and the first match wins:

    1. The plenary room seats only the plenary session.
    2. The closed room is unavailable on the closed day.
    3. Mandatory sessions may over-pack small rooms up to the overflow size.
    4. Everything else gets the room's nominal capacity.

    Every capacity check in the engine goes through this class so the
    exception rules cannot be bypassed by reading ``Room.capacity`` directly.
    """

    def __init__(
        self,
        *,
        rooms: dict[str, Room],
        slots: dict[int, TimeSlot],
        sessions: dict[int, Session],
        rules: VenueRules,
    ) -> None:
        self.rooms = rooms
        self.slots = slots
        self.sessions = sessions
        self.rules = rules
        self._cache: dict[tuple[str, int, int], int] = {}

    def is_plenary_session(self, session: Session | None) -> bool:
        if session is None:
            return False
        if self.rules.plenary_session_id is not None:
            return session.id == self.rules.plenary_session_id
        return session.type is SessionType.PLENARY

    def capacity(self, room_id: str, session_id: int, slot_id: int) -> int:
        key = (room_id, session_id, slot_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = self._resolve(room_id, session_id, slot_id)
        self._cache[key] = value
        return value

    def for_instance(self, instance: ScheduledInstance) -> int:
        return self.capacity(instance.room_id, instance.session_id, instance.slot_id)

    def _resolve(self, room_id: str, session_id: int, slot_id: int) -> int:
        room = self.rooms.get(room_id)
        slot = self.slots.get(slot_id)
        if room is None or slot is None:
            return 0
        session = self.sessions.get(session_id)
        rules = self.rules

        if room_id == rules.plenary_room_id:
            return rules.plenary_capacity if self.is_plenary_session(session) else 0

        if rules.closed_room_id is not None and room_id == rules.closed_room_id and slot.day == rules.closed_day:
            return 0

        if (
            session is not None
            and session.type is SessionType.MANDATORY
            and room.capacity <= rules.small_room_threshold
        ):
            return rules.small_room_threshold + rules.mandatory_overflow_delta

        return max(0, room.capacity)
