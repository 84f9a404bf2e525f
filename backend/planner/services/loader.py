from __future__ import annotations

import logging

from planner.core.exceptions import ResourceNotFoundError
from planner.schemas.schedule import (
    AdvisorPayload,
    AgendaEntry,
    FixedPlacementPayload,
    RoomPayload,
    SessionPayload,
    TimeSlotPayload,
)
from planner.services.domain import (
    Advisor,
    FixedPlacement,
    Room,
    ScheduleResult,
    ScheduleStats,
    Session,
    SessionConstraints,
    SessionType,
    SlotKind,
    TimeSlot,
)
from planner.services.evolution_scheduler import ConferenceScheduler
from planner.services.venue import default_rooms, default_time_slots

logger = logging.getLogger(__name__)


def rooms_from_payload(payload: list[RoomPayload] | None) -> list[Room]:
    if payload is None:
        return default_rooms()
    return [Room(id=item.id, name=item.name, capacity=item.capacity) for item in payload]


def time_slots_from_payload(payload: list[TimeSlotPayload] | None) -> list[TimeSlot]:
    if payload is None:
        return default_time_slots()
    return [
        TimeSlot(id=item.id, day=item.day, label=item.label, kind=SlotKind(item.kind), title=item.title)
        for item in payload
    ]


def sessions_from_payload(payload: list[SessionPayload]) -> list[Session]:
    sessions: list[Session] = []
    for item in payload:
        constraints = SessionConstraints()
        if item.constraints is not None:
            constraints = SessionConstraints(
                allowed_days=tuple(item.constraints.allowedDays),
                time_of_day=item.constraints.timeOfDay,
            )
        sessions.append(
            Session(
                id=item.id,
                title=item.title,
                speaker=item.speaker,
                type=SessionType(item.type),
                repeats=item.repeats,
                constraints=constraints,
                duration_minutes=item.durationMinutes,
                speaker_advisor_ids=tuple(item.speakerAdvisorIds) if item.speakerAdvisorIds is not None else None,
            )
        )
    return sessions


def advisors_from_payload(payload: list[AdvisorPayload], known_session_ids: set[int]) -> list[Advisor]:
    advisors: list[Advisor] = []
    for item in payload:
        unknown = [session_id for session_id in item.preferences if session_id not in known_session_ids]
        if unknown:
            logger.warning(
                "DROPPING UNKNOWN PREFERENCES | advisor_id=%s | session_ids=%s",
                item.id,
                unknown,
            )
        preferences = tuple(session_id for session_id in item.preferences if session_id in known_session_ids)
        advisors.append(Advisor(id=item.id, name=item.name, preferences=preferences))
    return advisors


def placements_from_payload(payload: list[FixedPlacementPayload]) -> list[FixedPlacement]:
    return [FixedPlacement(session_id=item.sessionId, slot_id=item.slotId, room_id=item.roomId) for item in payload]


def stats_document(stats: ScheduleStats) -> dict:
    return {
        "mandatoryMetPercent": round(stats.mandatory_met_percent, 2),
        "capacityViolations": stats.capacity_violations,
        "unfilledSlots": stats.unfilled_slots,
        "preferenceMetPercent": round(stats.preference_met_percent, 2),
        "duplicatesFound": stats.duplicates_found,
        "minSizeViolations": stats.min_size_violations,
        "averagePreferenceRank": round(stats.average_preference_rank, 3),
    }


def result_document(scheduler: ConferenceScheduler, result: ScheduleResult) -> dict:
    """JSON-ready snapshot of a finished run, enough to rebuild agendas later."""
    presenters = scheduler.context.presenters
    instances = [
        {
            "instanceId": instance.instance_id,
            "sessionId": instance.session_id,
            "sessionTitle": scheduler.sessions[instance.session_id].title,
            "slotId": instance.slot_id,
            "roomId": instance.room_id,
            "capacity": scheduler.capacity.for_instance(instance),
            "attendees": sorted(instance.attendees),
            "presenters": sorted(presenters.presenters_at(instance.slot_id, instance.room_id)),
        }
        for instance in sorted(result.instances, key=lambda item: (item.slot_id, item.room_id))
    ]
    obligations = [
        {
            "advisorId": obligation.advisor_id,
            "sessionId": obligation.session_id,
            "slotId": obligation.slot_id,
            "roomId": obligation.room_id,
        }
        for obligation in result.obligations
    ]
    return {
        "instances": instances,
        "obligations": obligations,
        "advisors": [
            {"id": advisor.id, "name": advisor.name, "preferences": list(advisor.preferences)}
            for advisor in result.advisors
        ],
        "session_slots": [
            {"id": slot.id, "day": slot.day, "label": slot.label}
            for slot in sorted(scheduler.slots.values(), key=lambda item: (item.day, item.id))
            if slot.is_session
        ],
    }


def build_agenda(document: dict, advisor_id: int) -> tuple[str, list[AgendaEntry]]:
    """Per-slot agenda of one advisor from a stored result document."""
    advisor = next((item for item in document.get("advisors", []) if item["id"] == advisor_id), None)
    if advisor is None:
        raise ResourceNotFoundError("Advisor", str(advisor_id))

    preferences: list[int] = advisor.get("preferences", [])
    by_slot = {
        instance["slotId"]: instance
        for instance in document.get("instances", [])
        if advisor_id in instance.get("attendees", [])
    }
    entries: list[AgendaEntry] = []
    for slot in document.get("session_slots", []):
        instance = by_slot.get(slot["id"])
        if instance is None:
            entries.append(AgendaEntry(slotId=slot["id"], day=slot["day"], label=slot["label"]))
            continue
        session_id = instance["sessionId"]
        entries.append(
            AgendaEntry(
                slotId=slot["id"],
                day=slot["day"],
                label=slot["label"],
                sessionId=session_id,
                sessionTitle=instance.get("sessionTitle"),
                roomId=instance["roomId"],
                presenting=advisor_id in instance.get("presenters", []),
                preferenceRank=preferences.index(session_id) + 1 if session_id in preferences else None,
            )
        )
    return advisor["name"], entries
