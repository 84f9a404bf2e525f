from __future__ import annotations

from collections import defaultdict
import logging
import re
from typing import Iterable

from planner.services.domain import Advisor, PresenterObligation, ScheduledInstance, Session

logger = logging.getLogger(__name__)

SPEAKER_SEPARATOR_PATTERN = re.compile(r"[/&+,]|\b(?:and|en)\b", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(value: str) -> str:
    return _NON_ALNUM.sub("", value.lower())


def split_speakers(speaker: str, *, min_length: int = 1) -> list[str]:
    """Split a free-text speaker field into normalized name fragments.

    "J. Vos / A. de Boer" -> ["jvos", "adeboer"]; fragments shorter than
    ``min_length`` after normalization are dropped.
    """
    if not speaker or not speaker.strip():
        return []
    fragments: list[str] = []
    for part in SPEAKER_SEPARATOR_PATTERN.split(speaker):
        normalized = normalize_name(part or "")
        if len(normalized) >= max(1, min_length) and normalized not in fragments:
            fragments.append(normalized)
    return fragments


def match_speaker_advisors(
    speaker: str,
    advisors: Iterable[Advisor],
    *,
    min_fragment_length: int = 3,
) -> list[int]:
    """Advisor ids named in ``speaker``, in roster order.

    A fragment matches an advisor when either normalized string contains the
    other. When a fragment equals some advisor's normalized name exactly, only
    the exact matches count for that fragment. Advisor names shorter than
    ``min_fragment_length`` never match.
    """
    fragments = split_speakers(speaker, min_length=min_fragment_length)
    if not fragments:
        return []
    roster = [(advisor.id, normalize_name(advisor.name)) for advisor in advisors]
    roster = [(advisor_id, name) for advisor_id, name in roster if len(name) >= max(1, min_fragment_length)]

    matched: set[int] = set()
    for fragment in fragments:
        exact = {advisor_id for advisor_id, name in roster if name == fragment}
        if exact:
            matched.update(exact)
            continue
        matched.update(advisor_id for advisor_id, name in roster if fragment in name or name in fragment)
    return [advisor_id for advisor_id, _ in roster if advisor_id in matched]


class PresenterIndex:
    """Read-only lookup of presenter obligations built once per run."""

    def __init__(self, obligations: Iterable[PresenterObligation]) -> None:
        self.by_slot: dict[int, list[PresenterObligation]] = defaultdict(list)
        self._by_advisor_slot: dict[tuple[int, int], PresenterObligation] = {}
        self._by_instance: dict[tuple[int, str], set[int]] = defaultdict(set)
        self._presented_sessions: dict[int, set[int]] = defaultdict(set)
        for obligation in obligations:
            key = (obligation.advisor_id, obligation.slot_id)
            if key in self._by_advisor_slot:
                logger.warning(
                    "PRESENTER DOUBLE BOOKING | advisor_id=%s | slot_id=%s | kept_session=%s | dropped_session=%s",
                    obligation.advisor_id,
                    obligation.slot_id,
                    self._by_advisor_slot[key].session_id,
                    obligation.session_id,
                )
                continue
            self.by_slot[obligation.slot_id].append(obligation)
            self._by_advisor_slot[key] = obligation
            self._by_instance[(obligation.slot_id, obligation.room_id)].add(obligation.advisor_id)
            self._presented_sessions[obligation.advisor_id].add(obligation.session_id)

    def __iter__(self):
        for slot_id in sorted(self.by_slot):
            yield from self.by_slot[slot_id]

    def __len__(self) -> int:
        return len(self._by_advisor_slot)

    def obligation_for(self, advisor_id: int, slot_id: int) -> PresenterObligation | None:
        return self._by_advisor_slot.get((advisor_id, slot_id))

    def is_presenting(self, advisor_id: int, slot_id: int) -> bool:
        return (advisor_id, slot_id) in self._by_advisor_slot

    def presenters_at(self, slot_id: int, room_id: str) -> set[int]:
        return self._by_instance.get((slot_id, room_id), set())

    def presents_session(self, advisor_id: int, session_id: int) -> bool:
        return session_id in self._presented_sessions.get(advisor_id, set())

    def obligations_for(self, advisor_id: int) -> list[PresenterObligation]:
        return [
            obligation
            for (owner_id, _), obligation in sorted(self._by_advisor_slot.items())
            if owner_id == advisor_id
        ]

    def presenting_slots(self, advisor_id: int) -> set[int]:
        return {slot_id for (owner_id, slot_id) in self._by_advisor_slot if owner_id == advisor_id}


def build_presenter_obligations(
    sessions: Iterable[Session],
    advisors: list[Advisor],
    instances: Iterable[ScheduledInstance],
    *,
    min_fragment_length: int = 3,
) -> PresenterIndex:
    sessions_by_id = {session.id: session for session in sessions}
    known_advisors = {advisor.id for advisor in advisors}
    presenters_by_session: dict[int, list[int]] = {}

    for session in sessions_by_id.values():
        if session.speaker_advisor_ids is not None:
            presenters = [advisor_id for advisor_id in session.speaker_advisor_ids if advisor_id in known_advisors]
        else:
            presenters = match_speaker_advisors(
                session.speaker,
                advisors,
                min_fragment_length=min_fragment_length,
            )
            if session.speaker and not presenters:
                logger.debug("No advisor matched speaker text | session_id=%s | speaker=%r", session.id, session.speaker)
        presenters_by_session[session.id] = presenters

    obligations: list[PresenterObligation] = []
    seen: set[tuple[int, int, int]] = set()
    for instance in sorted(instances, key=lambda item: (item.slot_id, item.room_id)):
        for advisor_id in presenters_by_session.get(instance.session_id, []):
            key = (instance.slot_id, advisor_id, instance.session_id)
            if key in seen:
                continue
            seen.add(key)
            obligations.append(
                PresenterObligation(
                    advisor_id=advisor_id,
                    session_id=instance.session_id,
                    slot_id=instance.slot_id,
                    room_id=instance.room_id,
                )
            )
    return PresenterIndex(obligations)
