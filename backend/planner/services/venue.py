from __future__ import annotations

from planner.services.domain import Room, SlotKind, TimeSlot

DEFAULT_ROOMS: tuple[Room, ...] = (
    Room(id="kinderdijk", name="Kinderdijk", capacity=27),
    Room(id="haagse", name="Haagse Schouw", capacity=27),
    Room(id="princeville", name="Princeville", capacity=27),
    Room(id="witte", name="De Witte", capacity=27),
    Room(id="leeuw2", name="Gouden Leeuw 2", capacity=45),
    Room(id="leeuw3", name="Gouden Leeuw 3", capacity=35),
    Room(id="molenhoek", name="Molenhoek (Plenair)", capacity=200),
)

_SESSION_LABELS = (
    "08.15 - 09.15",
    "09.30 - 10.15",
    "10.30 - 11.15",
    "11.30 - 12.15",
    "13.15 - 14.00",
    "14.15 - 15.00",
    "15.15 - 16.00",
    "16.15 - 17.00",
)

# (id, day, label, kind, title); SESSION rows carry no title.
_SLOT_ROWS: tuple[tuple[int, int, str, SlotKind, str | None], ...] = (
    (1, 1, "08.00 - 08.10", SlotKind.OTHER, "Welkom"),
    (2, 1, _SESSION_LABELS[0], SlotKind.SESSION, None),
    (3, 1, "09.15 - 09.30", SlotKind.BREAK, "Pauze"),
    (4, 1, _SESSION_LABELS[1], SlotKind.SESSION, None),
    (5, 1, "10.15 - 10.30", SlotKind.BREAK, "Pauze"),
    (6, 1, _SESSION_LABELS[2], SlotKind.SESSION, None),
    (7, 1, "11.15 - 11.30", SlotKind.BREAK, "Pauze"),
    (8, 1, _SESSION_LABELS[3], SlotKind.SESSION, None),
    (9, 1, "12.15 - 13.15", SlotKind.MEAL, "Lunch"),
    (10, 1, _SESSION_LABELS[4], SlotKind.SESSION, None),
    (11, 1, "14.00 - 14.15", SlotKind.BREAK, "Pauze"),
    (12, 1, _SESSION_LABELS[5], SlotKind.SESSION, None),
    (13, 1, "15.00 - 15.15", SlotKind.BREAK, "Pauze"),
    (14, 1, _SESSION_LABELS[6], SlotKind.SESSION, None),
    (15, 1, "16.00 - 16.15", SlotKind.BREAK, "Pauze"),
    (16, 1, _SESSION_LABELS[7], SlotKind.SESSION, None),
    (17, 1, "17.00 - 17.45", SlotKind.MEAL, "Aperitief"),
    (18, 1, "17.45 - 19.15", SlotKind.MEAL, "Dinerbuffet"),
    (19, 1, "20.00 - 21.15", SlotKind.OTHER, "Avondprogramma"),
    (20, 1, "21.15 - 01.00", SlotKind.OTHER, "Bar Businessfoyer"),
    (21, 2, "07.00 - 08.00", SlotKind.MEAL, "Ontbijt"),
    (22, 2, "08.00 - 08.10", SlotKind.OTHER, "Plenaire start in zaal Molenhoek"),
    (23, 2, "08.10 - 08.15", SlotKind.OTHER, "Deelnemers naar zaal"),
    (24, 2, _SESSION_LABELS[0], SlotKind.SESSION, None),
    (25, 2, "09.15 - 09.30", SlotKind.BREAK, "Pauze"),
    (26, 2, _SESSION_LABELS[1], SlotKind.SESSION, None),
    (27, 2, "10.15 - 10.30", SlotKind.BREAK, "Pauze"),
    (28, 2, _SESSION_LABELS[2], SlotKind.SESSION, None),
    (29, 2, "11.15 - 11.30", SlotKind.BREAK, "Pauze"),
    (30, 2, _SESSION_LABELS[3], SlotKind.SESSION, None),
    (31, 2, "12.15 - 13.15", SlotKind.MEAL, "Lunch"),
    (32, 2, _SESSION_LABELS[4], SlotKind.SESSION, None),
    (33, 2, "14.00 - 14.15", SlotKind.BREAK, "Pauze"),
    (34, 2, _SESSION_LABELS[5], SlotKind.SESSION, None),
    (35, 2, "15.00 - 15.15", SlotKind.BREAK, "Pauze"),
    (36, 2, _SESSION_LABELS[6], SlotKind.SESSION, None),
    (37, 2, "16.00 - 16.15", SlotKind.BREAK, "Pauze"),
    (38, 2, _SESSION_LABELS[7], SlotKind.SESSION, None),
    (39, 2, "17.15 - 18.30", SlotKind.MEAL, "Dinerbuffet"),
    (40, 2, "18.30", SlotKind.OTHER, "Vertrek"),
)

DEFAULT_TIME_SLOTS: tuple[TimeSlot, ...] = tuple(
    TimeSlot(id=slot_id, day=day, label=label, kind=kind, title=title)
    for slot_id, day, label, kind, title in _SLOT_ROWS
)


def default_rooms() -> list[Room]:
    return list(DEFAULT_ROOMS)


def default_time_slots() -> list[TimeSlot]:
    return list(DEFAULT_TIME_SLOTS)
