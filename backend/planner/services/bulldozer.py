from __future__ import annotations

from collections import Counter
import logging

from planner.services.domain import Advisor, ScheduledInstance, SessionType
from planner.services.genome import Individual

logger = logging.getLogger(__name__)

UNRANKED = 1_000_000
SETTLE_ROUND_LIMIT = 10


class Bulldozer:
    """Deterministic greedy repair of one individual, applied in place.

    Phases run in a fixed order: presenter obligations, mandatory and
    plenary attendance, empty slots, duplicate sessions, overfull rooms and
    finally undersized elective groups. Every edit goes through
    ``Individual.add_gene`` / ``Individual.remove_gene``.
    """

    def __init__(self, individual: Individual, *, min_group_size: int = 0, backfill_small_groups: bool = False) -> None:
        self.individual = individual
        self.context = individual.context
        self.presenters = individual.context.presenters
        self.min_group_size = min_group_size
        self.backfill_small_groups = backfill_small_groups

    def run(self) -> None:
        ind = self.individual
        ind.enforce_presenter_obligations()
        self._force_required_attendance()
        # Deduplication, rebalancing and backfill can reopen slots; settle until a round changes nothing.
        for _ in range(SETTLE_ROUND_LIMIT):
            before = ind.fingerprint()
            self._fill_holes()
            self._deduplicate()
            self._rebalance_overfull()
            if self.backfill_small_groups and self.min_group_size > 0:
                self._backfill_small_groups()
            if ind.fingerprint() == before:
                break

    # -- helpers ---------------------------------------------------------

    def _rank(self, advisor: Advisor | None, session_id: int) -> int:
        if advisor is None:
            return UNRANKED
        rank = advisor.preference_rank(session_id)
        return UNRANKED if rank is None else rank

    def _is_required(self, session_id: int) -> bool:
        session = self.context.sessions.get(session_id)
        return session is not None and session.requires_attendance

    def _is_elective(self, session_id: int) -> bool:
        session = self.context.sessions.get(session_id)
        return session is not None and session.type is SessionType.ELECTIVE

    def _can_audit(self, advisor_id: int, instance: ScheduledInstance, *, exclude_slot: int | None = None) -> bool:
        """True when joining ``instance`` would not repeat a session for the advisor."""
        if self.presenters.presents_session(advisor_id, instance.session_id):
            return False
        return not self.individual.attends_session(advisor_id, instance.session_id, exclude_slot=exclude_slot)

    def _best_open_instance(self, advisor: Advisor, slot_id: int, *, skip: ScheduledInstance | None = None) -> ScheduledInstance | None:
        ind = self.individual
        options = [
            instance
            for instance in ind.instances_in_slot(slot_id)
            if instance is not skip and ind.has_space(instance) and self._can_audit(advisor.id, instance)
        ]
        if not options:
            return None
        return min(options, key=lambda item: (self._rank(advisor, item.session_id), -ind.free_seats(item)))

    # -- phase 2 ---------------------------------------------------------

    def _force_required_attendance(self) -> None:
        ind = self.individual
        for advisor in self.context.advisors:
            for session in self.context.required_sessions:
                if ind.attends_session(advisor.id, session.id):
                    continue
                instances = sorted(
                    ind.instances_of_session(session.id),
                    key=lambda item: (-ind.free_seats(item), item.slot_id),
                )
                if not instances:
                    continue
                target = self._required_target(advisor.id, instances)
                if target is not None:
                    ind.add_gene(advisor.id, target)

    def _required_target(self, advisor_id: int, instances: list[ScheduledInstance]) -> ScheduledInstance | None:
        ind = self.individual
        for instance in instances:
            if not ind.is_busy(advisor_id, instance.slot_id) and ind.has_space(instance):
                return instance

        for instance in instances:
            if self.presenters.is_presenting(advisor_id, instance.slot_id) or not ind.has_space(instance):
                continue
            current = ind.gene_at(advisor_id, instance.slot_id)
            if current is None or self._is_elective(current.session_id):
                return instance

        for instance in instances:
            if self.presenters.is_presenting(advisor_id, instance.slot_id):
                continue
            current = ind.gene_at(advisor_id, instance.slot_id)
            if current is None or not self._is_required(current.session_id):
                return instance
        return None

    # -- phase 3 ---------------------------------------------------------

    def _fill_holes(self) -> None:
        ind = self.individual
        for advisor in self.context.advisors:
            for slot_id in self.context.session_slot_ids:
                if ind.is_busy(advisor.id, slot_id) or self.presenters.is_presenting(advisor.id, slot_id):
                    continue
                options = [item for item in ind.instances_in_slot(slot_id) if self._can_audit(advisor.id, item)]
                if not options:
                    continue
                with_space = [item for item in options if ind.has_space(item)]
                if with_space:
                    preferred = [item for item in with_space if advisor.preference_rank(item.session_id) is not None]
                    if preferred:
                        choice = min(preferred, key=lambda item: advisor.preference_rank(item.session_id))
                    else:
                        choice = with_space[0]
                else:
                    # Over capacity on purpose; the rebalance phase and fitness pressure resolve it.
                    choice = min(options, key=lambda item: ind.seated(item) - ind.capacity_of(item))
                ind.add_gene(advisor.id, choice)

    # -- phase 4 ---------------------------------------------------------

    def _deduplicate(self) -> None:
        ind = self.individual
        for advisor in self.context.advisors:
            genes = ind.genes_of(advisor.id)
            seen: set[int] = set()
            audience_slots: list[int] = []
            for slot_id in sorted(genes):
                obligation = self.presenters.obligation_for(advisor.id, slot_id)
                if obligation is not None and obligation.session_id == genes[slot_id].session_id:
                    seen.add(obligation.session_id)
                else:
                    audience_slots.append(slot_id)

            vacated = False
            for slot_id in audience_slots:
                session_id = genes[slot_id].session_id
                if session_id in seen:
                    ind.remove_gene(advisor.id, slot_id)
                    vacated = True
                else:
                    seen.add(session_id)

            if not vacated:
                continue
            for slot_id in self.context.session_slot_ids:
                if ind.is_busy(advisor.id, slot_id) or self.presenters.is_presenting(advisor.id, slot_id):
                    continue
                choice = self._best_open_instance(advisor, slot_id)
                if choice is not None:
                    ind.add_gene(advisor.id, choice)

    # -- phase 5 ---------------------------------------------------------

    def _rebalance_overfull(self) -> None:
        ind = self.individual
        for instance in ind.overfull_instances():
            while ind.free_seats(instance) < 0:
                presenters_here = self.presenters.presenters_at(instance.slot_id, instance.room_id)
                join_order = {advisor_id: index for index, advisor_id in enumerate(instance.attendees)}
                candidates = [advisor_id for advisor_id in instance.attendees if advisor_id not in presenters_here]
                if not candidates:
                    break
                candidates.sort(
                    key=lambda advisor_id: (
                        self._rank(self.context.advisors_by_id.get(advisor_id), instance.session_id),
                        join_order[advisor_id],
                    ),
                    reverse=True,
                )
                if self._is_required(instance.session_id):
                    if not self._relocate_required(candidates, instance):
                        break
                    continue
                self._relocate_elective(candidates, instance)

    def _relocate_elective(self, candidates: list[int], instance: ScheduledInstance) -> None:
        ind = self.individual
        for advisor_id in candidates:
            advisor = self.context.advisors_by_id.get(advisor_id)
            if advisor is None:
                continue
            destination = self._elective_destination(advisor, instance)
            if destination is not None:
                ind.add_gene(advisor_id, destination)
                return
        # Nobody fits elsewhere in this slot; an empty slot costs less than an overflow seat.
        ind.remove_gene(candidates[0], instance.slot_id)

    def _elective_destination(self, advisor: Advisor, instance: ScheduledInstance) -> ScheduledInstance | None:
        ind = self.individual
        options = [
            other
            for other in ind.instances_in_slot(instance.slot_id)
            if other is not instance
            and ind.has_space(other)
            and self._can_audit(advisor.id, other, exclude_slot=instance.slot_id)
        ]
        if not options:
            return None
        preferred = [other for other in options if advisor.preference_rank(other.session_id) is not None]
        if preferred:
            return min(preferred, key=lambda other: (advisor.preference_rank(other.session_id), -ind.free_seats(other)))
        return max(options, key=lambda other: ind.free_seats(other))

    def _relocate_required(self, candidates: list[int], instance: ScheduledInstance) -> bool:
        ind = self.individual
        for advisor_id in candidates:
            advisor = self.context.advisors_by_id.get(advisor_id)
            if advisor is None:
                continue
            options = []
            for other in ind.instances_of_session(instance.session_id):
                if other is instance or other.slot_id == instance.slot_id or not ind.has_space(other):
                    continue
                if self.presenters.is_presenting(advisor_id, other.slot_id):
                    continue
                current = ind.gene_at(advisor_id, other.slot_id)
                if current is not None and self._is_required(current.session_id):
                    continue
                options.append(other)
            if not options:
                continue
            destination = max(options, key=lambda other: (ind.free_seats(other), -other.slot_id))
            ind.remove_gene(advisor_id, instance.slot_id)
            ind.add_gene(advisor_id, destination)
            refill = self._best_open_instance(advisor, instance.slot_id, skip=instance)
            if refill is not None:
                ind.add_gene(advisor_id, refill)
            return True
        return False

    # -- phase 6 ---------------------------------------------------------

    def _backfill_small_groups(self) -> None:
        # Each dissolution empties a populated group and never populates a new one, so this terminates.
        ind = self.individual
        dissolved = True
        while dissolved:
            dissolved = False
            small = [
                instance
                for instance in ind.instances
                if self._is_elective(instance.session_id) and 0 < ind.seated(instance) < self.min_group_size
            ]
            small.sort(key=lambda item: (ind.seated(item), item.slot_id, item.room_id))
            for instance in small:
                if not 0 < ind.seated(instance) < self.min_group_size:
                    continue
                plan = self._dissolution_plan(instance)
                if plan is None:
                    continue
                for advisor_id, destination in plan:
                    ind.add_gene(advisor_id, destination)
                dissolved = True
                logger.debug(
                    "Dissolved undersized group | instance_id=%s | moved=%s",
                    instance.instance_id,
                    len(plan),
                )

    def _dissolution_plan(self, instance: ScheduledInstance) -> list[tuple[int, ScheduledInstance]] | None:
        ind = self.individual
        presenters_here = self.presenters.presenters_at(instance.slot_id, instance.room_id)
        reserved: Counter[tuple[int, str]] = Counter()
        plan: list[tuple[int, ScheduledInstance]] = []
        for advisor_id in list(instance.attendees):
            if advisor_id in presenters_here:
                continue
            advisor = self.context.advisors_by_id.get(advisor_id)
            if advisor is None:
                return None
            options = [
                other
                for other in ind.instances_in_slot(instance.slot_id)
                if other is not instance
                and ind.seated(other) > 0
                and ind.free_seats(other) - reserved[other.key] > 0
                and self._can_audit(advisor_id, other, exclude_slot=instance.slot_id)
            ]
            if not options:
                return None
            destination = min(
                options,
                key=lambda other: (self._rank(advisor, other.session_id), -(ind.free_seats(other) - reserved[other.key])),
            )
            reserved[destination.key] += 1
            plan.append((advisor_id, destination))
        return plan


def refine_with_bulldozer(individual: Individual, *, min_group_size: int = 0, backfill_small_groups: bool = False) -> None:
    Bulldozer(
        individual,
        min_group_size=min_group_size,
        backfill_small_groups=backfill_small_groups,
    ).run()
