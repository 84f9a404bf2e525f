from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
import random

from planner.core.exceptions import GenomeConsistencyError
from planner.services.capacity import CapacityResolver
from planner.services.domain import (
    Advisor,
    Gene,
    Room,
    ScheduledInstance,
    ScheduleStats,
    Session,
    TimeSlot,
)
from planner.services.presenters import PresenterIndex

Genome = dict[int, dict[int, Gene]]


@dataclass
class PlanningContext:
    """Frozen inputs shared by every individual of one run."""

    rooms: dict[str, Room]
    slots: dict[int, TimeSlot]
    sessions: dict[int, Session]
    advisors: list[Advisor]
    menu: list[ScheduledInstance]
    capacity: CapacityResolver
    presenters: PresenterIndex
    session_slot_ids: list[int] = field(init=False)
    required_sessions: list[Session] = field(init=False)
    advisors_by_id: dict[int, Advisor] = field(init=False)
    menu_keys_by_slot: dict[int, list[tuple[int, str]]] = field(init=False)
    menu_keys_by_session: dict[int, list[tuple[int, str]]] = field(init=False)

    def __post_init__(self) -> None:
        self.session_slot_ids = sorted(slot.id for slot in self.slots.values() if slot.is_session)
        self.required_sessions = [
            session for session in sorted(self.sessions.values(), key=lambda item: item.id) if session.requires_attendance
        ]
        self.advisors_by_id = {advisor.id: advisor for advisor in self.advisors}
        self.menu_keys_by_slot = defaultdict(list)
        self.menu_keys_by_session = defaultdict(list)
        for instance in self.menu:
            self.menu_keys_by_slot[instance.slot_id].append(instance.key)
            self.menu_keys_by_session[instance.session_id].append(instance.key)

    @property
    def elective_slot_budget(self) -> int:
        return max(0, len(self.session_slot_ids) - len(self.required_sessions))


class Individual:
    """One candidate schedule: a genome plus the instances it materializes.

    ``add_gene`` and ``remove_gene`` are the only writers of either view, so
    ``genome[advisor][slot]`` and the attendee lists never drift apart.
    """

    def __init__(self, context: PlanningContext) -> None:
        self.context = context
        self.genome: Genome = {advisor.id: {} for advisor in context.advisors}
        self.instances: list[ScheduledInstance] = [instance.empty_copy() for instance in context.menu]
        self._by_key: dict[tuple[int, str], ScheduledInstance] = {instance.key: instance for instance in self.instances}
        self.fitness: float = float("-inf")
        self.stats = ScheduleStats()

    @classmethod
    def from_genome(cls, context: PlanningContext, genome: Genome) -> "Individual":
        individual = cls(context)
        for advisor_id, genes in genome.items():
            for gene in genes.values():
                individual.add_gene(advisor_id, individual.instance_for(gene))
        return individual

    def clone(self) -> "Individual":
        twin = Individual.from_genome(self.context, self.genome)
        twin.fitness = self.fitness
        twin.stats = replace(self.stats)
        return twin

    # -- lookups ---------------------------------------------------------

    def instance_at(self, slot_id: int, room_id: str) -> ScheduledInstance | None:
        return self._by_key.get((slot_id, room_id))

    def instance_for(self, gene: Gene) -> ScheduledInstance:
        instance = self._by_key.get((gene.slot_id, gene.room_id))
        if instance is None or instance.session_id != gene.session_id:
            raise GenomeConsistencyError(
                message="Gene references an instance that is not on the menu",
                details={"session_id": gene.session_id, "slot_id": gene.slot_id, "room_id": gene.room_id},
            )
        return instance

    def instances_in_slot(self, slot_id: int) -> list[ScheduledInstance]:
        return [self._by_key[key] for key in self.context.menu_keys_by_slot.get(slot_id, [])]

    def instances_of_session(self, session_id: int) -> list[ScheduledInstance]:
        return [self._by_key[key] for key in self.context.menu_keys_by_session.get(session_id, [])]

    def genes_of(self, advisor_id: int) -> dict[int, Gene]:
        return self.genome.setdefault(advisor_id, {})

    def gene_at(self, advisor_id: int, slot_id: int) -> Gene | None:
        return self.genome.get(advisor_id, {}).get(slot_id)

    def is_busy(self, advisor_id: int, slot_id: int) -> bool:
        return slot_id in self.genome.get(advisor_id, {})

    def attends_session(self, advisor_id: int, session_id: int, *, exclude_slot: int | None = None) -> bool:
        for slot_id, gene in self.genome.get(advisor_id, {}).items():
            if slot_id != exclude_slot and gene.session_id == session_id:
                return True
        return False

    def attended_sessions(self, advisor_id: int) -> set[int]:
        return {gene.session_id for gene in self.genome.get(advisor_id, {}).values()}

    # -- seats -----------------------------------------------------------

    def capacity_of(self, instance: ScheduledInstance) -> int:
        return self.context.capacity.for_instance(instance)

    def seated(self, instance: ScheduledInstance) -> int:
        """Attendees that consume a seat; presenters of the instance do not."""
        presenters = self.context.presenters.presenters_at(instance.slot_id, instance.room_id)
        if not presenters:
            return len(instance.attendees)
        return sum(1 for advisor_id in instance.attendees if advisor_id not in presenters)

    def free_seats(self, instance: ScheduledInstance) -> int:
        return self.capacity_of(instance) - self.seated(instance)

    def has_space(self, instance: ScheduledInstance) -> bool:
        return self.free_seats(instance) > 0

    def overfull_instances(self) -> list[ScheduledInstance]:
        return [instance for instance in self.instances if self.free_seats(instance) < 0]

    # -- mutation API ----------------------------------------------------

    def remove_gene(self, advisor_id: int, slot_id: int) -> Gene | None:
        genes = self.genome.get(advisor_id)
        if not genes or slot_id not in genes:
            return None
        gene = genes.pop(slot_id)
        instance = self._by_key.get((slot_id, gene.room_id))
        if instance is not None and advisor_id in instance.attendees:
            instance.attendees.remove(advisor_id)
        return gene

    def add_gene(self, advisor_id: int, instance: ScheduledInstance) -> None:
        if self._by_key.get(instance.key) is not instance:
            raise GenomeConsistencyError(
                message="Instance does not belong to this individual",
                details={"instance_id": instance.instance_id, "advisor_id": advisor_id},
            )
        self.remove_gene(advisor_id, instance.slot_id)
        self.genes_of(advisor_id)[instance.slot_id] = instance.gene()
        if advisor_id not in instance.attendees:
            instance.attendees.append(advisor_id)

    def enforce_presenter_obligations(self) -> int:
        changed = 0
        for obligation in self.context.presenters:
            instance = self.instance_at(obligation.slot_id, obligation.room_id)
            if instance is None or instance.session_id != obligation.session_id:
                continue
            if self.gene_at(obligation.advisor_id, obligation.slot_id) != instance.gene():
                self.add_gene(obligation.advisor_id, instance)
                changed += 1
        return changed

    # -- invariants ------------------------------------------------------

    def fingerprint(self) -> tuple[tuple[int, int, str], ...]:
        return tuple(
            sorted(
                (advisor_id, slot_id, gene.room_id)
                for advisor_id, genes in self.genome.items()
                for slot_id, gene in genes.items()
            )
        )

    def verify_consistency(self) -> None:
        expected = materialize_attendees(self.context, self.genome)
        for instance in self.instances:
            counts = Counter(instance.attendees)
            repeated = [advisor_id for advisor_id, count in counts.items() if count > 1]
            if repeated:
                raise GenomeConsistencyError(
                    message="Instance lists an attendee more than once",
                    details={"instance_id": instance.instance_id, "advisor_ids": repeated},
                )
            if sorted(instance.attendees) != expected.get(instance.key, []):
                raise GenomeConsistencyError(
                    message="Instance attendees diverge from the genome",
                    details={
                        "instance_id": instance.instance_id,
                        "attendees": sorted(instance.attendees),
                        "genome": expected.get(instance.key, []),
                    },
                )


def materialize_attendees(context: PlanningContext, genome: Genome) -> dict[tuple[int, str], list[int]]:
    """Attendee lists (sorted) that ``genome`` implies for every menu instance."""
    menu = {instance.key: instance for instance in context.menu}
    attendees: dict[tuple[int, str], list[int]] = defaultdict(list)
    for advisor_id, genes in genome.items():
        for slot_id, gene in genes.items():
            key = (gene.slot_id, gene.room_id)
            instance = menu.get(key)
            if gene.slot_id != slot_id or instance is None or instance.session_id != gene.session_id:
                raise GenomeConsistencyError(
                    message="Gene references an instance that is not on the menu",
                    details={"advisor_id": advisor_id, "slot_id": slot_id, "room_id": gene.room_id},
                )
            attendees[key].append(advisor_id)
    return {key: sorted(values) for key, values in attendees.items()}


def random_individual(context: PlanningContext, rng: random.Random) -> Individual:
    """Greedy randomized construction honoring seats as it goes."""
    individual = Individual(context)
    presenters = context.presenters
    advisors = list(context.advisors)
    rng.shuffle(advisors)

    for advisor in advisors:
        picked: set[int] = set()
        for obligation in presenters.obligations_for(advisor.id):
            instance = individual.instance_at(obligation.slot_id, obligation.room_id)
            if instance is None:
                continue
            individual.add_gene(advisor.id, instance)
            picked.add(obligation.session_id)

        for session in context.required_sessions:
            if session.id in picked:
                continue
            candidates = sorted(
                (
                    instance
                    for instance in individual.instances_of_session(session.id)
                    if not individual.is_busy(advisor.id, instance.slot_id)
                ),
                key=lambda item: item.slot_id,
            )
            choice = next((instance for instance in candidates if individual.has_space(instance)), None)
            if choice is not None:
                individual.add_gene(advisor.id, choice)
                picked.add(session.id)

        for slot_id in context.session_slot_ids:
            if individual.is_busy(advisor.id, slot_id):
                continue
            options = [
                instance
                for instance in individual.instances_in_slot(slot_id)
                if instance.session_id not in picked
                and not presenters.presents_session(advisor.id, instance.session_id)
                and individual.has_space(instance)
            ]
            if not options:
                continue
            preferred = [instance for instance in options if advisor.preference_rank(instance.session_id) is not None]
            if preferred:
                choice = min(preferred, key=lambda item: advisor.preference_rank(item.session_id))
            else:
                choice = rng.choice(options)
            individual.add_gene(advisor.id, choice)
            picked.add(choice.session_id)

    return individual


def crossover(parent_a: Individual, parent_b: Individual, rng: random.Random) -> Individual:
    """Uniform gene-level crossover; parents are only read."""
    context = parent_a.context
    child_genome: Genome = {}
    for advisor in context.advisors:
        genes_a = parent_a.genome.get(advisor.id, {})
        genes_b = parent_b.genome.get(advisor.id, {})
        child_genes: dict[int, Gene] = {}
        for slot_id in sorted(set(genes_a) | set(genes_b)):
            gene_a = genes_a.get(slot_id)
            gene_b = genes_b.get(slot_id)
            if gene_a is not None and gene_b is not None:
                child_genes[slot_id] = gene_a if rng.random() < 0.5 else gene_b
            else:
                child_genes[slot_id] = gene_a if gene_a is not None else gene_b
        child_genome[advisor.id] = child_genes
    child = Individual.from_genome(context, child_genome)
    child.enforce_presenter_obligations()
    return child
