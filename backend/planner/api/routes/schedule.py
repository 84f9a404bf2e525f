import logging
from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from planner.api.deps import get_db
from planner.core.config import get_settings
from planner.models.schedule_run import ScheduleRun, ScheduleRunStatus
from planner.schemas.schedule import (
    AdvisorAgendaOut,
    RoomPayload,
    ScheduleRunOut,
    ScheduleRunSummary,
    SolveScheduleRequest,
    SolveScheduleResponse,
    TimeSlotPayload,
    VenueOut,
)
from planner.schemas.solver import SolverSettings, VenueRules
from planner.services.evolution_scheduler import ConferenceScheduler
from planner.services.loader import (
    advisors_from_payload,
    build_agenda,
    placements_from_payload,
    result_document,
    rooms_from_payload,
    sessions_from_payload,
    stats_document,
    time_slots_from_payload,
)
from planner.services.venue import default_rooms, default_time_slots

router = APIRouter()
logger = logging.getLogger(__name__)


def load_solver_settings() -> SolverSettings:
    settings = get_settings()
    population = max(2, settings.solver_population_size)
    return SolverSettings(
        population_size=population,
        elite_count=min(SolverSettings.model_fields["elite_count"].default, population - 1),
        tournament_size=min(SolverSettings.model_fields["tournament_size"].default, population),
        max_generations=settings.solver_max_generations,
        time_limit_seconds=settings.solver_time_limit_seconds,
    )


def _get_run_or_404(db: Session, run_id: str) -> ScheduleRun:
    run = db.get(ScheduleRun, run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Schedule run not found")
    return run


@router.get("/schedule/venue", response_model=VenueOut)
def get_default_venue() -> VenueOut:
    return VenueOut(
        rooms=[RoomPayload(id=room.id, name=room.name, capacity=room.capacity) for room in default_rooms()],
        time_slots=[
            TimeSlotPayload(id=slot.id, day=slot.day, label=slot.label, kind=slot.kind.value, title=slot.title)
            for slot in default_time_slots()
        ],
    )


@router.post("/schedule/solve", response_model=SolveScheduleResponse)
def solve_schedule(
    payload: SolveScheduleRequest,
    db: Session = Depends(get_db),
) -> SolveScheduleResponse:
    started = perf_counter()
    solver_settings = payload.settings_override or load_solver_settings()
    rules = payload.rules_override or VenueRules()
    logger.info(
        "SCHEDULE SOLVE START | advisors=%s | sessions=%s | fixed=%s | population=%s | generations=%s | seed=%s",
        len(payload.advisors),
        len(payload.sessions),
        len(payload.fixed_placements),
        solver_settings.population_size,
        solver_settings.max_generations,
        solver_settings.random_seed,
    )
    try:
        sessions = sessions_from_payload(payload.sessions)
        scheduler = ConferenceScheduler(
            rooms=rooms_from_payload(payload.rooms),
            time_slots=time_slots_from_payload(payload.time_slots),
            sessions=sessions,
            advisors=advisors_from_payload(payload.advisors, {session.id for session in sessions}),
            fixed_placements=placements_from_payload(payload.fixed_placements),
            settings=solver_settings,
            rules=rules,
        )
        result = scheduler.run()
        document = result_document(scheduler, result)
        stats = stats_document(result.stats)

        run = ScheduleRun(
            status=ScheduleRunStatus.perfect if result.perfect else ScheduleRunStatus.best_effort,
            fitness=result.fitness,
            stats=stats,
            result=document,
            inputs_summary={
                "rooms": len(scheduler.rooms),
                "session_slots": len(scheduler.context.session_slot_ids),
                "sessions": len(scheduler.sessions),
                "advisors": len(scheduler.advisors),
                "instances": len(result.instances),
                "fixed_placements": len(payload.fixed_placements),
            },
            generations=result.generations,
            runtime_ms=result.runtime_ms,
            random_seed=solver_settings.random_seed,
        )
        db.add(run)
        db.commit()
        db.refresh(run)

        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.info(
            "SCHEDULE SOLVE COMPLETE | run_id=%s | status=%s | fitness=%.1f | generations=%s | runtime_ms=%s | wall_ms=%s",
            run.id,
            run.status.value,
            result.fitness,
            result.generations,
            result.runtime_ms,
            elapsed_ms,
        )
        return SolveScheduleResponse(
            run_id=run.id,
            status=run.status,
            perfect=result.perfect,
            fitness=result.fitness,
            stats=stats,
            instances=document["instances"],
            obligations=document["obligations"],
            generations=result.generations,
            runtime_ms=result.runtime_ms,
            settings_used=solver_settings,
        )
    except Exception:
        db.rollback()
        elapsed_ms = int((perf_counter() - started) * 1000)
        logger.exception(
            "SCHEDULE SOLVE FAILED | advisors=%s | sessions=%s | wall_ms=%s",
            len(payload.advisors),
            len(payload.sessions),
            elapsed_ms,
        )
        raise


@router.get("/schedule/runs", response_model=list[ScheduleRunSummary])
def list_schedule_runs(
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[ScheduleRunSummary]:
    runs = db.execute(select(ScheduleRun).order_by(ScheduleRun.created_at.desc()).limit(limit)).scalars().all()
    return [ScheduleRunSummary.model_validate(run) for run in runs]


@router.get("/schedule/runs/{run_id}", response_model=ScheduleRunOut)
def get_schedule_run(run_id: str, db: Session = Depends(get_db)) -> ScheduleRunOut:
    run = _get_run_or_404(db, run_id)
    summary = ScheduleRunSummary.model_validate(run)
    return ScheduleRunOut(
        **summary.model_dump(),
        inputs_summary=run.inputs_summary or {},
        instances=(run.result or {}).get("instances", []),
        obligations=(run.result or {}).get("obligations", []),
    )


@router.get("/schedule/runs/{run_id}/advisors/{advisor_id}", response_model=AdvisorAgendaOut)
def get_advisor_agenda(run_id: str, advisor_id: int, db: Session = Depends(get_db)) -> AdvisorAgendaOut:
    run = _get_run_or_404(db, run_id)
    name, entries = build_agenda(run.result or {}, advisor_id)
    return AdvisorAgendaOut(run_id=run.id, advisor_id=advisor_id, name=name, entries=entries)
