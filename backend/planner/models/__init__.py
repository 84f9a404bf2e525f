from planner.models.schedule_run import ScheduleRun, ScheduleRunStatus  # noqa: F401
