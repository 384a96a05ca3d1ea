"""Interval scheduler for recurring memory maintenance with persisted state."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import select

from core.event_bus import TASK_COMPLETED, TASK_FAILED, EventBus
from memory.schemas import ScheduledTaskRecord
from memory.stores.sql_store import SQLStore
from memory.types.record import ensure_utc

logger = logging.getLogger("ame.scheduler")

TaskHandler = Callable[[datetime], Any]


@dataclass
class ScheduledTask:
    """A registered maintenance job."""

    name: str
    handler: TaskHandler
    interval: timedelta
    enabled: bool = True


class TaskScheduler:
    """Runs registered tasks when their interval has elapsed.

    Run state lives in the ``scheduled_tasks`` table so a restarted process
    picks up where the last one stopped. A failed run does not advance
    ``last_run_at``, so the task is due again on the next tick.
    """

    def __init__(self, sql_store: SQLStore, tenant_id: str, event_bus: EventBus | None = None) -> None:
        self.sql_store = sql_store
        self.tenant_id = tenant_id
        self.event_bus = event_bus
        self._tasks: dict[str, ScheduledTask] = {}

    def register(
        self,
        name: str,
        handler: TaskHandler,
        interval: timedelta,
        enabled: bool = True,
    ) -> ScheduledTask:
        """Register a task and sync its interval and enabled flag to storage."""
        if interval.total_seconds() <= 0:
            raise ValueError(f"Task interval must be positive: {name}")
        task = ScheduledTask(name=name, handler=handler, interval=interval, enabled=enabled)
        self._tasks[name] = task
        with self.sql_store.session() as sess:
            row = sess.get(ScheduledTaskRecord, (self.tenant_id, name))
            if row is None:
                row = ScheduledTaskRecord(tenant_id=self.tenant_id, name=name, last_result={}, last_error="")
                sess.add(row)
            row.interval_seconds = int(interval.total_seconds())
            row.enabled = enabled
        return task

    def list_tasks(self) -> list[dict[str, Any]]:
        """Persisted state of every task registered in this process."""
        with self.sql_store.session() as sess:
            rows = sess.scalars(
                select(ScheduledTaskRecord).where(
                    ScheduledTaskRecord.tenant_id == self.tenant_id,
                    ScheduledTaskRecord.name.in_(list(self._tasks)),
                )
            ).all()
            return [
                {
                    "name": row.name,
                    "enabled": row.enabled,
                    "interval_seconds": row.interval_seconds,
                    "last_run_at": ensure_utc(row.last_run_at),
                    "last_status": row.last_status,
                    "last_result": dict(row.last_result or {}),
                    "last_error": row.last_error or "",
                }
                for row in sorted(rows, key=lambda r: r.name)
            ]

    def due_tasks(self, now: datetime | None = None) -> list[str]:
        """Names of enabled tasks whose interval has elapsed, in registration order."""
        current = ensure_utc(now) or datetime.now(UTC)
        with self.sql_store.session() as sess:
            last_runs = {
                row.name: ensure_utc(row.last_run_at)
                for row in sess.scalars(
                    select(ScheduledTaskRecord).where(ScheduledTaskRecord.tenant_id == self.tenant_id)
                ).all()
            }
        due: list[str] = []
        for name, task in self._tasks.items():
            if not task.enabled:
                continue
            last_run = last_runs.get(name)
            if last_run is None or last_run + task.interval <= current:
                due.append(name)
        return due

    def run_due(self, now: datetime | None = None) -> dict[str, dict[str, Any]]:
        """Run every due task. A failure is recorded and the remaining tasks still run."""
        current = ensure_utc(now) or datetime.now(UTC)
        return {name: self.run_task(name, now=current) for name in self.due_tasks(now=current)}

    def run_task(self, name: str, now: datetime | None = None) -> dict[str, Any]:
        """Run one task immediately, regardless of its schedule."""
        task = self._tasks.get(name)
        if task is None:
            raise KeyError(f"Unknown scheduled task: {name}")
        current = ensure_utc(now) or datetime.now(UTC)
        try:
            result = task.handler(current)
        except Exception as exc:
            logger.exception("Scheduled task %s failed for tenant %s.", name, self.tenant_id)
            self._record(name, status="failed", error=str(exc) or exc.__class__.__name__)
            outcome: dict[str, Any] = {"status": "failed", "error": str(exc) or exc.__class__.__name__}
            self._emit(TASK_FAILED, name, outcome)
            return outcome

        payload = result if isinstance(result, dict) else {"affected": result}
        self._record(name, status="success", result=payload, ran_at=current)
        logger.info("Scheduled task %s finished for tenant %s: %s", name, self.tenant_id, payload)
        outcome = {"status": "success", "result": payload}
        self._emit(TASK_COMPLETED, name, outcome)
        return outcome

    def _record(
        self,
        name: str,
        status: str,
        result: dict[str, Any] | None = None,
        error: str = "",
        ran_at: datetime | None = None,
    ) -> None:
        with self.sql_store.session() as sess:
            row = sess.get(ScheduledTaskRecord, (self.tenant_id, name))
            if row is None:
                return
            row.last_status = status
            row.last_error = error
            if result is not None:
                row.last_result = result
            if ran_at is not None:
                row.last_run_at = ran_at

    def _emit(self, event_name: str, task_name: str, outcome: dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.emit(event_name, {"tenant_id": self.tenant_id, "task": task_name, **outcome})
