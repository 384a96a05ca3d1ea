"""Top-level application orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from core.event_bus import WILDCARD, EventBus
from core.policy_runtime import database_url, ensure_runtime_dirs, load_effective_config
from core.scheduler import TaskScheduler
from embeddings.embedder_factory import build_embedder
from memory.config import EngineConfig
from memory.engine import MemoryEngine
from memory.stores.sql_store import SQLStore

logger = logging.getLogger("ame.events")


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    engine_config: EngineConfig
    sql_store: SQLStore
    event_bus: EventBus
    engine: MemoryEngine
    scheduler: TaskScheduler


def log_event(event_name: str, payload: dict[str, Any]) -> None:
    logger.debug("%s %s", event_name, payload)


class Orchestrator:
    """Creates and wires runtime components for CLI and service use."""

    def __init__(self, root: Path | None = None, config_path: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self.config_path = config_path

    def build(self, tenant_id: str = "default") -> RuntimeBundle:
        config = load_effective_config(self.root, extra_path=self.config_path)
        paths = ensure_runtime_dirs(self.root, config)
        engine_config = EngineConfig.from_mapping(config)

        sql_store = SQLStore(url=database_url(config), db_path=paths["db_path"])
        sql_store.create_all()

        event_bus = EventBus()
        event_bus.subscribe(WILDCARD, log_event)
        engine = MemoryEngine(
            sql_store=sql_store,
            tenant_id=tenant_id,
            config=engine_config,
            embedder=build_embedder(engine_config.embeddings),
            event_bus=event_bus,
        )
        scheduler = TaskScheduler(sql_store=sql_store, tenant_id=tenant_id, event_bus=event_bus)
        register_maintenance_tasks(scheduler, engine)

        return RuntimeBundle(
            config=config,
            engine_config=engine_config,
            sql_store=sql_store,
            event_bus=event_bus,
            engine=engine,
            scheduler=scheduler,
        )


def register_maintenance_tasks(scheduler: TaskScheduler, engine: MemoryEngine) -> None:
    """Register the recurring maintenance jobs with intervals from config."""
    handlers = {
        "age_decay": lambda now: engine.apply_age_decay(now=now),
        "expired_cleanup": lambda now: engine.cleanup_expired_memories(now=now),
        "low_confidence_prune": lambda now: engine.deactivate_low_confidence_memories(now=now),
        "consolidation": lambda now: engine.consolidate(mode="deep", now=now),
        "confidence_recalculation": lambda now: engine.recalculate_all_confidence(now=now),
    }
    tasks_cfg = engine.config.scheduler.tasks
    for name, handler in handlers.items():
        task_cfg = tasks_cfg.get(name)
        if task_cfg is None:
            continue
        scheduler.register(
            name,
            handler,
            interval=timedelta(hours=task_cfg.interval_hours),
            enabled=task_cfg.enabled,
        )
