"""Typer command handlers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel

from core.orchestrator import Orchestrator, RuntimeBundle
from memory.memory_manager import SupersessionError


def _runtime(tenant: str, config_path: Path | None = None) -> RuntimeBundle:
    return Orchestrator(config_path=config_path).build(tenant_id=tenant)


def _echo(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def _record(record: BaseModel, with_embedding: bool = False) -> dict[str, Any]:
    data = record.model_dump(mode="json")
    if not with_embedding and "embedding" in data:
        data["embedding"] = None if data["embedding"] is None else f"<{len(data['embedding'])} dims>"
    return data


def _require(found: bool, message: str) -> None:
    if not found:
        typer.echo(message, err=True)
        raise typer.Exit(code=1)


def memory_add(
    tenant: str,
    agent: str,
    content: str,
    memory_type: str,
    source: str,
    subject: str | None,
    confidence: float | None,
    config_path: Path | None = None,
) -> None:
    """Store a new memory."""
    bundle = _runtime(tenant, config_path)
    record = bundle.engine.create_memory(
        agent_id=agent,
        content=content,
        memory_type=memory_type,
        source=source,
        subject=subject,
        confidence=confidence,
    )
    _echo(_record(record))


def memory_show(tenant: str, memory_id: str, events: bool, config_path: Path | None = None) -> None:
    """Show one memory, optionally with its lifecycle events."""
    bundle = _runtime(tenant, config_path)
    record = bundle.engine.get_memory(memory_id)
    _require(record is not None, f"Memory not found: {memory_id}")
    data: dict[str, Any] = {"memory": _record(record)}
    if events:
        data["events"] = bundle.engine.list_events(memory_id=memory_id)
    _echo(data)


def memory_list(
    tenant: str,
    agent: str | None,
    memory_type: str | None,
    include_inactive: bool,
    limit: int,
    config_path: Path | None = None,
) -> None:
    """List memories."""
    bundle = _runtime(tenant, config_path)
    records = bundle.engine.list_memories(
        agent_id=agent,
        memory_type=memory_type,
        include_inactive=include_inactive,
        limit=limit,
    )
    _echo([_record(record) for record in records])


def memory_explain(tenant: str, memory_id: str, config_path: Path | None = None) -> None:
    """Show the confidence breakdown of a stored memory."""
    bundle = _runtime(tenant, config_path)
    factors = bundle.engine.calculate_confidence(memory_id)
    _require(factors is not None, f"Memory not found: {memory_id}")
    record = bundle.engine.get_memory(memory_id)
    _echo({"memory_id": memory_id, "stored_confidence": record.confidence if record else None, **factors.model_dump()})


def memory_reinforce(tenant: str, memory_id: str, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _require(bundle.engine.reinforce_memory(memory_id), f"Memory not found: {memory_id}")
    _echo(_record(bundle.engine.get_memory(memory_id)))


def memory_contradict(tenant: str, memory_id: str, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _require(bundle.engine.contradict_memory(memory_id), f"Memory not found: {memory_id}")
    _echo(_record(bundle.engine.get_memory(memory_id)))


def memory_supersede(tenant: str, old_id: str, new_id: str, config_path: Path | None = None) -> None:
    """Retire a memory in favour of its replacement."""
    bundle = _runtime(tenant, config_path)
    try:
        retired = bundle.engine.supersede_memory(old_id, new_id)
    except SupersessionError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _require(retired, f"Memory not found: {old_id}")
    _echo({"superseded": old_id, "superseded_by": new_id})


def memory_merge(tenant: str, keep_id: str, merge_id: str, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    survivor = bundle.engine.merge_memories(keep_id, merge_id)
    _require(survivor is not None, f"Both memories must exist and be active: {keep_id}, {merge_id}")
    _echo(_record(survivor))


def memory_review(
    tenant: str,
    agent: str,
    threshold: float | None,
    limit: int | None,
    config_path: Path | None = None,
) -> None:
    """List low-confidence memories for human review."""
    bundle = _runtime(tenant, config_path)
    records = bundle.engine.get_low_confidence_memories(agent_id=agent, threshold=threshold, limit=limit)
    _echo([_record(record) for record in records])


def memory_search(
    tenant: str,
    query: str,
    agent: str | None,
    limit: int | None,
    config_path: Path | None = None,
) -> None:
    bundle = _runtime(tenant, config_path)
    ranked = bundle.engine.retrieve(query, agent_id=agent, limit=limit)
    _echo(
        [
            {
                "score": round(item.score, 4),
                "similarity": round(item.similarity, 4),
                "lexical": round(item.lexical, 4),
                "memory": _record(item.memory),
            }
            for item in ranked
        ]
    )


def memory_context(
    tenant: str,
    query: str,
    agent: str | None,
    max_chars: int | None,
    record_usage: bool,
    config_path: Path | None = None,
) -> None:
    """Print the context block that would be injected into a prompt."""
    bundle = _runtime(tenant, config_path)
    context = bundle.engine.build_context(query, agent_id=agent, max_chars=max_chars, record_usage=record_usage)
    typer.echo(context.text)


def memory_stats(tenant: str, agent: str | None, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _echo(bundle.engine.get_memory_stats(agent_id=agent))


def maintenance_decay(tenant: str, agent: str | None, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _echo({"decayed": bundle.engine.apply_age_decay(agent_id=agent)})


def maintenance_recalculate(tenant: str, agent: str | None, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _echo({"recalculated": bundle.engine.recalculate_all_confidence(agent_id=agent)})


def maintenance_prune(
    tenant: str,
    agent: str | None,
    threshold: float | None,
    config_path: Path | None = None,
) -> None:
    bundle = _runtime(tenant, config_path)
    _echo({"pruned": bundle.engine.deactivate_low_confidence_memories(threshold=threshold, agent_id=agent)})


def maintenance_expire(tenant: str, agent: str | None, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _echo({"expired": bundle.engine.cleanup_expired_memories(agent_id=agent)})


def maintenance_consolidate(
    tenant: str,
    agent: str | None,
    mode: str,
    recalculate: bool | None,
    config_path: Path | None = None,
) -> None:
    """Run consolidation cycle."""
    bundle = _runtime(tenant, config_path)
    try:
        result = bundle.engine.consolidate(mode=mode, agent_id=agent, recalculate=recalculate)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    _echo(result)


def maintenance_tick(tenant: str, force: str | None, config_path: Path | None = None) -> None:
    """Run due maintenance tasks, or one task immediately with ``force``."""
    bundle = _runtime(tenant, config_path)
    if force:
        try:
            _echo({force: bundle.scheduler.run_task(force)})
        except KeyError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1) from exc
        return
    _echo(bundle.scheduler.run_due())


def maintenance_tasks(tenant: str, config_path: Path | None = None) -> None:
    bundle = _runtime(tenant, config_path)
    _echo(bundle.scheduler.list_tasks())


def config_show(config_path: Path | None = None) -> None:
    """Show effective runtime config."""
    bundle = _runtime("default", config_path)
    _echo({"raw": bundle.config, "engine": bundle.engine_config.model_dump()})


def _json_safe(payload: object) -> object:
    """Convert datetimes to strings for JSON output."""
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_json_safe(v) for v in payload]
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
