"""CLI entrypoint for the agent memory engine."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Confidence-scored agent memory engine")
memory_app = typer.Typer(help="Memory commands")
maintenance_app = typer.Typer(help="Decay, pruning and consolidation commands")
config_app = typer.Typer(help="Configuration commands")

TENANT = typer.Option("default", "--tenant", "-t", help="Tenant scope")
AGENT = typer.Option(None, "--agent", "-a", help="Restrict to one agent")


def _config_path(ctx: typer.Context) -> Path | None:
    return (ctx.obj or {}).get("config_path")


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Path | None = typer.Option(None, "--config", help="Extra YAML config merged over the defaults"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"config_path": config}


@memory_app.command("add")
def memory_add_cmd(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Memory text content"),
    agent: str = typer.Option(..., "--agent", "-a", help="Owning agent"),
    memory_type: str = typer.Option("fact", "--type", help="fact, preference, correction, skill, episodic, pattern or context"),
    source: str = typer.Option("told", help="How the memory was acquired"),
    subject: str | None = typer.Option(None, help="Optional subject label"),
    confidence: float | None = typer.Option(None, min=0.0, max=1.0, help="Override the calculated confidence"),
    tenant: str = TENANT,
) -> None:
    """Add a new memory."""
    commands.memory_add(
        tenant=tenant,
        agent=agent,
        content=content,
        memory_type=memory_type,
        source=source,
        subject=subject,
        confidence=confidence,
        config_path=_config_path(ctx),
    )


@memory_app.command("show")
def memory_show_cmd(
    ctx: typer.Context,
    memory_id: str,
    events: bool = typer.Option(False, "--events", help="Include lifecycle events"),
    tenant: str = TENANT,
) -> None:
    """Show one memory."""
    commands.memory_show(tenant=tenant, memory_id=memory_id, events=events, config_path=_config_path(ctx))


@memory_app.command("list")
def memory_list_cmd(
    ctx: typer.Context,
    agent: str | None = AGENT,
    memory_type: str | None = typer.Option(None, "--type"),
    include_inactive: bool = typer.Option(False, "--all", help="Include inactive memories"),
    limit: int = typer.Option(20, min=1, max=500),
    tenant: str = TENANT,
) -> None:
    """List memories, newest first."""
    commands.memory_list(
        tenant=tenant,
        agent=agent,
        memory_type=memory_type,
        include_inactive=include_inactive,
        limit=limit,
        config_path=_config_path(ctx),
    )


@memory_app.command("explain")
def memory_explain_cmd(ctx: typer.Context, memory_id: str, tenant: str = TENANT) -> None:
    """Show the confidence breakdown of a memory."""
    commands.memory_explain(tenant=tenant, memory_id=memory_id, config_path=_config_path(ctx))


@memory_app.command("reinforce")
def memory_reinforce_cmd(ctx: typer.Context, memory_id: str, tenant: str = TENANT) -> None:
    """Record that a memory was confirmed."""
    commands.memory_reinforce(tenant=tenant, memory_id=memory_id, config_path=_config_path(ctx))


@memory_app.command("contradict")
def memory_contradict_cmd(ctx: typer.Context, memory_id: str, tenant: str = TENANT) -> None:
    """Record that a memory was contradicted."""
    commands.memory_contradict(tenant=tenant, memory_id=memory_id, config_path=_config_path(ctx))


@memory_app.command("supersede")
def memory_supersede_cmd(ctx: typer.Context, old_id: str, new_id: str, tenant: str = TENANT) -> None:
    """Replace a memory with a newer one."""
    commands.memory_supersede(tenant=tenant, old_id=old_id, new_id=new_id, config_path=_config_path(ctx))


@memory_app.command("merge")
def memory_merge_cmd(ctx: typer.Context, keep_id: str, merge_id: str, tenant: str = TENANT) -> None:
    """Merge one memory into another."""
    commands.memory_merge(tenant=tenant, keep_id=keep_id, merge_id=merge_id, config_path=_config_path(ctx))


@memory_app.command("review")
def memory_review_cmd(
    ctx: typer.Context,
    agent: str = typer.Option(..., "--agent", "-a"),
    threshold: float | None = typer.Option(None, min=0.0, max=1.0),
    limit: int | None = typer.Option(None, min=1, max=50),
    tenant: str = TENANT,
) -> None:
    """List low-confidence memories for review."""
    commands.memory_review(
        tenant=tenant,
        agent=agent,
        threshold=threshold,
        limit=limit,
        config_path=_config_path(ctx),
    )


@memory_app.command("search")
def memory_search_cmd(
    ctx: typer.Context,
    query: str,
    agent: str | None = AGENT,
    limit: int | None = typer.Option(None, min=1, max=100),
    tenant: str = TENANT,
) -> None:
    """Rank memories against a query."""
    commands.memory_search(tenant=tenant, query=query, agent=agent, limit=limit, config_path=_config_path(ctx))


@memory_app.command("context")
def memory_context_cmd(
    ctx: typer.Context,
    query: str,
    agent: str | None = AGENT,
    max_chars: int | None = typer.Option(None, min=1),
    record_usage: bool = typer.Option(True, "--record-usage/--no-record-usage"),
    tenant: str = TENANT,
) -> None:
    """Build the prompt context block for a query."""
    commands.memory_context(
        tenant=tenant,
        query=query,
        agent=agent,
        max_chars=max_chars,
        record_usage=record_usage,
        config_path=_config_path(ctx),
    )


@memory_app.command("stats")
def memory_stats_cmd(ctx: typer.Context, agent: str | None = AGENT, tenant: str = TENANT) -> None:
    """Show memory counts and average confidence."""
    commands.memory_stats(tenant=tenant, agent=agent, config_path=_config_path(ctx))


@maintenance_app.command("decay")
def maintenance_decay_cmd(ctx: typer.Context, agent: str | None = AGENT, tenant: str = TENANT) -> None:
    """Apply age decay now."""
    commands.maintenance_decay(tenant=tenant, agent=agent, config_path=_config_path(ctx))


@maintenance_app.command("recalculate")
def maintenance_recalculate_cmd(ctx: typer.Context, agent: str | None = AGENT, tenant: str = TENANT) -> None:
    """Recompute every confidence from current weights."""
    commands.maintenance_recalculate(tenant=tenant, agent=agent, config_path=_config_path(ctx))


@maintenance_app.command("prune")
def maintenance_prune_cmd(
    ctx: typer.Context,
    agent: str | None = AGENT,
    threshold: float | None = typer.Option(None, min=0.0, max=1.0),
    tenant: str = TENANT,
) -> None:
    """Deactivate low-confidence memories."""
    commands.maintenance_prune(tenant=tenant, agent=agent, threshold=threshold, config_path=_config_path(ctx))


@maintenance_app.command("expire")
def maintenance_expire_cmd(ctx: typer.Context, agent: str | None = AGENT, tenant: str = TENANT) -> None:
    """Deactivate expired memories."""
    commands.maintenance_expire(tenant=tenant, agent=agent, config_path=_config_path(ctx))


@maintenance_app.command("consolidate")
def maintenance_consolidate_cmd(
    ctx: typer.Context,
    agent: str | None = AGENT,
    mode: str = typer.Option("light", "--mode", help="Consolidation mode: light or deep"),
    recalculate: bool | None = typer.Option(
        None, "--recalculate/--no-recalculate", help="Recompute confidence first (deep only); defaults to config"
    ),
    tenant: str = TENANT,
) -> None:
    """Run memory consolidation."""
    commands.maintenance_consolidate(
        tenant=tenant,
        agent=agent,
        mode=mode,
        recalculate=recalculate,
        config_path=_config_path(ctx),
    )


@maintenance_app.command("tick")
def maintenance_tick_cmd(
    ctx: typer.Context,
    force: str | None = typer.Option(None, "--force", help="Run this task now regardless of schedule"),
    tenant: str = TENANT,
) -> None:
    """Run due scheduled maintenance tasks."""
    commands.maintenance_tick(tenant=tenant, force=force, config_path=_config_path(ctx))


@maintenance_app.command("tasks")
def maintenance_tasks_cmd(ctx: typer.Context, tenant: str = TENANT) -> None:
    """Show scheduled task state."""
    commands.maintenance_tasks(tenant=tenant, config_path=_config_path(ctx))


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Show effective configuration."""
    commands.config_show(config_path=_config_path(ctx))


app.add_typer(memory_app, name="memory")
app.add_typer(maintenance_app, name="maintenance")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
