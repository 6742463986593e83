"""Command-line entry point.

    standup-agent run     one autonomous standup run (cron-friendly)
    standup-agent chat    interactive questions about recent team activity
    standup-agent status  show the effective configuration
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

import typer

from shared.config import Settings, get_settings
from shared.logging import bind_context, get_logger, setup_logging
from shared.models import SessionReport, SessionState
from integrations.github import GitHubClient
from integrations.slack import SlackClient
from orchestrator.conversation import ConversationDriver
from orchestrator.llm import create_llm_provider
from orchestrator.prompts import build_interactive_system_prompt, build_task_prompt
from orchestrator.sessions import AutonomousSession, InteractiveSession
from tools import AuditLogger, ToolContext, ToolExecutor, build_standup_registry, build_tool_context

logger = get_logger(__name__)

app = typer.Typer(add_completion=False, help="Standup agent for GitHub activity and Slack.")

ConfigOption = typer.Option(None, "--config", "-c", help="Path to a YAML settings file")
LogLevelOption = typer.Option(None, "--log-level", help="Override the configured log level")
JsonLogsOption = typer.Option(False, "--json-logs", help="Emit JSON log lines")


def _load_settings(config: Optional[str], log_level: Optional[str], json_logs: bool) -> Settings:
    settings = get_settings(config)
    setup_logging(
        log_level or settings.log_level,
        json_output=json_logs or settings.environment == "production"
    )
    return settings


def _require_credentials(settings: Settings) -> None:
    missing = settings.missing_credentials()
    if missing:
        typer.secho(f"Missing configuration: {', '.join(missing)}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@asynccontextmanager
async def _runtime(
    settings: Settings,
    on_text: Optional[Callable[[str], None]] = None
) -> AsyncIterator[tuple[ConversationDriver, ToolContext]]:
    """Wire clients, tools and the driver; release them on the way out."""
    github = GitHubClient(
        token=settings.github.token,
        api_url=settings.github.api_url,
        timeout=settings.github.timeout_seconds,
    )
    slack = SlackClient(api_url=settings.slack.api_url, timeout=settings.slack.timeout_seconds)

    registry = build_standup_registry()
    audit_logger = AuditLogger(
        log_path=settings.standup.audit_log_path,
        enabled=settings.standup.enable_audit,
    )
    executor = ToolExecutor(registry, audit_logger)
    driver = ConversationDriver(create_llm_provider(settings.llm), executor, registry, on_text=on_text)
    ctx = build_tool_context(settings, github, slack)

    try:
        yield driver, ctx
    finally:
        await audit_logger.flush()
        await github.close()
        await slack.close()


async def _run_autonomous(settings: Settings) -> SessionReport:
    standup = settings.standup

    def log_text(text: str) -> None:
        logger.info("Assistant response", text=text)

    async with _runtime(settings, on_text=log_text) as (driver, ctx):
        task_prompt = build_task_prompt(
            standup.team_members,
            standup.repositories(),
            standup.lookback_hours,
            ctx.since,
            standup.timezone,
        )
        session = AutonomousSession(driver, ctx, task_prompt, max_iterations=standup.max_iterations)
        return await session.run()


async def _run_interactive(settings: Settings) -> list[SessionReport]:
    standup = settings.standup

    def show_text(text: str) -> None:
        typer.echo(f"\nAssistant: {text}\n")

    async with _runtime(settings, on_text=show_text) as (driver, ctx):
        system_prompt = build_interactive_system_prompt(
            standup.team_members,
            standup.repositories(),
            standup.lookback_hours,
            ctx.since,
            standup.timezone,
        )
        session = InteractiveSession(
            driver,
            ctx,
            system_prompt,
            max_iterations=standup.max_iterations,
            notify=typer.echo,
        )
        return await session.run()


@app.command()
def run(
    config: Optional[str] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    json_logs: bool = JsonLogsOption,
):
    """Gather activity for every team member and post the standup once."""
    settings = _load_settings(config, log_level, json_logs)
    _require_credentials(settings)
    bind_context(mode="autonomous")

    report = asyncio.run(_run_autonomous(settings))

    if report.state is SessionState.FAILED:
        typer.secho(f"Standup run failed: {report.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    if report.state is SessionState.EXHAUSTED:
        typer.secho(
            f"Standup run stopped after {report.iterations} iterations.",
            fg=typer.colors.YELLOW,
            err=True
        )


@app.command()
def chat(
    config: Optional[str] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    json_logs: bool = JsonLogsOption,
):
    """Ask questions about the team's recent activity."""
    settings = _load_settings(config, log_level, json_logs)
    _require_credentials(settings)
    bind_context(mode="interactive")

    typer.echo("Standup assistant ready. Type 'exit' or 'quit' to leave.\n")
    try:
        asyncio.run(_run_interactive(settings))
    except KeyboardInterrupt:
        typer.echo("")


@app.command()
def status(
    config: Optional[str] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    json_logs: bool = JsonLogsOption,
):
    """Show the effective configuration and any missing credentials."""
    settings = _load_settings(config, log_level, json_logs)
    standup = settings.standup
    repos = standup.repositories()

    typer.echo(f"LLM provider:   {settings.llm.provider} ({settings.llm.model})")
    typer.echo(f"Repositories:   {', '.join(r.slug for r in repos) or '(none)'}")
    typer.echo(f"Team members:   {', '.join(standup.team_members) or '(unrestricted)'}")
    typer.echo(f"Lookback:       {standup.lookback_hours}h")
    typer.echo(f"Timezone:       {standup.timezone}")
    typer.echo(f"Max iterations: {standup.max_iterations}")

    missing = settings.missing_credentials()
    if missing:
        typer.secho(f"Missing:        {', '.join(missing)}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho("Configuration complete.", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
