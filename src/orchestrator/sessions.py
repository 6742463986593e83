"""Session modes.

Both modes drive the same ConversationDriver through a bounded loop:

    idle -> awaiting_response -> (executing_tools -> awaiting_response)* -> done | exhausted | failed

Autonomous mode runs one fixed task. Interactive mode runs one bounded
loop per user line over a history that accumulates for the whole session.
"""

import asyncio
from typing import AsyncIterator, Callable, Optional

from shared.logging import get_logger
from shared.models import SessionReport, SessionState, TurnOutcome
from orchestrator.conversation import ConversationDriver
from orchestrator.prompts import AUTONOMOUS_SYSTEM_PROMPT
from tools.context import ToolContext

logger = get_logger(__name__)

MAX_ITERATIONS = 20
EXIT_COMMANDS = {"exit", "quit"}
PROMPT = "You: "


class BaseSession:
    """Bounded turn loop shared by both modes."""

    mode = "base"

    def __init__(
        self,
        driver: ConversationDriver,
        ctx: ToolContext,
        system_prompt: str,
        max_iterations: int = MAX_ITERATIONS
    ) -> None:
        self.driver = driver
        self.ctx = ctx
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.state = SessionState.IDLE

    async def _drive(self) -> SessionReport:
        """Run turns until one is terminal or the iteration cap is hit."""
        for iteration in range(1, self.max_iterations + 1):
            self.state = SessionState.AWAITING_RESPONSE
            outcome = await self.driver.run_turn(self.system_prompt, self.ctx, iteration)

            if outcome.is_terminal:
                if outcome is TurnOutcome.FINISHED:
                    self.state = SessionState.DONE
                    return SessionReport(state=self.state, iterations=iteration)
                self.state = SessionState.FAILED
                error = self.driver.last_error.message if self.driver.last_error else None
                return SessionReport(state=self.state, iterations=iteration, error=error)

            self.state = SessionState.EXECUTING_TOOLS

        # Nothing is rolled back; whatever the tools already did stands.
        logger.warning(
            "Iteration limit reached",
            mode=self.mode,
            max_iterations=self.max_iterations
        )
        self.state = SessionState.EXHAUSTED
        return SessionReport(state=self.state, iterations=self.max_iterations)


class AutonomousSession(BaseSession):
    """One fixed task, no user interaction."""

    mode = "autonomous"

    def __init__(
        self,
        driver: ConversationDriver,
        ctx: ToolContext,
        task_prompt: str,
        system_prompt: str = AUTONOMOUS_SYSTEM_PROMPT,
        max_iterations: int = MAX_ITERATIONS
    ) -> None:
        super().__init__(driver, ctx, system_prompt, max_iterations)
        self.task_prompt = task_prompt

    async def run(self) -> SessionReport:
        """
        Seed the task and drive it to completion.

        Returns:
            Report with state done, exhausted or failed
        """
        logger.info("Autonomous run started", max_iterations=self.max_iterations)
        self.driver.add_user_message(self.task_prompt)
        report = await self._drive()
        logger.info("Autonomous run ended", state=report.state.value, iterations=report.iterations)
        return report


def is_exit_command(line: str) -> bool:
    return line.strip().lower() in EXIT_COMMANDS


async def read_stdin_lines(prompt: str = PROMPT) -> AsyncIterator[str]:
    """Yield terminal input lines until EOF."""
    while True:
        try:
            line = await asyncio.to_thread(input, prompt)
        except EOFError:
            return
        yield line


class InteractiveSession(BaseSession):
    """
    Read-loop over user lines.

    Each non-empty line is appended to the shared history and drives its
    own bounded loop. ``exit`` or ``quit`` ends the session without another
    turn.
    """

    mode = "interactive"

    def __init__(
        self,
        driver: ConversationDriver,
        ctx: ToolContext,
        system_prompt: str,
        max_iterations: int = MAX_ITERATIONS,
        notify: Optional[Callable[[str], None]] = None
    ) -> None:
        super().__init__(driver, ctx, system_prompt, max_iterations)
        self.notify = notify
        self.reports: list[SessionReport] = []

    async def verify_identity(self) -> Optional[str]:
        """
        Check the data-source credential before the first input.

        Advisory only: the outcome is logged and the session continues
        either way.

        Returns:
            Authenticated login, or None if the check failed
        """
        try:
            login = await self.ctx.source.get_authenticated_user()
        except Exception as e:
            logger.warning("Could not verify GitHub identity", error=str(e))
            return None

        logger.info("GitHub identity verified", login=login)
        return login

    async def handle_line(self, line: str) -> Optional[SessionReport]:
        """
        Drive one user request.

        Returns:
            Report for the request, or None if the line was blank
        """
        text = line.strip()
        if not text:
            return None

        self.driver.add_user_message(text)
        report = await self._drive()
        self.reports.append(report)

        if report.state is SessionState.FAILED and report.error and self.notify:
            self.notify(f"Error: {report.error}")
        elif report.state is SessionState.EXHAUSTED and self.notify:
            self.notify("Stopped after reaching the iteration limit for this request.")

        return report

    async def run(self, lines: Optional[AsyncIterator[str]] = None) -> list[SessionReport]:
        """
        Run the read-loop.

        Args:
            lines: Input lines; defaults to the terminal

        Returns:
            One report per request that was driven
        """
        await self.verify_identity()
        logger.info("Interactive session started")

        async for line in (lines if lines is not None else read_stdin_lines()):
            if is_exit_command(line):
                break
            await self.handle_line(line)

        logger.info("Interactive session ended", requests=len(self.reports))
        return self.reports
