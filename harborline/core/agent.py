"""Agent-driven development: assignment in, verified source tree out.

The agent gets the assignment and an editable workspace over the source,
and must fill the ``completed`` slot.  Whatever it returns is stripped of
dependency caches and then has to pass the test suite before it is handed
back.  There is no retry: a failing verification is the caller's problem.
"""

from __future__ import annotations

import logging
from importlib import resources

from harborline.adapters.base import AgentExecutor
from harborline.core.engine import ExecutionEngine
from harborline.core.errors import DevelopmentVerificationFailed, TestFailure
from harborline.core.session import AgentSession
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)

ASSIGNMENT_INPUT = "assignment"
WORKSPACE_INPUT = "workspace"
COMPLETED_OUTPUT = "completed"


def load_prompt(name: str) -> str:
    """Read an instruction template shipped in ``harborline/prompts``."""
    return resources.files("harborline.prompts").joinpath(name).read_text(encoding="utf-8")


class AgentDeveloper:
    """Runs the develop workflow against an engine and an agent executor.

    Parameters
    ----------
    engine:
        Used for the post-agent test gate.
    executor:
        The agent backend.
    prompt:
        Instruction text.  Loaded from the configured template when omitted.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        executor: AgentExecutor,
        *,
        prompt: str | None = None,
    ) -> None:
        self._engine = engine
        self._executor = executor
        self._prompt = prompt

    @property
    def prompt(self) -> str:
        if self._prompt is None:
            self._prompt = load_prompt(self._engine.config.prompt_template)
        return self._prompt

    def develop(self, assignment: str, source: SourceTree) -> SourceTree:
        """Complete *assignment* on *source* and return the verified result."""
        with self._engine.run_log.step(
            "develop", {"assignment": assignment, "source": source.digest}
        ) as step:
            session = (
                AgentSession(self._executor, privileged=True)
                .with_string_input(ASSIGNMENT_INPUT, assignment, "the assignment to complete")
                .with_workspace_input(
                    WORKSPACE_INPUT, source, "the workspace with tools to edit code"
                )
                .expect_output(
                    COMPLETED_OUTPUT, "the workspace with the completed assignment"
                )
            )
            session.run(self.prompt)

            completed = session.read_output(COMPLETED_OUTPUT).source()
            for name in self._engine.config.strip_directories:
                completed = completed.without_directory(name)
            logger.info(
                "Agent produced %d files (%s); verifying", len(completed), completed.digest[:19]
            )

            try:
                self._engine.test(completed)
            except TestFailure as exc:
                raise DevelopmentVerificationFailed(
                    f"Developed source failed verification: {exc}", exc.output
                ) from exc

            step.record(result=completed.digest, detail=f"{len(completed)} files")
            return completed
