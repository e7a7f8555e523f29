"""Agent session: a bounded input/output contract around one agent run.

Lifecycle::

    created -> running -> completed
                       -> failed

There is no way back from ``completed`` or ``failed``; retrying means
creating a new session.  Declared outputs become readable once the session
completes, and each slot can be read exactly once.
"""

from __future__ import annotations

import logging

from harborline.adapters.base import AgentExecutor
from harborline.core.errors import (
    AgentExecutionError,
    InvalidSessionTransition,
    SessionOutputError,
)
from harborline.core.workspace import Workspace
from harborline.models.agent import VALID_SESSION_TRANSITIONS, AgentEnv, SessionState
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)


class AgentSession:
    """Declares agent inputs and outputs, runs the agent once, hands back outputs.

    Parameters
    ----------
    executor:
        The agent executor backend.
    privileged:
        Passed through to ``executor.create_env``.
    """

    def __init__(self, executor: AgentExecutor, *, privileged: bool = False) -> None:
        self._executor = executor
        self._env: AgentEnv = executor.create_env(privileged=privileged)
        self._state = SessionState.CREATED
        self._read: set[str] = set()
        self.error: str = ""

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def env(self) -> AgentEnv:
        return self._env

    # ------------------------------------------------------------------
    # Declarations (only while CREATED)
    # ------------------------------------------------------------------

    def with_string_input(self, name: str, value: str, description: str = "") -> AgentSession:
        self._require_created("declare inputs")
        self._env = self._env.with_string_input(name, value, description)
        return self

    def with_workspace_input(
        self, name: str, tree: SourceTree, description: str = ""
    ) -> AgentSession:
        self._require_created("declare inputs")
        self._env = self._env.with_workspace_input(name, tree, description)
        return self

    def expect_output(self, name: str, description: str = "") -> AgentSession:
        self._require_created("declare outputs")
        self._env = self._env.with_workspace_output(name, description)
        return self

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, prompt: str) -> AgentSession:
        """Hand the environment and prompt to the executor and wait.

        Any executor failure moves the session to FAILED and is raised as
        ``AgentExecutionError``; an ``AgentExecutionError`` from the executor
        passes through untouched.
        """
        self._transition(SessionState.RUNNING)
        logger.info(
            "Agent session running (inputs=%s, outputs=%s)",
            [i.name for i in self._env.string_inputs + self._env.workspace_inputs],
            self._env.output_names,
        )
        try:
            result = self._executor.run_llm(self._env, prompt)
        except AgentExecutionError as exc:
            self._fail(str(exc))
            raise
        except Exception as exc:
            self._fail(str(exc))
            raise AgentExecutionError(f"Agent executor failed: {exc}") from exc

        missing = [name for name in self._env.output_names if name not in result.outputs]
        if missing:
            self._fail(f"missing outputs {missing}")
            raise AgentExecutionError(
                f"Agent finished without producing declared outputs: {missing}"
            )

        self._env = result
        self._transition(SessionState.COMPLETED)
        return self

    def read_output(self, slot: str) -> Workspace:
        """Return a completed output slot.  Each slot can be read once."""
        if self._state != SessionState.COMPLETED:
            raise SessionOutputError(
                f"Cannot read output {slot!r}: session is {self._state.value}"
            )
        if slot not in self._env.output_names:
            raise SessionOutputError(
                f"Output {slot!r} was never declared. Declared: {self._env.output_names}"
            )
        if slot in self._read:
            raise SessionOutputError(f"Output {slot!r} has already been read")
        self._read.add(slot)
        return self._executor.read_output(self._env, slot)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, target: SessionState) -> None:
        allowed = VALID_SESSION_TRANSITIONS[self._state]
        if target not in allowed:
            raise InvalidSessionTransition(
                f"Cannot transition session from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        logger.debug("Agent session %s -> %s", self._state.value, target.value)
        self._state = target

    def _fail(self, reason: str) -> None:
        self.error = reason
        self._transition(SessionState.FAILED)
        logger.error("Agent session failed: %s", reason)

    def _require_created(self, action: str) -> None:
        if self._state != SessionState.CREATED:
            raise InvalidSessionTransition(
                f"Cannot {action} once the session is {self._state.value}"
            )

    def __repr__(self) -> str:
        return f"<AgentSession state={self._state.value} outputs={self._env.output_names}>"
