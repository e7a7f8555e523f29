"""Agent session models: lifecycle states and declared input/output slots."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from harborline.models.source import SourceTree


class SessionState(str, Enum):
    """Lifecycle of an AgentSession."""

    CREATED = "created"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# Terminal states have no outgoing transitions; a retry needs a new session.
VALID_SESSION_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CREATED: {SessionState.RUNNING},
    SessionState.RUNNING: {SessionState.COMPLETED, SessionState.FAILED},
    SessionState.COMPLETED: set(),
    SessionState.FAILED: set(),
}


class SlotDeclaration(BaseModel):
    """A named input or output slot and the description shown to the agent."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class StringInput(SlotDeclaration):
    value: str


class WorkspaceInput(SlotDeclaration):
    tree: SourceTree


class AgentEnv(BaseModel):
    """Immutable agent environment: declared inputs, output slots, results.

    Every ``with_*`` call returns a new environment.  ``outputs`` is only
    populated by an agent executor's ``run_llm``.
    """

    model_config = ConfigDict(frozen=True)

    privileged: bool = False
    string_inputs: tuple[StringInput, ...] = ()
    workspace_inputs: tuple[WorkspaceInput, ...] = ()
    output_slots: tuple[SlotDeclaration, ...] = ()
    outputs: dict[str, SourceTree] = {}

    def with_string_input(self, name: str, value: str, description: str = "") -> AgentEnv:
        kept = tuple(i for i in self.string_inputs if i.name != name)
        return self.model_copy(update={
            "string_inputs": (*kept, StringInput(name=name, value=value, description=description)),
        })

    def with_workspace_input(
        self, name: str, tree: SourceTree, description: str = ""
    ) -> AgentEnv:
        kept = tuple(i for i in self.workspace_inputs if i.name != name)
        return self.model_copy(update={
            "workspace_inputs": (*kept, WorkspaceInput(name=name, tree=tree, description=description)),
        })

    def with_workspace_output(self, name: str, description: str = "") -> AgentEnv:
        kept = tuple(s for s in self.output_slots if s.name != name)
        return self.model_copy(update={
            "output_slots": (*kept, SlotDeclaration(name=name, description=description)),
        })

    def with_output(self, name: str, tree: SourceTree) -> AgentEnv:
        return self.model_copy(update={"outputs": {**self.outputs, name: tree}})

    @property
    def output_names(self) -> list[str]:
        return [s.name for s in self.output_slots]
