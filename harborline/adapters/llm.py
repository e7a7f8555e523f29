"""OpenAI-backed agent executor with a bounded tool-calling loop.

The model edits workspace inputs through function tools and finishes by
submitting each declared output slot.  The loop stops with
``AgentExecutionError`` when it runs out of steps, exceeds its wall-clock
budget, is cancelled, or the API call itself fails.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from openai import OpenAI, OpenAIError

from harborline.core.errors import AgentExecutionError
from harborline.core.workspace import Workspace
from harborline.models.agent import AgentEnv

if TYPE_CHECKING:
    from harborline.config import HarborConfig

logger = logging.getLogger(__name__)


def _tool(name: str, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_WORKSPACE_ARG = {"type": "string", "description": "Workspace input name. Defaults to the first workspace."}

TOOLS: list[dict[str, Any]] = [
    _tool(
        "list_files",
        "List file paths in a workspace, optionally under a directory prefix.",
        {"workspace": _WORKSPACE_ARG, "prefix": {"type": "string"}},
        [],
    ),
    _tool(
        "read_file",
        "Read a text file from a workspace.",
        {"workspace": _WORKSPACE_ARG, "path": {"type": "string"}},
        ["path"],
    ),
    _tool(
        "write_file",
        "Create or overwrite a file in a workspace with the full new content.",
        {"workspace": _WORKSPACE_ARG, "path": {"type": "string"}, "content": {"type": "string"}},
        ["path", "content"],
    ),
    _tool(
        "delete_file",
        "Delete a file from a workspace.",
        {"workspace": _WORKSPACE_ARG, "path": {"type": "string"}},
        ["path"],
    ),
    _tool(
        "submit_output",
        "Submit a workspace as a declared output. Call once per output when the work is done.",
        {"output": {"type": "string"}, "workspace": _WORKSPACE_ARG},
        ["output"],
    ),
]


def render_inputs(env: AgentEnv) -> str:
    """Describe the environment's inputs and expected outputs for the model."""
    lines = ["## Inputs", ""]
    for item in env.string_inputs:
        lines.append(f"- `{item.name}` ({item.description or 'string'}):")
        lines.append("")
        lines.append(item.value)
        lines.append("")
    for item in env.workspace_inputs:
        lines.append(
            f"- workspace `{item.name}` ({item.description or 'workspace'}), "
            f"{len(item.tree)} files"
        )
    lines += ["", "## Outputs", ""]
    for slot in env.output_slots:
        lines.append(f"- `{slot.name}`: {slot.description}")
    return "\n".join(lines)


class LLMAgentExecutor:
    """Agent executor driving an OpenAI chat model with workspace tools.

    Parameters
    ----------
    client_factory:
        Returns an ``openai.OpenAI``-compatible client.  Called lazily on
        the first run, so pipelines that never develop need no API key.
    model:
        Chat model name.
    max_steps:
        Maximum model round-trips per run.
    timeout_seconds:
        Wall-clock budget per run.
    cancel_event:
        Set it from another thread to abandon the run at the next round.
        A run that stops on it clears it, so the next run starts fresh.
    """

    def __init__(
        self,
        client_factory: Callable[[], Any],
        model: str = "gpt-4o",
        *,
        max_steps: int = 50,
        timeout_seconds: float = 1800.0,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self._client_factory = client_factory
        self._client: Any = None
        self.model = model
        self.max_steps = max_steps
        self.timeout_seconds = timeout_seconds
        self.cancel_event = cancel_event or threading.Event()
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: HarborConfig) -> LLMAgentExecutor:
        def factory() -> OpenAI:
            key = settings.openai_api_key
            return OpenAI(
                api_key=key.get_secret_value() if key is not None else None,
                base_url=settings.openai_base_url,
            )

        return cls(
            factory,
            settings.agent_model,
            max_steps=settings.agent_max_steps,
            timeout_seconds=settings.agent_timeout_seconds,
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = self._client_factory()
            except OpenAIError as exc:
                raise AgentExecutionError(f"Could not create LLM client: {exc}") from exc
        return self._client

    # ------------------------------------------------------------------
    # AgentExecutor protocol
    # ------------------------------------------------------------------

    def create_env(self, privileged: bool = False) -> AgentEnv:
        return AgentEnv(privileged=privileged)

    def read_output(self, env: AgentEnv, slot: str) -> Workspace:
        if slot not in env.outputs:
            raise AgentExecutionError(f"Output {slot!r} was not produced")
        return Workspace(env.outputs[slot])

    def run_llm(self, env: AgentEnv, prompt: str) -> AgentEnv:
        if not env.output_slots:
            raise AgentExecutionError("Agent environment declares no outputs")

        workspaces = {item.name: Workspace(item.tree) for item in env.workspace_inputs}
        outputs: dict[str, Workspace] = {}
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": f"{prompt}\n\n{render_inputs(env)}"},
            {"role": "user", "content": "Complete the assignment, then submit every output."},
        ]

        started = self._clock()
        for step in range(1, self.max_steps + 1):
            if self.cancel_event.is_set():
                self.cancel_event.clear()
                raise AgentExecutionError(f"Agent run cancelled at step {step}")
            elapsed = self._clock() - started
            if elapsed > self.timeout_seconds:
                raise AgentExecutionError(
                    f"Agent run exceeded {self.timeout_seconds:.0f}s after {step - 1} steps"
                )

            message = self._complete(messages)
            tool_calls = list(getattr(message, "tool_calls", None) or [])
            messages.append(_assistant_message(message, tool_calls))

            if not tool_calls:
                logger.debug("Agent step %d: no tool calls", step)
                messages.append({
                    "role": "user",
                    "content": "Use the tools to finish, then call submit_output for "
                    + ", ".join(f"`{n}`" for n in env.output_names) + ".",
                })
                continue

            for call in tool_calls:
                result = self._dispatch(call, env, workspaces, outputs)
                messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

            if all(name in outputs for name in env.output_names):
                logger.info("Agent completed in %d steps", step)
                for name, workspace in outputs.items():
                    env = env.with_output(name, workspace.source())
                return env

        raise AgentExecutionError(
            f"Agent did not produce {env.output_names} within {self.max_steps} steps"
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _complete(self, messages: list[dict[str, Any]]) -> Any:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=TOOLS,
            )
        except OpenAIError as exc:
            raise AgentExecutionError(f"LLM request failed: {exc}") from exc
        if not response.choices:
            raise AgentExecutionError("LLM returned no choices")
        return response.choices[0].message

    def _dispatch(
        self,
        call: Any,
        env: AgentEnv,
        workspaces: dict[str, Workspace],
        outputs: dict[str, Workspace],
    ) -> str:
        """Run one tool call; tool errors are reported back to the model."""
        name = call.function.name
        try:
            args = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError as exc:
            return f"error: arguments are not valid JSON ({exc})"

        try:
            workspace = self._workspace(workspaces, args.get("workspace"))
            if name == "list_files":
                return "\n".join(workspace.list_files(args.get("prefix", ""))) or "(empty)"
            if name == "read_file":
                return workspace.read_file(args["path"])
            if name == "write_file":
                return workspace.write_file(args["path"], args["content"])
            if name == "delete_file":
                return workspace.delete_file(args["path"])
            if name == "submit_output":
                slot = args["output"]
                if slot not in env.output_names:
                    return f"error: unknown output {slot!r}; expected one of {env.output_names}"
                outputs[slot] = Workspace(workspace.source())
                return f"submitted {slot}"
        except (KeyError, ValueError, FileNotFoundError) as exc:
            return f"error: {type(exc).__name__}: {exc}"
        return f"error: unknown tool {name!r}"

    @staticmethod
    def _workspace(workspaces: dict[str, Workspace], name: str | None) -> Workspace:
        if not workspaces:
            raise ValueError("no workspace inputs are available")
        if name is None:
            return next(iter(workspaces.values()))
        if name not in workspaces:
            raise KeyError(f"unknown workspace {name!r}")
        return workspaces[name]


def _assistant_message(message: Any, tool_calls: list[Any]) -> dict[str, Any]:
    entry: dict[str, Any] = {"role": "assistant", "content": getattr(message, "content", None) or ""}
    if tool_calls:
        entry["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": call.function.name,
                    "arguments": call.function.arguments,
                },
            }
            for call in tool_calls
        ]
    return entry
