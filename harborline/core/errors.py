"""Harborline error taxonomy.

No step recovers from the failure of a step it depends on: every error
below propagates unchanged to the caller (ultimately the CLI, which prints
``<kind>: <message>`` and exits non-zero).
"""

from __future__ import annotations

from harborline.models.environment import ExecResult


class HarborlineError(RuntimeError):
    """Base class for every failure the pipeline reports."""

    @property
    def kind(self) -> str:
        return type(self).__name__


# ---------------------------------------------------------------------------
# Command failures: a container command exited non-zero
# ---------------------------------------------------------------------------


class CommandFailure(HarborlineError):
    """A command inside a build container exited non-zero.

    Carries the captured ``ExecResult`` so the output is never swallowed.
    """

    def __init__(self, message: str, result: ExecResult) -> None:
        super().__init__(message)
        self.result = result

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr

    @property
    def output(self) -> str:
        return self.result.output

    @property
    def exit_code(self) -> int:
        return self.result.exit_code


class EnvironmentBuildError(CommandFailure):
    """The dependency install in the build environment failed."""


class BuildError(CommandFailure):
    """The build command failed or produced no output directory."""


class TestFailure(CommandFailure):
    """The test command exited non-zero."""

    __test__ = False  # not a pytest test class


class PublishError(HarborlineError):
    """The registry rejected the image push."""


# ---------------------------------------------------------------------------
# Agent development
# ---------------------------------------------------------------------------


class AgentExecutionError(HarborlineError):
    """The agent executor failed, was cancelled, or exceeded its caps."""


class DevelopmentVerificationFailed(HarborlineError):
    """The agent's completed workspace did not pass the test gate."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class InvalidSessionTransition(HarborlineError):
    """An AgentSession was asked to move between incompatible states."""


class SessionOutputError(HarborlineError):
    """A session output was read before completion, twice, or undeclared."""


# ---------------------------------------------------------------------------
# External services
# ---------------------------------------------------------------------------


class ContainerPlatformError(HarborlineError):
    """The container platform itself failed (not a command inside it)."""


class IssueTrackerError(HarborlineError):
    """The issue tracker returned an unexpected failure."""


class IssueNotFound(IssueTrackerError):
    """The requested issue does not exist in the repository."""


class AuthenticationError(IssueTrackerError):
    """The issue tracker rejected the supplied credential."""


# ---------------------------------------------------------------------------
# Operation registry
# ---------------------------------------------------------------------------


class RegistryError(HarborlineError):
    """An operation registration is malformed."""


class UnknownOperation(RegistryError):
    """No operation is registered under the requested name."""


class InvalidParameters(RegistryError):
    """An operation was invoked with missing, unknown, or mistyped params."""
