"""Operation registry: name -> typed handler + parameter schema.

Operations are registered explicitly and the whole registry is validated
at startup, so a handler whose signature drifts from its declared schema
fails loudly before anything runs.

Usage::

    registry = OperationRegistry()
    registry.register(OperationSpec(
        name="test",
        handler=engine.test,
        params=(ParamSpec(name="source", kind=ParamKind.SOURCE),),
        help="Return the result of running unit tests.",
    ))
    registry.validate()
    stdout = registry.invoke("test", {"source": tree})
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr, TypeAdapter, ValidationError

from harborline.core.errors import InvalidParameters, RegistryError, UnknownOperation
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)


class ParamKind(str, Enum):
    """Value types an operation parameter may take."""

    SOURCE = "source"
    STRING = "string"
    INTEGER = "integer"
    SECRET = "secret"


_VALIDATORS: dict[ParamKind, TypeAdapter[Any]] = {
    ParamKind.SOURCE: TypeAdapter(SourceTree),
    ParamKind.STRING: TypeAdapter(str),
    ParamKind.INTEGER: TypeAdapter(int),
    ParamKind.SECRET: TypeAdapter(SecretStr),
}


class ParamSpec(BaseModel):
    """One declared operation parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: ParamKind
    required: bool = True
    default: Any = None
    help: str = ""


class OperationSpec(BaseModel):
    """A registered operation: handler plus the schema of its arguments."""

    model_config = ConfigDict(frozen=True)

    name: str
    handler: Callable[..., Any]
    params: tuple[ParamSpec, ...] = ()
    help: str = ""

    def param(self, name: str) -> ParamSpec:
        for spec in self.params:
            if spec.name == name:
                return spec
        raise KeyError(name)


class OperationRegistry:
    """Explicit mapping from operation name to ``OperationSpec``."""

    def __init__(self) -> None:
        self._operations: dict[str, OperationSpec] = {}

    def register(self, spec: OperationSpec) -> None:
        if spec.name in self._operations:
            raise RegistryError(f"Operation {spec.name!r} is already registered")
        names = [p.name for p in spec.params]
        if len(set(names)) != len(names):
            raise RegistryError(f"Operation {spec.name!r} declares duplicate parameters")
        self._operations[spec.name] = spec
        logger.debug("Registered operation %s(%s)", spec.name, ", ".join(names))

    def get(self, name: str) -> OperationSpec:
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperation(
                f"Unknown operation {name!r}. Registered operations: {self.names()}"
            ) from None

    def names(self) -> list[str]:
        return sorted(self._operations)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self):
        return iter(self._operations[name] for name in self.names())

    def __len__(self) -> int:
        return len(self._operations)

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check every handler's signature against its parameter schema.

        Raises ``RegistryError`` listing every mismatch found.
        """
        problems: list[str] = []
        for spec in self:
            try:
                signature = inspect.signature(spec.handler)
            except (TypeError, ValueError) as exc:
                problems.append(f"{spec.name}: handler signature unavailable ({exc})")
                continue

            handler_params = [
                p for p in signature.parameters.values()
                if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
            ]
            declared = [p.name for p in spec.params]
            actual = [p.name for p in handler_params]
            if sorted(declared) != sorted(actual):
                problems.append(
                    f"{spec.name}: schema declares {declared} but handler takes {actual}"
                )
                continue

            for param in handler_params:
                declared_spec = spec.param(param.name)
                if param.default is param.empty and not declared_spec.required:
                    problems.append(
                        f"{spec.name}: {param.name!r} is optional in the schema "
                        "but the handler has no default"
                    )

        if problems:
            raise RegistryError("Invalid operation registry: " + "; ".join(problems))

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    def coerce(self, name: str, params: dict[str, Any]) -> dict[str, Any]:
        """Validate *params* against operation *name* and return typed kwargs."""
        spec = self.get(name)
        declared = {p.name for p in spec.params}
        unknown = sorted(set(params) - declared)
        if unknown:
            raise InvalidParameters(f"{name}: unknown parameters {unknown}")

        kwargs: dict[str, Any] = {}
        for param in spec.params:
            if param.name not in params or params[param.name] is None:
                if param.required:
                    raise InvalidParameters(f"{name}: missing required parameter {param.name!r}")
                if param.default is not None:
                    kwargs[param.name] = param.default
                continue
            try:
                kwargs[param.name] = _VALIDATORS[param.kind].validate_python(params[param.name])
            except ValidationError as exc:
                raise InvalidParameters(
                    f"{name}: parameter {param.name!r} is not a valid {param.kind.value}"
                ) from exc
        return kwargs

    def invoke(self, name: str, params: dict[str, Any]) -> Any:
        """Coerce *params* and call the operation's handler."""
        spec = self.get(name)
        kwargs = self.coerce(name, params)
        logger.info("Invoking operation %s", name)
        return spec.handler(**kwargs)
