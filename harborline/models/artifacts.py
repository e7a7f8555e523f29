"""Pipeline artifact models: what a step hands to the next one."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from harborline.models.environment import BuildEnvironment
from harborline.models.source import SourceTree


class ArtifactKind(str, Enum):
    TREE = "tree"
    TEXT = "text"
    IMAGE = "image"
    CONTAINER = "container"


class ImageRef(BaseModel):
    """A published image.  ``str(ref)`` is the pullable reference."""

    model_config = ConfigDict(frozen=True)

    reference: str
    digest: str = ""

    def __str__(self) -> str:
        return self.reference


_PAYLOAD_FIELD: dict[ArtifactKind, str] = {
    ArtifactKind.TREE: "tree",
    ArtifactKind.TEXT: "text",
    ArtifactKind.IMAGE: "image",
    ArtifactKind.CONTAINER: "environment",
}


class PipelineArtifact(BaseModel):
    """Output of a pipeline step.

    Exactly one payload field is populated, the one matching ``kind``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind
    tree: SourceTree | None = None
    text: str | None = None
    image: ImageRef | None = None
    environment: BuildEnvironment | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> PipelineArtifact:
        expected = _PAYLOAD_FIELD[self.kind]
        for kind, field_name in _PAYLOAD_FIELD.items():
            populated = getattr(self, field_name) is not None
            if field_name == expected and not populated:
                raise ValueError(f"{kind.value} artifact requires '{field_name}'")
            if field_name != expected and populated:
                raise ValueError(
                    f"{self.kind.value} artifact must not carry '{field_name}'"
                )
        return self

    @property
    def value(self) -> Any:
        return getattr(self, _PAYLOAD_FIELD[self.kind])

    def summary(self) -> dict[str, Any]:
        """Short JSON-safe description of the payload, for logs."""
        if self.kind == ArtifactKind.TREE:
            return {"kind": self.kind.value, "digest": self.tree.digest, "files": len(self.tree)}
        if self.kind == ArtifactKind.TEXT:
            return {"kind": self.kind.value, "text": self.text}
        if self.kind == ArtifactKind.IMAGE:
            return {"kind": self.kind.value, "reference": self.image.reference}
        return {"kind": self.kind.value, "environment": self.environment.model_dump(mode="json")}

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def of_tree(cls, tree: SourceTree) -> PipelineArtifact:
        return cls(kind=ArtifactKind.TREE, tree=tree)

    @classmethod
    def of_text(cls, text: str) -> PipelineArtifact:
        return cls(kind=ArtifactKind.TEXT, text=text)

    @classmethod
    def of_image(cls, reference: str, digest: str = "") -> PipelineArtifact:
        return cls(kind=ArtifactKind.IMAGE, image=ImageRef(reference=reference, digest=digest))

    @classmethod
    def of_environment(cls, environment: BuildEnvironment) -> PipelineArtifact:
        return cls(kind=ArtifactKind.CONTAINER, environment=environment)
