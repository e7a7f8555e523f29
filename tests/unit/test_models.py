"""Unit tests for Harborline models and canonical hashing."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from harborline.core.hasher import (
    canonical_json_bytes,
    compute_input_hash,
    compute_output_hash,
    content_address,
)
from harborline.models import (
    VALID_SESSION_TRANSITIONS,
    AgentEnv,
    ArtifactKind,
    BuildEnvironment,
    CacheVolume,
    ExecResult,
    PipelineArtifact,
    PipelineConfig,
    SessionState,
    SourceTree,
)


# ---------------------------------------------------------------------------
# Test: hashing
# ---------------------------------------------------------------------------


class TestHasher:
    def test_canonical_json_is_key_order_independent(self):
        assert canonical_json_bytes({"b": 1, "a": 2}) == canonical_json_bytes({"a": 2, "b": 1})

    def test_canonical_json_is_compact(self):
        assert canonical_json_bytes({"a": [1, 2]}) == b'{"a":[1,2]}'

    def test_content_address_prefix(self):
        assert content_address([]).startswith("sha256:")

    def test_input_hash_depends_on_step_name(self):
        inputs = {"source": "sha256:abc"}
        assert compute_input_hash("build", inputs) != compute_input_hash("test", inputs)

    def test_input_and_output_hash_differ(self):
        payload = {"x": 1}
        assert compute_input_hash("s", payload) != compute_output_hash("s", payload)


# ---------------------------------------------------------------------------
# Test: exec results and environments
# ---------------------------------------------------------------------------


class TestExecResult:
    def test_ok(self):
        assert ExecResult(argv=("true",)).ok
        assert not ExecResult(argv=("false",), exit_code=1).ok

    def test_output_joins_streams(self):
        result = ExecResult(argv=("x",), stdout="out\n", stderr="err", exit_code=1)
        assert result.output == "out\nerr"

    def test_output_single_stream(self):
        assert ExecResult(argv=("x",), stderr="only err").output == "only err"


class TestBuildEnvironment:
    """Environments are values: with_* never mutates."""

    def test_with_methods_return_new_instances(self):
        env = BuildEnvironment(image="node:21-slim")
        derived = (
            env.with_directory("/src", "sha256:aaa")
            .with_cache("/root/.npm", CacheVolume(name="node"))
            .with_workdir("/src")
            .with_executed(("npm", "install"))
        )
        assert env.directories == ()
        assert env.workdir == "/"
        assert derived.workdir == "/src"
        assert derived.executed == (("npm", "install"),)

    def test_remount_replaces(self):
        env = BuildEnvironment(image="x").with_directory("/src", "a").with_directory("/src", "b")
        assert [d.tree_digest for d in env.directories] == ["b"]

    def test_exposed_port_is_idempotent(self):
        env = BuildEnvironment(image="nginx").with_exposed_port(80).with_exposed_port(80)
        assert env.exposed_ports == (80,)

    def test_identical_histories_are_equal(self):
        def make():
            return BuildEnvironment(image="node").with_directory("/src", "d").with_executed(("ls",))

        assert make() == make()

    def test_frozen(self):
        env = BuildEnvironment(image="node")
        with pytest.raises(ValidationError):
            env.image = "other"


# ---------------------------------------------------------------------------
# Test: artifacts
# ---------------------------------------------------------------------------


class TestPipelineArtifact:
    def test_text_artifact(self):
        artifact = PipelineArtifact.of_text("3 passed")
        assert artifact.kind == ArtifactKind.TEXT
        assert artifact.value == "3 passed"
        assert artifact.summary() == {"kind": "text", "text": "3 passed"}

    def test_image_artifact_str(self):
        artifact = PipelineArtifact.of_image("ttl.sh/hello-dagger-42")
        assert str(artifact.value) == "ttl.sh/hello-dagger-42"

    def test_tree_artifact_summary(self, node_project):
        summary = PipelineArtifact.of_tree(node_project).summary()
        assert summary["digest"] == node_project.digest
        assert summary["files"] == 4

    def test_missing_payload_rejected(self):
        with pytest.raises(ValidationError, match="requires"):
            PipelineArtifact(kind=ArtifactKind.TEXT)

    def test_mismatched_payload_rejected(self):
        with pytest.raises(ValidationError, match="must not carry"):
            PipelineArtifact(kind=ArtifactKind.TEXT, text="x", tree=SourceTree.empty())


# ---------------------------------------------------------------------------
# Test: agent env and session states
# ---------------------------------------------------------------------------


class TestAgentEnv:
    def test_declarations_accumulate(self, node_project):
        env = (
            AgentEnv(privileged=True)
            .with_string_input("assignment", "do it", "the assignment")
            .with_workspace_input("workspace", node_project)
            .with_workspace_output("completed", "the result")
        )
        assert env.privileged
        assert env.output_names == ["completed"]
        assert env.workspace_inputs[0].tree.digest == node_project.digest
        assert env.outputs == {}

    def test_with_output_does_not_touch_original(self, node_project):
        env = AgentEnv().with_workspace_output("completed")
        produced = env.with_output("completed", node_project)
        assert env.outputs == {}
        assert produced.outputs["completed"] == node_project

    def test_terminal_states_have_no_exits(self):
        assert VALID_SESSION_TRANSITIONS[SessionState.COMPLETED] == set()
        assert VALID_SESSION_TRANSITIONS[SessionState.FAILED] == set()


# ---------------------------------------------------------------------------
# Test: pipeline config
# ---------------------------------------------------------------------------


class TestPipelineConfig:
    def test_defaults(self):
        cfg = PipelineConfig()
        assert cfg.base_image == "node:21-slim"
        assert cfg.serve_image == "nginx:1.25-alpine"
        assert cfg.cache_volume == "node"
        assert cfg.cache_mount == "/root/.npm"
        assert cfg.test_command == ("npm", "run", "test:unit", "run")
        assert cfg.publish_prefix == "ttl.sh/hello-dagger-"

    def test_publish_prefix_trims_trailing_slash(self):
        cfg = PipelineConfig(registry="registry.example.com/", app_name="shop")
        assert cfg.publish_prefix == "registry.example.com/shop-"
