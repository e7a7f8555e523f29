"""Harborline: containerized build, test, publish and agent-develop pipeline.

Operations:
  - build-env: Node environment with the source mounted and deps installed
  - build: application build wrapped in a static web server image
  - test: unit test run, stdout returned verbatim
  - publish: test-gated build pushed to ``<registry>/<app>-<suffix>``
  - develop: LLM agent completes an assignment, result verified by tests
  - develop-issue: a GitHub issue developed into a pull request

All container, cache, agent and issue-tracker work goes through adapters
injected into ``Pipeline``.
"""

__version__ = "0.1.0"
__description__ = (
    "Containerized build/test/publish pipeline with an LLM development agent"
)

from harborline.core.pipeline import Pipeline
from harborline.models.source import SourceTree
from harborline.cli.app import app as cli

__all__ = ["Pipeline", "SourceTree", "cli", "__version__"]
