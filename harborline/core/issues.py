"""Issue-driven development: read an issue, develop it, open a pull request.

The pull request is only opened after development (including its test
gate) has succeeded; any failure propagates and no PR is created.
"""

from __future__ import annotations

import logging

from pydantic import SecretStr

from harborline.adapters.base import TrackerFactory
from harborline.core.agent import AgentDeveloper
from harborline.core.run_log import RunLog
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)


def pull_request_body(assignment: str, issue_url: str) -> str:
    """Assignment text followed by a ``Closes <url>`` trailer."""
    return f"{assignment}\n\nCloses {issue_url}"


class IssueDeveloper:
    """Turns a tracker issue into a pull request via the develop workflow.

    Parameters
    ----------
    developer:
        Runs the agent and the verification gate.
    tracker_factory:
        Builds an authenticated tracker client from a credential.
    run_log:
        Step trace shared with the engine.
    """

    def __init__(
        self,
        developer: AgentDeveloper,
        tracker_factory: TrackerFactory,
        run_log: RunLog,
    ) -> None:
        self._developer = developer
        self._tracker_factory = tracker_factory
        self._run_log = run_log

    def develop_issue(
        self,
        token: SecretStr | str,
        issue_id: int,
        repository_url: str,
        source: SourceTree,
    ) -> str:
        """Develop issue *issue_id* of *repository_url* and return the PR url."""
        secret = token if isinstance(token, SecretStr) else SecretStr(token)
        inputs = {"issue": issue_id, "repository": repository_url, "source": source.digest}
        with self._run_log.step("develop-issue", inputs) as step:
            tracker = self._tracker_factory(secret)
            issue = tracker.read(repository_url, issue_id)
            logger.info("Developing issue #%d: %s", issue_id, issue.title)

            assignment = issue.body
            feature = self._developer.develop(assignment, source)

            pr = tracker.create_pull_request(
                repository_url,
                issue.title,
                pull_request_body(assignment, issue.url),
                feature,
            )
            logger.info("Opened pull request %s", pr.url)
            step.record(pull_request=pr.url, detail=pr.url)
            return pr.url
