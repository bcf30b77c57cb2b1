"""The ``run`` flow: issue in, pull request out.

Wraps :class:`~commander.runner.TaskRunner` with the GitHub side: fetching
the issue, status comments, and opening the PR once the branch is pushed.
Status comments are best-effort and never change the result.
"""

from __future__ import annotations

from commander.config import Settings
from commander.errors import CleanupWarning, GitHubCommandError, PublishError
from commander.github import build_pr_body, comment_on_issue, create_pull_request, fetch_issue
from commander.logger import logger
from commander.runner import TaskRunner
from commander.types import Container, RunOptions, RunResult, TaskOutcome, TaskReference


class CommanderApp:
    def __init__(self, settings: Settings, *, runner: TaskRunner | None = None) -> None:
        self._settings = settings
        self._runner = runner or TaskRunner(settings)

    @property
    def _gh(self) -> str:
        return self._settings.github.cli

    async def run(self, options: RunOptions) -> RunResult:
        """Raises :class:`InvalidReferenceError` before any I/O for a bad reference."""
        ref = TaskReference.parse(options.task_ref)
        logger.info("Starting run", repo=ref.full_repo, issue=ref.issue, branch=ref.branch_name)

        issue = await fetch_issue(ref, cli=self._gh)
        logger.info("Issue fetched", title=issue.title)

        async def announce(container: Container) -> None:
            await self._comment(
                ref,
                "🤖 opencode-commander is working on this issue.\n\n"
                f"Branch: `{ref.branch_name}`\nContainer: `{container.id}`",
            )

        outcome = await self._runner.execute(
            ref, issue, options, on_started=None if options.quiet else announce
        )

        if not outcome.success:
            error = self._describe_failure(outcome)
            if not options.quiet:
                await self._comment(ref, self._failure_comment(error, outcome.logs))
            return RunResult(success=False, error=error)

        try:
            pr_url = await create_pull_request(
                ref.full_repo,
                outcome.branch,
                issue.title,
                build_pr_body(ref.issue),
                label=self._settings.github.pr_label or None,
                cli=self._gh,
            )
        except GitHubCommandError as exc:
            logger.error("Pull request creation failed", error=str(exc))
            return RunResult(
                success=False,
                error=f"Branch {outcome.branch} pushed, but PR creation failed: {exc.stderr}",
            )

        if not options.quiet:
            await self._comment(ref, f"✅ opencode-commander has created a PR: {pr_url}")

        logger.info("Task completed successfully", pr_url=pr_url)
        return RunResult(success=True, pr_url=pr_url)

    @staticmethod
    def _describe_failure(outcome: TaskOutcome) -> str:
        if outcome.error_kind is PublishError:
            return f"Failed to push branch: {outcome.error}"
        return outcome.error or "Agent failed"

    @staticmethod
    def _failure_comment(error: str, logs: str | None) -> str:
        body = f"❌ opencode-commander failed to complete this task.\n\nError: {error}"
        if logs:
            body += (
                "\n\n<details><summary>Container logs (last lines)</summary>\n\n"
                f"```\n{logs}\n```\n</details>"
            )
        return body

    async def _comment(self, ref: TaskReference, body: str) -> None:
        try:
            await comment_on_issue(ref.full_repo, ref.issue, body, cli=self._gh)
        except Exception as exc:
            warning = CleanupWarning(f"Failed to post status comment: {exc}")
            logger.warning("Failed to post status comment", error=str(warning))
