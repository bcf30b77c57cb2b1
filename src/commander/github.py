"""GitHub integration via the ``gh`` CLI.

Shells out to ``gh`` rather than talking to the REST API so existing
``gh auth`` credentials are reused.
"""

from __future__ import annotations

import json

from commander.errors import GitHubCommandError
from commander.logger import logger
from commander.process import run_command
from commander.types import Issue, TaskReference

_GH_TIMEOUT = 60
_PROJECT_URL = "https://github.com/ungood/opencode-commander"


async def _gh(cli: str, command: str, *args: str) -> str:
    """Run ``gh <command> <args>``; return stripped stdout or raise."""
    result = await run_command(cli, *command.split(), *args, timeout=_GH_TIMEOUT)
    if result.returncode != 0:
        raise GitHubCommandError(command, result.returncode, result.stderr)
    return result.stdout


async def fetch_issue(ref: TaskReference, *, cli: str = "gh") -> Issue:
    logger.info("Fetching issue", repo=ref.full_repo, issue=ref.issue)
    stdout = await _gh(
        cli,
        "issue view",
        str(ref.issue),
        "--repo",
        ref.full_repo,
        "--json",
        "number,title,body,labels,url",
    )
    data = json.loads(stdout)
    return Issue(
        number=data["number"],
        title=data["title"],
        body=data.get("body") or "",
        labels=[label["name"] for label in data.get("labels") or []],
        url=data.get("url", ""),
    )


async def create_pull_request(
    repo: str,
    branch: str,
    title: str,
    body: str,
    *,
    label: str | None = "agent-pr",
    cli: str = "gh",
) -> str:
    """Open a PR for an already-pushed *branch*; returns the PR URL."""
    logger.info("Creating pull request", repo=repo, branch=branch)
    args = ["--repo", repo, "--head", branch, "--title", title, "--body", body]
    if label:
        args += ["--label", label]
    pr_url = await _gh(cli, "pr create", *args)
    logger.info("Pull request created", url=pr_url)
    return pr_url


async def comment_on_issue(repo: str, issue_number: int, body: str, *, cli: str = "gh") -> None:
    logger.info("Commenting on issue", repo=repo, issue=issue_number)
    await _gh(cli, "issue comment", str(issue_number), "--repo", repo, "--body", body)


def build_pr_body(issue_number: int) -> str:
    return "\n".join(
        [
            f"Closes #{issue_number}",
            "",
            "---",
            "",
            f"*This PR was automatically created by [opencode-commander]({_PROJECT_URL}) "
            f"from issue #{issue_number}.*",
        ]
    )
