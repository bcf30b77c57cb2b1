"""Task prompt sent to the agent."""

from __future__ import annotations

from commander.types import Issue, TaskReference


def build_task_prompt(ref: TaskReference, issue: Issue) -> str:
    """Build the structured task prompt for *issue*.

    The section headers are a fixed contract with the agent; keep them
    stable.
    """
    return "\n".join(
        [
            f"You are working on the repository {ref.full_repo}.",
            "",
            "## Task",
            issue.title,
            "",
            "## Description",
            issue.body,
            "",
            "## Instructions",
            f"- You are on branch `{ref.branch_name}`",
            "- Make the changes described above",
            "- Run any relevant tests",
            "- Commit your changes with clear, descriptive commit messages",
            "- Do NOT create a pull request -- the orchestrator will handle that",
            "",
            "## Context",
            f"- Source issue: {ref}",
            "- When you are done, simply stop. The orchestrator will detect completion and "
            "create the PR.",
        ]
    )
