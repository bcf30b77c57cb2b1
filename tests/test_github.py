"""Tests for the gh CLI wrappers."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from conftest import REF, completed

from commander.errors import GitHubCommandError
from commander.github import build_pr_body, comment_on_issue, create_pull_request, fetch_issue

_RUN_COMMAND = "commander.github.run_command"

_ISSUE_JSON = json.dumps(
    {
        "number": 42,
        "title": "Add a frobnicator",
        "body": "Please.",
        "labels": [{"name": "enhancement"}, {"name": "agent"}],
        "url": "https://github.com/acme/widgets/issues/42",
    }
)


class TestFetchIssue:
    async def test_parses_gh_json(self):
        with patch(_RUN_COMMAND, AsyncMock(return_value=completed(0, stdout=_ISSUE_JSON))) as run:
            issue = await fetch_issue(REF)

        assert issue.number == 42
        assert issue.title == "Add a frobnicator"
        assert issue.body == "Please."
        assert issue.labels == ["enhancement", "agent"]
        assert issue.url.endswith("/issues/42")
        assert run.await_args.args == (
            "gh",
            "issue",
            "view",
            "42",
            "--repo",
            "acme/widgets",
            "--json",
            "number,title,body,labels,url",
        )

    async def test_null_body(self):
        data = json.loads(_ISSUE_JSON) | {"body": None, "labels": []}
        with patch(_RUN_COMMAND, AsyncMock(return_value=completed(0, stdout=json.dumps(data)))):
            issue = await fetch_issue(REF)
        assert issue.body == ""
        assert issue.labels == []

    async def test_failure(self):
        failed = completed(1, stderr="Could not resolve to an issue")
        with (
            patch(_RUN_COMMAND, AsyncMock(return_value=failed)),
            pytest.raises(GitHubCommandError) as exc_info,
        ):
            await fetch_issue(REF)
        assert exc_info.value.command == "issue view"
        assert exc_info.value.returncode == 1
        assert "Could not resolve" in str(exc_info.value)


class TestCreatePullRequest:
    async def test_returns_url_and_labels(self):
        url = "https://github.com/acme/widgets/pull/7"
        with patch(_RUN_COMMAND, AsyncMock(return_value=completed(0, stdout=url))) as run:
            result = await create_pull_request("acme/widgets", "agent/issue-42", "T", "B")
        assert result == url
        args = list(run.await_args.args)
        assert args[:3] == ["gh", "pr", "create"]
        assert args[args.index("--head") + 1] == "agent/issue-42"
        assert args[args.index("--label") + 1] == "agent-pr"

    async def test_no_label(self):
        with patch(_RUN_COMMAND, AsyncMock(return_value=completed(0, stdout="u"))) as run:
            await create_pull_request("a/b", "br", "T", "B", label=None)
        assert "--label" not in run.await_args.args


class TestComment:
    async def test_posts_body(self):
        with patch(_RUN_COMMAND, AsyncMock(return_value=completed(0))) as run:
            await comment_on_issue("acme/widgets", 42, "hello", cli="/usr/bin/gh")
        assert run.await_args.args == (
            "/usr/bin/gh",
            "issue",
            "comment",
            "42",
            "--repo",
            "acme/widgets",
            "--body",
            "hello",
        )


def test_pr_body_closes_issue():
    body = build_pr_body(42)
    assert body.splitlines()[0] == "Closes #42"
    assert "from issue #42" in body
