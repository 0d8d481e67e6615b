# ruff: noqa: E402

from __future__ import annotations

import json
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from gpush.commit_messages import parse_change_id
from gpush.gerrit import QueryResult, ReviewServer
from gpush.git import CommitInfo, GitConfig
from gpush.models import ChangeRecord, GcSettings, StateDocument
from gpush.state import state_path

REPO_ROOT = Path("/repo")
REVIEW_URL = "ssh://review.example.org:29418/qt/qtbase"


def change_message(subject: str, change_id: str | None) -> str:
    if change_id is None:
        return f"{subject}\n"
    return f"{subject}\n\nChange-Id: {change_id}\n"


@dataclass
class FakeCommit:
    sha: str
    parents: list[str]
    message: str


@dataclass
class FakeRepo:
    """In-memory stand-in for the git plumbing GC uses."""

    commits: dict[str, FakeCommit] = field(default_factory=dict)
    refs: dict[str, str] = field(default_factory=dict)
    head: str | None = None
    delete_calls: list[list[str]] = field(default_factory=list)

    def commit(
        self,
        sha: str,
        parent: str | None = None,
        change_id: str | None = None,
        *,
        parents: list[str] | None = None,
    ) -> str:
        resolved = parents if parents is not None else ([parent] if parent else [])
        self.commits[sha] = FakeCommit(
            sha=sha, parents=resolved, message=change_message(f"commit {sha}", change_id)
        )
        return sha

    def branch(self, name: str, sha: str) -> None:
        self.refs[f"refs/heads/{name}"] = sha

    def ref(self, name: str, sha: str) -> None:
        self.refs[name] = sha

    def ancestors(self, starts: Iterable[str]) -> set[str]:
        seen: set[str] = set()
        stack = [sha for sha in starts if sha]
        while stack:
            sha = stack.pop()
            if sha in seen or sha not in self.commits:
                continue
            seen.add(sha)
            stack.extend(self.commits[sha].parents)
        return seen

    def iter_refs(
        self, repo_dir: Path, prefixes: Iterable[str], *, git_path: str | None = None
    ) -> Iterator[tuple[str, str]]:
        wanted = tuple(prefixes)
        for name in sorted(self.refs):
            if name.startswith(wanted):
                yield self.refs[name], name

    def resolve_commit(
        self, repo_dir: Path, rev: str, *, git_path: str | None = None
    ) -> str | None:
        if rev == "HEAD":
            return self.head
        return self.refs.get(rev)

    def iter_commit_messages(
        self,
        repo_dir: Path,
        starts: Iterable[str],
        excludes: Iterable[str] = (),
        *,
        git_path: str | None = None,
    ) -> Iterator[tuple[str, str]]:
        excluded = self.ancestors(self.refs[ref] for ref in excludes)
        for sha in sorted(self.ancestors(starts) - excluded):
            yield sha, self.commits[sha].message

    def read_commits(
        self, repo_dir: Path, shas: Iterable[str], *, git_path: str | None = None
    ) -> dict[str, CommitInfo]:
        infos: dict[str, CommitInfo] = {}
        for sha in shas:
            commit = self.commits.get(sha)
            if commit is None:
                continue
            infos[sha] = CommitInfo(
                sha=sha,
                first_parent=commit.parents[0] if commit.parents else None,
                change_id=parse_change_id(commit.message),
            )
        return infos

    def delete_refs(
        self, repo_dir: Path, refs: Iterable[str], *, git_path: str | None = None
    ) -> None:
        names = list(refs)
        self.delete_calls.append(names)
        for name in names:
            del self.refs[name]

    @contextmanager
    def patched(self) -> Iterator[FakeRepo]:
        with (
            patch("gpush.git.iter_refs", side_effect=self.iter_refs),
            patch("gpush.git.git_resolve_commit", side_effect=self.resolve_commit),
            patch("gpush.git.iter_commit_messages", side_effect=self.iter_commit_messages),
            patch("gpush.git.read_commits", side_effect=self.read_commits),
            patch("gpush.git.delete_refs", side_effect=self.delete_refs),
        ):
            yield self


@dataclass
class FakeGerrit:
    """Review server answering batched status queries from a fixed table."""

    changes: list[tuple[str, str, str, str]] = field(default_factory=list)
    queries: list[list[str]] = field(default_factory=list)

    def add(self, number: str, change_id: str, status: str = "NEW", branch: str = "dev") -> None:
        self.changes.append((number, change_id, branch, status))

    def query_changes(
        self, server: ReviewServer, terms: Iterable[str], *, settings: GcSettings
    ) -> QueryResult:
        wanted = set(terms)
        self.queries.append(sorted(wanted))
        result = QueryResult()
        for number, change_id, _branch, status in self.changes:
            if number in wanted or change_id in wanted:
                result.add(number, change_id, active=status not in {"MERGED", "ABANDONED"})
        return result

    @contextmanager
    def patched(self) -> Iterator[FakeGerrit]:
        with patch("gpush.gerrit.query_changes", side_effect=self.query_changes):
            yield self


def review_config(**extra: str) -> GitConfig:
    values = {
        "remote.gerrit.url": [REVIEW_URL],
        "branch.topic.remote": ["gerrit"],
        "branch.topic.merge": ["refs/heads/dev"],
    }
    for key, value in extra.items():
        values[key] = [value]
    return GitConfig(values)


def write_state(git_dir: Path, document: StateDocument) -> None:
    path = state_path(git_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document.model_dump(), indent=2) + "\n", encoding="utf-8")


def write_records(git_dir: Path, records: dict[str, str]) -> None:
    write_state(
        git_dir,
        StateDocument(
            changes=[
                ChangeRecord(key=key, change_id=change_id) for key, change_id in records.items()
            ]
        ),
    )
