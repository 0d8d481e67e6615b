"""GC against a real repository; only the review server is faked."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

import gpush.commands.gc as gc_cmd
from gpush import git
from gpush.config import load_settings
from gpush.gc import PruneBucket, perform_gc, schedule
from tests.gpush.helpers import REVIEW_URL, FakeGerrit, change_message, write_records

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")

LOCAL_ID = "I1111111111111111111111111111111111111111"
MERGED_ID = "I3333333333333333333333333333333333333333"
BASE_ID = "I5555555555555555555555555555555555555555"
ABANDONED_ID = "I6666666666666666666666666666666666666666"


def _git(repo: Path, *args: str, stdin: str | None = None) -> str:
    completed = subprocess.run(
        [
            "git",
            "-c",
            "user.name=Test Dev",
            "-c",
            "user.email=dev@example.org",
            "-C",
            str(repo),
            *args,
        ],
        input=stdin,
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


class _Builder:
    def __init__(self, repo: Path) -> None:
        self.repo = repo
        self.tree = _git(repo, "mktree", stdin="")

    def commit(self, subject: str, parent: str | None = None, change_id: str | None = None) -> str:
        args = ["commit-tree", self.tree, "-m", change_message(subject, change_id).rstrip("\n")]
        if parent:
            args.extend(["-p", parent])
        return _git(self.repo, *args)

    def ref(self, name: str, sha: str) -> None:
        _git(self.repo, "update-ref", name, sha)


def _gpush_refs(repo: Path) -> list[str]:
    output = _git(repo, "for-each-ref", "--format=%(refname)", "refs/gpush/")
    return sorted(line for line in output.splitlines() if line)


@pytest.fixture
def review_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("HOME", str(tmp_path))
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/topic")
    _git(repo, "config", "remote.gerrit.url", REVIEW_URL)
    _git(repo, "config", "branch.topic.remote", "gerrit")
    _git(repo, "config", "branch.topic.merge", "refs/heads/dev")

    build = _Builder(repo)
    upstream = build.commit("upstream")
    build.ref("refs/remotes/gerrit/dev", upstream)
    local = build.commit("local work", upstream, LOCAL_ID)
    build.ref("refs/heads/topic", local)

    merged = build.commit("merged work", upstream, MERGED_ID)
    build.ref("refs/gpush/i1_pushed", local)
    build.ref("refs/gpush/i1_base", upstream)
    build.ref("refs/gpush/i3_pushed", merged)
    build.ref("refs/gpush/i8_pushed", merged)
    build.ref("refs/gpush/state", upstream)

    base = build.commit("base of series", upstream, BASE_ID)
    top = build.commit("local work", base, LOCAL_ID)
    abandoned = build.commit("abandoned", upstream, ABANDONED_ID)
    build.ref("refs/gpush/g100_2", top)
    build.ref("refs/gpush/g101_1", base)
    build.ref("refs/gpush/g200_1", abandoned)

    write_records(git.git_dir(repo), {"1": LOCAL_ID, "3": MERGED_ID})
    return repo


def _gerrit() -> FakeGerrit:
    server = FakeGerrit()
    server.add("100", LOCAL_ID)
    server.add("101", BASE_ID)
    server.add("103", MERGED_ID, status="MERGED")
    server.add("200", ABANDONED_ID, status="ABANDONED")
    return server


def test_perform_gc_on_real_repository(review_repo: Path) -> None:
    config = git.load_git_config(review_repo)
    server = _gerrit()

    with server.patched():
        result = perform_gc(
            review_repo,
            git_dir=git.git_dir(review_repo),
            config=config,
            settings=load_settings(config),
        )

    assert result.prune_set.refs(PruneBucket.STATE) == ["refs/gpush/i3_pushed"]
    assert result.prune_set.refs(PruneBucket.UNRECOGNIZED) == ["refs/gpush/i8_pushed"]
    assert result.prune_set.refs(PruneBucket.FETCHED) == ["refs/gpush/g200_1"]
    assert _gpush_refs(review_repo) == [
        "refs/gpush/g100_2",
        "refs/gpush/g101_1",
        "refs/gpush/i1_base",
        "refs/gpush/i1_pushed",
        "refs/gpush/state",
    ]
    assert server.queries == [["100", "101", "200", MERGED_ID]]


def test_gc_command_dry_run_leaves_repository_alone(
    review_repo: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(review_repo)
    before = _gpush_refs(review_repo)

    with _gerrit().patched():
        gc_cmd.gc(SimpleNamespace(dry_run=True, quiet=False, auto=False))

    assert _gpush_refs(review_repo) == before
    assert "Would prune 3 refs." in capsys.readouterr().out
    assert schedule.read_last_gc(git.git_dir(review_repo)) is None


def test_gc_command_records_run_and_is_idempotent(
    review_repo: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(review_repo)

    with _gerrit().patched():
        gc_cmd.gc(SimpleNamespace(dry_run=False, quiet=False, auto=False))
        assert "Pruned 3 refs." in capsys.readouterr().out
        gc_cmd.gc(SimpleNamespace(dry_run=False, quiet=False, auto=False))
        assert "Nothing to prune." in capsys.readouterr().out

    assert schedule.read_last_gc(git.git_dir(review_repo)) is not None
