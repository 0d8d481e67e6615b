"""Git helper functions used by gpush."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from . import exec as exec_util
from .commit_messages import parse_change_id

HEADS_PREFIX = "refs/heads/"
REMOTES_PREFIX = "refs/remotes/"
GPUSH_PREFIX = "refs/gpush/"


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path."""
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def _run_git(
    args: list[str],
    *,
    repo_dir: Path,
    git_path: str | None = None,
    input_text: str | None = None,
    context: str | None = None,
) -> str:
    return exec_util.run_typed(
        exec_util.CommandSpec(
            request=exec_util.CommandRequest(
                argv=tuple(git_command(["-C", str(repo_dir), *args], git_path=git_path)),
                input_text=input_text,
            ),
            parser=lambda result: result.stdout,
            context=context,
        )
    )


def _try_git(
    args: list[str], *, repo_dir: Path, git_path: str | None = None
) -> exec_util.CommandResult | None:
    return exec_util.run_with_runner(
        exec_util.CommandRequest(
            argv=tuple(git_command(["-C", str(repo_dir), *args], git_path=git_path)),
        )
    )


def git_repo_root(start: Path, *, git_path: str | None = None) -> Path | None:
    """Return the git repository root for a starting path.

    Args:
        start: Directory to search from.

    Returns:
        Repo root path or ``None`` if not inside a git work tree.
    """
    result = _try_git(["rev-parse", "--show-toplevel"], repo_dir=start, git_path=git_path)
    if result is None:
        raise exec_util.CommandExecutionError(
            request=exec_util.CommandRequest(argv=tuple(git_command([], git_path=git_path))),
            detail="missing required command: git",
        )
    if result.returncode != 0:
        return None
    resolved = result.stdout.strip()
    if not resolved:
        return None
    return Path(resolved)


def git_dir(repo_dir: Path, *, git_path: str | None = None) -> Path:
    """Return the absolute ``.git`` directory of a repository."""
    output = _run_git(
        ["rev-parse", "--absolute-git-dir"],
        repo_dir=repo_dir,
        git_path=git_path,
        context="git dir",
    )
    return Path(output.strip())


def git_resolve_commit(repo_dir: Path, rev: str, *, git_path: str | None = None) -> str | None:
    """Resolve a revision to a commit hash.

    Returns ``None`` when the revision does not name a commit, e.g. ``HEAD``
    in a repository without commits.
    """
    result = _try_git(
        ["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
        repo_dir=repo_dir,
        git_path=git_path,
    )
    if result is None or result.returncode != 0:
        return None
    return result.stdout.strip() or None


class GitConfig:
    """Read-only snapshot of ``git config --list`` output.

    Section and variable names are case-insensitive; subsection names are
    case-sensitive. Multi-valued keys resolve to their last value.

    Example:
        >>> config = GitConfig({"branch.Main.remote": ["origin"]})
        >>> config.get("Branch.Main.Remote")
        'origin'
        >>> config.get("branch.main.remote", "none")
        'none'
    """

    def __init__(self, values: dict[str, list[str]] | None = None) -> None:
        self._values: dict[str, list[str]] = {}
        for key, entries in (values or {}).items():
            self._values.setdefault(normalize_config_key(key), []).extend(entries)

    def get(self, key: str, default: str | None = None) -> str | None:
        entries = self._values.get(normalize_config_key(key))
        if not entries:
            return default
        return entries[-1]

    def subsections(self, section: str) -> list[str]:
        """Return the distinct subsection names of ``section``, in file order."""
        prefix = f"{section.lower()}."
        names: dict[str, None] = {}
        for key in self._values:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            name, sep, _variable = rest.rpartition(".")
            if sep and name:
                names[name] = None
        return list(names)

    def remotes(self) -> list[str]:
        return [name for name in self.subsections("remote") if self.get(f"remote.{name}.url")]


def normalize_config_key(key: str) -> str:
    section, sep, rest = key.partition(".")
    if not sep:
        return key.lower()
    subsection, sep, variable = rest.rpartition(".")
    if not sep:
        return f"{section.lower()}.{rest.lower()}"
    return f"{section.lower()}.{subsection}.{variable.lower()}"


def parse_config_list(raw: str) -> dict[str, list[str]]:
    """Parse ``git config --list -z`` output into a key/values mapping."""
    values: dict[str, list[str]] = {}
    for entry in raw.split("\0"):
        if not entry:
            continue
        key, _sep, value = entry.partition("\n")
        values.setdefault(key, []).append(value)
    return values


def load_git_config(repo_dir: Path, *, git_path: str | None = None) -> GitConfig:
    """Load the effective git configuration for a repository."""
    result = _try_git(["config", "--list", "-z"], repo_dir=repo_dir, git_path=git_path)
    if result is None:
        raise exec_util.CommandExecutionError(
            request=exec_util.CommandRequest(argv=tuple(git_command([], git_path=git_path))),
            detail="missing required command: git",
        )
    # An empty configuration exits non-zero; that is not an error here.
    if result.returncode != 0:
        return GitConfig()
    return GitConfig(parse_config_list(result.stdout))


def iter_refs(
    repo_dir: Path, prefixes: Iterable[str], *, git_path: str | None = None
) -> Iterator[tuple[str, str]]:
    """Yield ``(object_hash, ref_name)`` for every ref under ``prefixes``."""
    request = exec_util.PipeRequest(
        argv=tuple(
            git_command(
                [
                    "-C",
                    str(repo_dir),
                    "for-each-ref",
                    "--format=%(objectname) %(refname)",
                    *prefixes,
                ],
                git_path=git_path,
            )
        ),
    )
    with exec_util.open_pipe(request) as reader:
        while (record := reader.read_record()) is not None:
            if not record:
                continue
            sha, sep, name = record.partition(" ")
            if not sep:
                raise exec_util.CommandParseError(
                    request=request,
                    detail=f"unexpected for-each-ref output: {record!r}",
                    context="ref scan",
                )
            yield sha, name


def iter_commit_messages(
    repo_dir: Path,
    starts: Iterable[str],
    excludes: Iterable[str] = (),
    *,
    git_path: str | None = None,
) -> Iterator[tuple[str, str]]:
    """Yield ``(commit_hash, message)`` for commits reachable from ``starts``.

    Commits reachable from any of ``excludes`` are left out. Starting points
    and exclusions are fed to ``git log --stdin``.
    """
    lines = tuple([*starts, *(f"^{ref}" for ref in excludes)])
    if not any(not line.startswith("^") for line in lines):
        return
    request = exec_util.PipeRequest(
        argv=tuple(
            git_command(
                ["-C", str(repo_dir), "log", "-z", "--format=%H%n%B", "--stdin"],
                git_path=git_path,
            )
        ),
        input_lines=lines,
        delimiter="\0",
    )
    with exec_util.open_pipe(request) as reader:
        for record in reader:
            sha, _sep, message = record.partition("\n")
            if sha:
                yield sha, message


@dataclass(frozen=True)
class CommitInfo:
    """Commit hash, first parent, and Change-Id trailer of a commit."""

    sha: str
    first_parent: str | None
    change_id: str | None


def read_commits(
    repo_dir: Path, shas: Iterable[str], *, git_path: str | None = None
) -> dict[str, CommitInfo]:
    """Return commit metadata for exactly the given commits (no history walk)."""
    wanted = tuple(dict.fromkeys(shas))
    if not wanted:
        return {}
    request = exec_util.PipeRequest(
        argv=tuple(
            git_command(
                [
                    "-C",
                    str(repo_dir),
                    "log",
                    "-z",
                    "--no-walk=unsorted",
                    "--format=%H %P%n%B",
                    "--stdin",
                ],
                git_path=git_path,
            )
        ),
        input_lines=wanted,
        delimiter="\0",
    )
    commits: dict[str, CommitInfo] = {}
    with exec_util.open_pipe(request) as reader:
        for record in reader:
            header, _sep, message = record.partition("\n")
            fields = header.split()
            if not fields:
                continue
            commits[fields[0]] = CommitInfo(
                sha=fields[0],
                first_parent=fields[1] if len(fields) > 1 else None,
                change_id=parse_change_id(message),
            )
    return commits


def delete_refs(repo_dir: Path, refs: Iterable[str], *, git_path: str | None = None) -> None:
    """Delete refs in one ``git update-ref --stdin`` transaction."""
    directives = "".join(f"delete {ref}\n" for ref in refs)
    if not directives:
        return
    _run_git(
        ["update-ref", "--stdin"],
        repo_dir=repo_dir,
        git_path=git_path,
        input_text=directives,
        context="ref deletion",
    )


def strip_git_suffix(path: str) -> str:
    """Remove a trailing ``.git`` suffix from a path string.

    Example:
        >>> strip_git_suffix("qt/qtbase.git")
        'qt/qtbase'
    """
    normalized = path.strip().rstrip("/")
    if normalized.lower().endswith(".git"):
        return normalized[: -len(".git")]
    return normalized
