"""Garbage collection for stale gpush tracking refs."""

from __future__ import annotations

from pathlib import Path

from .. import config, gerrit, git, state
from .. import exec as exec_util
from .. import log as gpush_log
from ..gc import GcError, perform_gc, schedule
from ..gc.common import log_debug
from ..io import die

_FATAL_ERRORS = (
    GcError,
    gerrit.GerritError,
    config.ConfigError,
    state.StateError,
    exec_util.CommandExecutionError,
    exec_util.CommandParseError,
)


def gc(args: object) -> None:
    """Prune stale tracking refs in the current repository.

    Args:
        args: CLI namespace with ``dry_run``, ``quiet``, and ``auto`` fields.

    Returns:
        None.
    """
    dry_run = bool(getattr(args, "dry_run", False))
    quiet = bool(getattr(args, "quiet", False))
    auto = bool(getattr(args, "auto", False))
    git_path = getattr(args, "git_path", None)

    try:
        repo_root = git.git_repo_root(Path.cwd(), git_path=git_path)
        if repo_root is None:
            die("command must be run inside a git repository")
        git_dir = git.git_dir(repo_root, git_path=git_path)
        git_config = git.load_git_config(repo_root, git_path=git_path)
        settings = config.load_settings(git_config, git_path=git_path)

        if auto:
            last_run = schedule.read_last_gc(git_dir)
            if not schedule.is_gc_due(last_run, settings.gc_interval_days):
                log_debug(f"gc not due last_run={last_run} interval={settings.gc_interval_days}")
                return

        gpush_log.info("Pruning stale Changes ...")
        result = perform_gc(
            repo_root,
            git_dir=git_dir,
            config=git_config,
            settings=settings,
            dry_run=dry_run,
            quiet=quiet,
        )
    except _FATAL_ERRORS as exc:
        die(str(exc))

    count = len(result.pruned_refs)
    if not count:
        gpush_log.info("Nothing to prune.")
    elif dry_run:
        gpush_log.info(f"Would prune {count} ref{'s' if count != 1 else ''}.")
    else:
        gpush_log.success(f"Pruned {count} ref{'s' if count != 1 else ''}.")

    if not dry_run:
        schedule.record_gc_run(git_dir)
        log_debug("recorded last gc run")
