"""Gerrit review-server access over ssh."""

from __future__ import annotations

import json
import re
import shlex
from collections.abc import Iterable
from dataclasses import dataclass, field
from urllib.parse import urlparse

from pydantic import ValidationError

from . import exec as exec_util
from . import log as gpush_log
from .git import strip_git_suffix
from .models import GcSettings, ReviewRecord

TERMINAL_STATUSES = frozenset({"MERGED", "ABANDONED"})

_SCP_PATTERN = re.compile(r"^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?P<path>.+)$")


class GerritError(RuntimeError):
    """Raised when the review server cannot be queried or answers garbage."""


@dataclass(frozen=True)
class ReviewServer:
    """ssh address and project of a Gerrit server.

    Example:
        >>> ReviewServer.from_url("ssh://me@review.example.org:29418/qt/qtbase.git")
        ReviewServer(host='review.example.org', project='qt/qtbase', user='me', port=29418)
        >>> ReviewServer.from_url("codereview:qt/qtbase").destination
        'codereview'
    """

    host: str
    project: str
    user: str | None = None
    port: int | None = None

    @classmethod
    def from_url(cls, url: str, *, project: str | None = None) -> ReviewServer:
        raw = url.strip()
        if "://" in raw:
            parsed = urlparse(raw)
            if (parsed.scheme or "").lower() not in {"ssh", "git+ssh", "ssh+git"}:
                raise GerritError(f"remote URL is not an ssh URL: {url}")
            if not parsed.hostname:
                raise GerritError(f"remote URL has no host: {url}")
            try:
                port = parsed.port
            except ValueError as exc:
                raise GerritError(f"remote URL has an invalid port: {url}") from exc
            path = parsed.path
            user = parsed.username
            host = parsed.hostname
        else:
            match = _SCP_PATTERN.match(raw)
            if match is None:
                raise GerritError(f"remote URL is not an ssh URL: {url}")
            path = match.group("path")
            user = match.group("user")
            host = match.group("host")
            port = None
        resolved_project = project or strip_git_suffix(path.lstrip("/"))
        if not resolved_project:
            raise GerritError(f"cannot determine Gerrit project from remote URL: {url}")
        return cls(host=host, project=resolved_project, user=user, port=port)

    @property
    def destination(self) -> str:
        if self.user:
            return f"{self.user}@{self.host}"
        return self.host


@dataclass
class QueryResult:
    """Review status of queried Changes.

    Attributes:
        ids_by_key: Gerrit change number to Change-Id.
        keys_by_id: Change-Id to every change number carrying it (one per
            branch the Change was uploaded to).
        active_by_id: Change-Id to whether any of its records is still open.
    """

    ids_by_key: dict[str, str] = field(default_factory=dict)
    keys_by_id: dict[str, list[str]] = field(default_factory=dict)
    active_by_id: dict[str, bool] = field(default_factory=dict)

    def add(self, key: str, change_id: str, *, active: bool) -> None:
        self.ids_by_key[key] = change_id
        keys = self.keys_by_id.setdefault(change_id, [])
        if key not in keys:
            keys.append(key)
        self.active_by_id[change_id] = self.active_by_id.get(change_id, False) or active

    def is_active(self, change_id: str) -> bool:
        return self.active_by_id.get(change_id, False)


def build_query_command(
    server: ReviewServer, terms: Iterable[str], *, ssh_command: str = "ssh"
) -> list[str]:
    """Build the ssh invocation for a batched ``gerrit query``."""
    query = " OR ".join(f"change:{term}" for term in terms)
    cmd = shlex.split(ssh_command) or ["ssh"]
    if server.port is not None:
        cmd.extend(["-p", str(server.port)])
    cmd.extend(
        [
            server.destination,
            "gerrit",
            "query",
            "--format",
            "JSON",
            "--no-limit",
            f"project:{server.project}",
            f"({query})",
        ]
    )
    return cmd


def parse_query_output(output: str) -> QueryResult:
    """Parse newline-delimited JSON from ``gerrit query --format JSON``.

    Records without ``number`` or ``id`` are skipped. Records without
    ``branch`` or ``status`` are fatal, as are malformed lines, error
    records, and truncated result sets.

    Raises:
        GerritError: On any fatal condition.
    """
    result = QueryResult()
    for line_number, line in enumerate(output.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            raise GerritError(f"malformed JSON from Gerrit on line {line_number}: {exc}") from exc
        if not isinstance(payload, dict):
            raise GerritError(f"unexpected JSON value from Gerrit on line {line_number}")
        record_type = payload.get("type")
        if record_type == "stats":
            if payload.get("moreChanges"):
                raise GerritError("Gerrit query result was truncated (moreChanges)")
            continue
        if record_type == "error":
            raise GerritError(f"Gerrit query failed: {payload.get('message') or 'unknown error'}")
        try:
            record = ReviewRecord.model_validate(payload)
        except ValidationError as exc:
            raise GerritError(f"invalid record from Gerrit on line {line_number}: {exc}") from exc
        if not record.number or not record.id:
            gpush_log.trace(f"[gerrit] skipping record without number/id on line {line_number}")
            continue
        if not record.branch:
            raise GerritError(f"Gerrit record for change {record.number} has no branch")
        if not record.status:
            raise GerritError(f"Gerrit record for change {record.number} has no status")
        active = record.status.upper() not in TERMINAL_STATUSES
        gpush_log.trace(
            f"[gerrit] change {record.number} id={record.id} "
            f"branch={record.branch} status={record.status}"
        )
        result.add(record.number, record.id, active=active)
    return result


def query_changes(
    server: ReviewServer, terms: Iterable[str], *, settings: GcSettings
) -> QueryResult:
    """Query the review status of Changes by Change-Id or change number.

    Issues one batched query; an empty batch does not contact the server.
    """
    wanted = sorted(set(terms))
    if not wanted:
        return QueryResult()
    argv = build_query_command(server, wanted, ssh_command=settings.ssh_command)
    gpush_log.debug(f"[gerrit] querying {len(wanted)} change(s) on {server.host}")
    try:
        output = exec_util.run_typed(
            exec_util.CommandSpec(
                request=exec_util.CommandRequest(
                    argv=tuple(argv), timeout_seconds=settings.query_timeout_seconds
                ),
                parser=lambda completed: completed.stdout,
                context="gerrit query",
            )
        )
    except exec_util.CommandExecutionError as exc:
        raise GerritError(str(exc)) from exc
    return parse_query_output(output)
