"""
Load and replace-on-save operations over the gateway.

Both operations take an explicit policy:

- ``strict``: the first ConnectivityError/QueryError propagates to the handler.
- ``lenient``: failures are logged, the affected part is skipped, and the
  result carries a ``mode`` and the list of errors so the caller can report
  the degraded outcome.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .clock import utc_now_iso
from .config import STRICT
from .errors import ConnectivityError, PayloadError, QueryError
from .gateway import NOTES, TASKS, USERS
from .init_data import TelegramUser

logger = logging.getLogger(__name__)

TASK_TEXT_LIMIT = 500
NOTE_TEXT_LIMIT = 1000

TASK_COLUMNS = "id, text, completed, created_at"
NOTE_COLUMNS = "id, text, created_at"

_STORE_ERRORS = (ConnectivityError, QueryError)


# ---------------------------
# Response shaping
# ---------------------------

def format_task(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "text": row.get("text"),
        "completed": bool(row.get("completed")),
        "createdAt": row.get("created_at"),
    }


def format_note(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("id"),
        "text": row.get("text"),
        "createdAt": row.get("created_at"),
    }


# ---------------------------
# Load
# ---------------------------

@dataclass
class LoadResult:
    tasks: List[Dict[str, Any]] = field(default_factory=list)
    notes: List[Dict[str, Any]] = field(default_factory=list)
    mode: str = "success"
    errors: List[str] = field(default_factory=list)


def load_items(gateway, user_id: int, policy: str, limit: Optional[int] = 100) -> LoadResult:
    """Read a user's tasks and notes, newest first."""
    try:
        gateway.ping()
    except ConnectivityError as e:
        if policy == STRICT:
            raise
        logger.warning("Store unreachable, returning empty lists: %s", e)
        return LoadResult(mode="connection-error", errors=[str(e)])

    result = LoadResult()
    for relation, columns, formatter, target in (
        (TASKS, TASK_COLUMNS, format_task, result.tasks),
        (NOTES, NOTE_COLUMNS, format_note, result.notes),
    ):
        try:
            rows = gateway.select(
                relation, columns, {"user_id": user_id}, order=("created_at", "id"), descending=True, limit=limit
            )
        except _STORE_ERRORS as e:
            if policy == STRICT:
                raise
            logger.warning("Loading %s failed, continuing with an empty list: %s", relation, e)
            result.errors.append(f"{relation}: {e}")
            continue
        target.extend(formatter(row) for row in rows)
        logger.info("Loaded %d %s for user %s", len(rows), relation, user_id)

    if result.errors:
        result.mode = "partial"
    return result


# ---------------------------
# Save
# ---------------------------

def _text(value: Any, limit: int) -> str:
    return ("" if value is None else str(value))[:limit]


def _items(items: Any, name: str) -> List[Dict[str, Any]]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise PayloadError(f"{name} must be a list")
    for item in items:
        if not isinstance(item, dict):
            raise PayloadError(f"{name} items must be objects")
    return items


def build_task_rows(user_id: int, tasks: Any, now: Optional[str] = None) -> List[Dict[str, Any]]:
    """Validate client tasks and turn them into ``tasks`` rows."""
    now = now or utc_now_iso()
    return [
        {
            "user_id": user_id,
            "text": _text(task.get("text"), TASK_TEXT_LIMIT),
            "completed": bool(task.get("completed")),
            "created_at": task.get("createdAt") or now,
        }
        for task in _items(tasks, "tasks")
    ]


def build_note_rows(user_id: int, notes: Any, now: Optional[str] = None) -> List[Dict[str, Any]]:
    """Validate client notes and turn them into ``notes`` rows."""
    now = now or utc_now_iso()
    return [
        {
            "user_id": user_id,
            "text": _text(note.get("text"), NOTE_TEXT_LIMIT),
            "created_at": note.get("createdAt") or now,
        }
        for note in _items(notes, "notes")
    ]


def build_user_row(user: TelegramUser, now: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
        "updated_at": now or utc_now_iso(),
    }


@dataclass
class SaveResult:
    requested_tasks: int
    requested_notes: int
    saved_tasks: int = 0
    saved_notes: int = 0
    mode: str = "success"
    failed_steps: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class _Steps:
    """Runs save steps in order under one policy, recording lenient failures."""

    def __init__(self, policy: str, result: SaveResult) -> None:
        self.policy = policy
        self.result = result

    def run(self, step: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except _STORE_ERRORS as e:
            e.step = step
            if self.policy == STRICT:
                logger.error("Save step %s failed, aborting: %s", step, e)
                raise
            logger.warning("Save step %s failed, continuing: %s", step, e)
            self.result.failed_steps.append(step)
            self.result.errors.append(str(e))
            return None


def _rpc_counts(data: Any) -> Dict[str, int]:
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict):
        return {}
    return {k: int(v or 0) for k, v in data.items() if k in ("tasks", "notes")}


def save_items(
    gateway,
    user: TelegramUser,
    tasks: Any,
    notes: Any,
    policy: str,
    replace_rpc: Optional[str] = None,
) -> SaveResult:
    """
    Replace all of a user's tasks and notes with the supplied lists.

    Order: upsert user, delete tasks, delete notes, insert tasks, insert
    notes. Empty lists skip their insert but still clear. With
    ``replace_rpc`` the delete/insert steps run as one database function
    call, inside a single transaction.

    Raises:
        PayloadError for malformed ``tasks``/``notes`` payloads, before any
        store call is made.
    """
    now = utc_now_iso()
    task_rows = build_task_rows(user.id, tasks, now)
    note_rows = build_note_rows(user.id, notes, now)
    result = SaveResult(requested_tasks=len(task_rows), requested_notes=len(note_rows))

    try:
        gateway.ping()
    except ConnectivityError as e:
        e.step = "ping"
        if policy == STRICT:
            raise
        logger.warning("Store unreachable, nothing saved: %s", e)
        result.mode = "local-fallback"
        result.errors.append(str(e))
        return result

    steps = _Steps(policy, result)
    steps.run("upsert_user", lambda: gateway.upsert(USERS, build_user_row(user, now), on_conflict="id"))

    if replace_rpc:
        data = steps.run(
            "replace",
            lambda: gateway.rpc(replace_rpc, {"p_user_id": user.id, "p_tasks": task_rows, "p_notes": note_rows}),
        )
        counts = _rpc_counts(data)
        result.saved_tasks = counts.get("tasks", 0)
        result.saved_notes = counts.get("notes", 0)
    else:
        steps.run("delete_tasks", lambda: gateway.delete(TASKS, {"user_id": user.id}))
        steps.run("delete_notes", lambda: gateway.delete(NOTES, {"user_id": user.id}))
        if task_rows:
            inserted = steps.run("insert_tasks", lambda: gateway.insert(TASKS, task_rows))
            result.saved_tasks = len(inserted or [])
        if note_rows:
            inserted = steps.run("insert_notes", lambda: gateway.insert(NOTES, note_rows))
            result.saved_notes = len(inserted or [])

    if result.failed_steps:
        result.mode = "degraded"
    logger.info(
        "Saved %d/%d tasks, %d/%d notes for user %s",
        result.saved_tasks, result.requested_tasks, result.saved_notes, result.requested_notes, user.id,
    )
    return result
