"""
Per-user task collection.

Tasks are only ever created here (no updates, no deletes). Subscribers get
the full list, newest first, once when they subscribe and again after every
change, the same shape a live document query delivers.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from signal2noise.models import StoredTask, TaskRecord
from storage import db

logger = logging.getLogger(__name__)

Subscriber = Callable[[List[StoredTask]], None]
Unsubscribe = Callable[[], None]


class TaskStore(ABC):
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    @abstractmethod
    async def create(self, user_id: str, record: TaskRecord) -> StoredTask:
        """Persist a new task; the store assigns `id` and `created_at`."""
        raise NotImplementedError

    @abstractmethod
    async def list_tasks(self, user_id: str) -> List[StoredTask]:
        """All tasks for the user ordered by `created_at` descending."""
        raise NotImplementedError

    async def subscribe(self, user_id: str, callback: Subscriber) -> Unsubscribe:
        self._subscribers[user_id].append(callback)
        callback(await self.list_tasks(user_id))

        def unsubscribe() -> None:
            subs = self._subscribers.get(user_id, [])
            if callback in subs:
                subs.remove(callback)

        return unsubscribe

    async def _publish(self, user_id: str) -> None:
        subs = list(self._subscribers.get(user_id, []))
        if not subs:
            return
        snapshot = await self.list_tasks(user_id)
        for callback in subs:
            try:
                callback(list(snapshot))
            except Exception:
                logger.exception(f"Task subscriber for user {user_id} failed")


class InMemoryTaskStore(TaskStore):
    def __init__(self):
        super().__init__()
        self._tasks: Dict[str, List[StoredTask]] = defaultdict(list)

    def _next_timestamp(self, user_id: str) -> datetime:
        now = datetime.now(timezone.utc)
        existing = self._tasks.get(user_id)
        if existing:
            last = existing[-1].created_at
            if last is not None and now <= last:
                now = last + timedelta(microseconds=1)
        return now

    async def create(self, user_id: str, record: TaskRecord) -> StoredTask:
        task = StoredTask(
            **record.model_dump(exclude={"created_at"}),
            id=uuid.uuid4().hex,
            created_at=self._next_timestamp(user_id),
        )
        self._tasks[user_id].append(task)
        logger.info(f"Stored task {task.id} for user {user_id}: {task.task_name!r}")
        await self._publish(user_id)
        return task

    async def list_tasks(self, user_id: str) -> List[StoredTask]:
        return sorted(self._tasks.get(user_id, []), key=lambda t: t.created_at, reverse=True)


_INSERT_TASK = """
INSERT INTO tasks (id, user_id, task_name, priority, due_date, status, created_at, completed_at, time_tracked)
VALUES (
    $1, $2, $3, $4, $5, $6,
    GREATEST(
        clock_timestamp(),
        (SELECT max(created_at) + interval '1 microsecond' FROM tasks WHERE user_id = $2)
    ),
    $7, $8
)
RETURNING id, task_name, priority, due_date, status, created_at, completed_at, time_tracked
"""

_SELECT_TASKS = """
SELECT id, task_name, priority, due_date, status, created_at, completed_at, time_tracked
FROM tasks
WHERE user_id = $1
ORDER BY created_at DESC
"""


def _row_to_task(row) -> StoredTask:
    return StoredTask(
        id=str(row["id"]),
        task_name=row["task_name"],
        priority=row["priority"],
        due_date=row["due_date"] or "",
        status=row["status"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
        time_tracked=row["time_tracked"],
    )


class PostgresTaskStore(TaskStore):
    """Task store backed by the asyncpg pool in `storage.db`.

    Live updates are published for writes made through this instance.
    Use `open()` to get an instance with the pool up and the schema applied.
    """

    @classmethod
    async def open(cls, min_size: int = 1, max_size: int = 5) -> "PostgresTaskStore":
        await db.init_db_pool(min_size=min_size, max_size=max_size)
        try:
            await db.init_schema()
        except Exception:
            await db.close_db_pool()
            raise
        return cls()

    async def close(self) -> None:
        await db.close_db_pool()

    async def health(self) -> dict:
        return await db.health_check()

    async def create(self, user_id: str, record: TaskRecord) -> StoredTask:
        row = await db.fetchrow(
            _INSERT_TASK,
            uuid.uuid4(),
            user_id,
            record.task_name,
            record.priority,
            record.due_date,
            record.status,
            record.completed_at,
            record.time_tracked,
        )
        task = _row_to_task(row)
        logger.info(f"Stored task {task.id} for user {user_id}: {task.task_name!r}")
        await self._publish(user_id)
        return task

    async def list_tasks(self, user_id: str) -> List[StoredTask]:
        rows = await db.fetch(_SELECT_TASKS, user_id)
        return [_row_to_task(r) for r in rows]


class TaskFeed:
    """Keeps the latest snapshot delivered by a store subscription."""

    def __init__(self):
        self.latest: List[StoredTask] = []
        self.loaded = False
        self._unsubscribe: Optional[Unsubscribe] = None

    def _on_snapshot(self, tasks: List[StoredTask]) -> None:
        self.latest = tasks
        self.loaded = True

    async def attach(self, store: TaskStore, user_id: str) -> None:
        self.detach()
        self._unsubscribe = await store.subscribe(user_id, self._on_snapshot)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.latest = []
        self.loaded = False
