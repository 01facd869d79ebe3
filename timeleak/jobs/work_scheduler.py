"""
Durable unique-work scheduler.

Each unit of work is identified by a unique name. The record for a name is
persisted in the key-value store, so pending work survives a process restart
(see restore()). Timers are asyncio tasks.

Guarantees:
    - At most one live (ENQUEUED or RUNNING) record per name. REPLACE swaps
      the record and cancels the old timer; KEEP leaves live work alone.
    - A running execution is never cancelled by a replace. It finishes, but
      it cannot overwrite the newer record.
    - RETRY results are re-enqueued with exponential backoff. If the run
      already re-armed its own name, the retry goes to "<name>.retry" so the
      next regular occurrence is not pushed back.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import (
    bind_sync_context,
    clear_sync_context,
    get_logger,
)
from timeleak.models.domain import HOUR_MS, MINUTE_MS, ScheduledSyncWork, WorkState
from timeleak.services.redis_client import KeyValueStore
from timeleak.utils.clock import Clock

logger = get_logger(__name__)

RETRY_SLOT_SUFFIX = ".retry"
CONSTRAINT_RECHECK_SECONDS = 60
MAX_SLEEP_CHUNK_SECONDS = 300  # re-read the clock at least this often while waiting


class ExistingWorkPolicy(str, Enum):
    REPLACE = "replace"
    KEEP = "keep"


class WorkResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    initial_delay_ms: int = 15 * MINUTE_MS
    max_delay_ms: int = 5 * HOUR_MS
    max_attempts: int = 5

    def delay_for(self, run_attempt: int) -> int:
        """Delay before the next attempt after `run_attempt` attempts have run."""
        exponent = max(run_attempt - 1, 0)
        return min(self.initial_delay_ms * (2**exponent), self.max_delay_ms)


WorkHandler = Callable[[ScheduledSyncWork], Awaitable[WorkResult]]
NetworkProbe = Callable[[], Awaitable[bool]]


class WorkSchedulerError(Exception):
    """Raised for scheduler misuse (unknown handler, bad arguments)."""

    def __init__(self, message: str, work_name: str | None = None):
        super().__init__(message)
        self.work_name = work_name


def retry_slot_for(name: str) -> str:
    return name if name.endswith(RETRY_SLOT_SUFFIX) else f"{name}{RETRY_SLOT_SUFFIX}"


class DurableWorkScheduler:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock,
        backoff: BackoffPolicy | None = None,
        network_probe: NetworkProbe | None = None,
        prefix: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.clock = clock
        self.backoff = backoff or BackoffPolicy()
        self.network_probe = network_probe
        self.prefix = prefix or settings.KEY_PREFIX
        self._sleep = sleep
        self._handlers: dict[str, WorkHandler] = {}
        self._tasks: dict[str, tuple[str, asyncio.Task]] = {}
        self._running: set[str] = set()
        # Executions whose slot was re-armed while they were still running
        self._detached: dict[str, set[asyncio.Task]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Registration and persistence
    # ------------------------------------------------------------------

    def register_handler(self, key: str, handler: WorkHandler) -> None:
        self._handlers[key] = handler

    def _key(self, name: str) -> str:
        return f"{self.prefix}:work:{name}"

    async def _load(self, name: str) -> ScheduledSyncWork | None:
        raw = await self.store.get(self._key(name))
        if raw is None:
            return None
        try:
            return ScheduledSyncWork.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Discarding unreadable work record", work_name=name, error=str(e))
            return None

    async def _save(self, work: ScheduledSyncWork) -> None:
        saved = await self.store.set(self._key(work.name), json.dumps(work.to_dict()))
        if not saved:
            logger.warning("Work record not persisted", work_name=work.name, work_id=work.work_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enqueue_unique(
        self,
        name: str,
        delay_ms: int,
        handler: str,
        *,
        network_required: bool = True,
        policy: ExistingWorkPolicy = ExistingWorkPolicy.REPLACE,
        input_data: dict | None = None,
        run_attempt: int = 0,
    ) -> ScheduledSyncWork:
        """
        Schedule `handler` to run under `name` after `delay_ms`.

        Raises:
            WorkSchedulerError: If no handler is registered under that key
        """
        if handler not in self._handlers:
            raise WorkSchedulerError(f"No handler registered for '{handler}'", work_name=name)

        async with self._lock:
            existing = await self._load(name)
            if policy == ExistingWorkPolicy.KEEP and existing and existing.state.is_live:
                logger.debug("Keeping existing live work", work_name=name, work_id=existing.work_id)
                return existing

            work = ScheduledSyncWork(
                name=name,
                work_id=uuid.uuid4().hex,
                target_at_ms=self.clock.now_ms() + max(delay_ms, 0),
                state=WorkState.ENQUEUED,
                handler=handler,
                run_attempt=run_attempt,
                network_required=network_required,
                input_data=dict(input_data or {}),
            )
            await self._save(work)
            self._arm(work)

        logger.info(
            "Work enqueued",
            work_name=name,
            work_id=work.work_id,
            delay_ms=max(delay_ms, 0),
            replaced=existing.work_id if existing and existing.state.is_live else None,
        )
        return work

    async def query_status(self, name: str) -> ScheduledSyncWork | None:
        return await self._load(name)

    async def cancel_unique(self, name: str) -> bool:
        """Cancel live work. A running execution finishes but its outcome is discarded."""
        async with self._lock:
            work = await self._load(name)
            if work is None or not work.state.is_live:
                return False
            work.state = WorkState.CANCELLED
            await self._save(work)
            self._disarm(name)

        logger.info("Work cancelled", work_name=name, work_id=work.work_id)
        return True

    async def restore(self, names: Iterable[str]) -> list[ScheduledSyncWork]:
        """
        Re-arm persisted work after a restart.

        ENQUEUED records keep their target (a past target fires right away).
        RUNNING records belong to a process that died mid-run and are re-queued.
        """
        restored = []
        async with self._lock:
            for name in names:
                work = await self._load(name)
                if work is None or not work.state.is_live:
                    continue
                if work.handler not in self._handlers:
                    logger.warning("Cannot restore work without handler", work_name=name, handler=work.handler)
                    continue
                if work.state == WorkState.RUNNING:
                    work.state = WorkState.ENQUEUED
                    work.target_at_ms = self.clock.now_ms()
                    await self._save(work)
                self._arm(work)
                restored.append(work)

        logger.info("Persisted work restored", work_names=[work.name for work in restored])
        return restored

    async def wait_for(self, name: str) -> None:
        """Wait for executions still running under `name`, then the armed task."""
        pending = list(self._detached.get(name, ()))
        entry = self._tasks.get(name)
        if entry is not None:
            pending.append(entry[1])
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def armed_work_id(self, name: str) -> str | None:
        """work_id of the timer currently armed for `name`, if any."""
        entry = self._tasks.get(name)
        if entry is None or entry[1].done():
            return None
        return entry[0]

    async def shutdown(self) -> None:
        tasks = [task for _, task in self._tasks.values() if not task.done()]
        tasks.extend(task for detached in self._detached.values() for task in detached if not task.done())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._detached.clear()
        logger.info("Work scheduler stopped", cancelled_tasks=len(tasks))

    # ------------------------------------------------------------------
    # Timers and execution
    # ------------------------------------------------------------------

    def _arm(self, work: ScheduledSyncWork) -> None:
        self._disarm(work.name)
        task = asyncio.create_task(self._run_when_due(work), name=f"work:{work.name}")
        self._tasks[work.name] = (work.work_id, task)

    def _disarm(self, name: str) -> None:
        entry = self._tasks.get(name)
        if entry is None:
            return
        work_id, task = entry
        self._tasks.pop(name, None)
        if task.done():
            return
        if work_id in self._running:
            detached = self._detached.setdefault(name, set())
            detached.add(task)
            task.add_done_callback(detached.discard)
        else:
            task.cancel()

    async def _wait_until(self, target_at_ms: int) -> None:
        while True:
            remaining_ms = target_at_ms - self.clock.now_ms()
            if remaining_ms <= 0:
                return
            await self._sleep(min(remaining_ms / 1000, MAX_SLEEP_CHUNK_SECONDS))

    async def _network_available(self) -> bool:
        if self.network_probe is None:
            return True
        try:
            return await self.network_probe()
        except Exception as e:
            logger.warning("Network probe failed", error=str(e))
            return False

    async def _run_when_due(self, work: ScheduledSyncWork) -> None:
        await self._wait_until(work.target_at_ms)

        if work.network_required:
            while not await self._network_available():
                logger.info("Waiting for network before running work", work_name=work.name)
                await self._sleep(CONSTRAINT_RECHECK_SECONDS)

        async with self._lock:
            current = await self._load(work.name)
            if current is None or current.work_id != work.work_id or current.state != WorkState.ENQUEUED:
                logger.debug("Skipping superseded work", work_name=work.name, work_id=work.work_id)
                return
            current.state = WorkState.RUNNING
            current.run_attempt += 1
            await self._save(current)
            self._running.add(current.work_id)

        bind_sync_context(work_name=current.name, work_id=current.work_id, run_attempt=current.run_attempt)
        try:
            result = await self._execute(current)
            await self._complete(current, result)
        finally:
            self._running.discard(current.work_id)
            clear_sync_context()

    async def _execute(self, work: ScheduledSyncWork) -> WorkResult:
        handler = self._handlers[work.handler]
        try:
            return await handler(work)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Work handler raised", work_name=work.name, error=str(e))
            return WorkResult.FAILURE

    async def _complete(self, work: ScheduledSyncWork, result: WorkResult) -> None:
        async with self._lock:
            latest = await self._load(work.name)
            superseded = latest is None or latest.work_id != work.work_id
            cancelled = not superseded and latest.state == WorkState.CANCELLED

            if cancelled:
                logger.info("Discarding outcome of cancelled work", work_name=work.name, result=result.value)
                return

            if result == WorkResult.RETRY:
                if work.run_attempt >= self.backoff.max_attempts:
                    logger.error(
                        "Work retries exhausted",
                        work_name=work.name,
                        run_attempt=work.run_attempt,
                    )
                    result = WorkResult.FAILURE
                else:
                    retry = self._retry_record(work, superseded)
                    await self._save(retry)
                    self._arm(retry)
                    logger.info(
                        "Work retry scheduled",
                        work_name=retry.name,
                        run_attempt=work.run_attempt,
                        delay_ms=retry.target_at_ms - self.clock.now_ms(),
                    )
                    if not superseded:
                        return

            if superseded:
                logger.debug("Work finished after being replaced", work_name=work.name, result=result.value)
                return

            work.state = WorkState.SUCCEEDED if result == WorkResult.SUCCESS else WorkState.FAILED
            await self._save(work)

        logger.info("Work finished", work_name=work.name, state=work.state.value)

    def _retry_record(self, work: ScheduledSyncWork, superseded: bool) -> ScheduledSyncWork:
        return ScheduledSyncWork(
            name=retry_slot_for(work.name) if superseded else work.name,
            work_id=uuid.uuid4().hex,
            target_at_ms=self.clock.now_ms() + self.backoff.delay_for(work.run_attempt),
            state=WorkState.ENQUEUED,
            handler=work.handler,
            run_attempt=work.run_attempt,
            network_required=work.network_required,
            input_data={**work.input_data, "retry_of": work.name},
        )
