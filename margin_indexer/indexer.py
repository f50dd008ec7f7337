import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from .events import EventType
from .handlers import HANDLERS
from .sui_graphql import EventSourceError

logger = logging.getLogger(__name__)

@dataclass
class CycleReport:
    started_at: datetime
    applied: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)
    source_error: bool = False

    def as_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "applied": dict(self.applied),
            "failed": list(self.failed),
            "source_error": self.source_error,
        }

class Indexer:
    """Polls every event type, applies handlers, and advances cursors.

    One event type is drained page by page before the next. Each event runs in
    its own transaction; a page's cursor is saved only after every event on
    it was applied. A failing page keeps its cursor and is retried next cycle.
    """

    def __init__(self, source, session_factory, cursor_store, poll_interval: float,
                 handlers=None, sleep=None):
        self.source = source
        self.session_factory = session_factory
        self.cursor_store = cursor_store
        self.poll_interval = poll_interval
        self.handlers = handlers or HANDLERS
        self._sleep = sleep or self._wait_for_stop
        self._stopping = asyncio.Event()
        self.cursors = cursor_store.load()
        self.last_cycle: CycleReport | None = None

    def stop(self):
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def _wait_for_stop(self, seconds: float):
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def apply_page(self, events) -> int:
        applied = 0
        for event in events:
            handler = self.handlers[event.event_type]
            async with self.session_factory() as db:
                try:
                    await handler(db, event)
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
            applied += 1
        return applied

    async def drain(self, event_type: EventType) -> int:
        key = event_type.value
        cursor = self.cursors.get(key)
        total = 0
        while True:
            page = await self.source.query(event_type, cursor)
            total += await self.apply_page(page.events)

            advanced = bool(page.next_cursor) and page.next_cursor != cursor
            if advanced:
                cursor = page.next_cursor
                self.cursors[key] = cursor
                self.cursor_store.save(key, cursor)

            if page.events:
                logger.info("Processed %d %s events (more=%s)", len(page.events), key, page.has_next_page)
            if not page.has_next_page or self.stopping:
                break
            if not advanced:
                logger.warning("Source reported more %s events without a new cursor", key)
                break
        return total

    async def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=datetime.now(timezone.utc))
        for event_type in self.handlers:
            if self.stopping:
                break
            try:
                report.applied[event_type.value] = await self.drain(event_type)
            except EventSourceError as e:
                report.failed.append(event_type.value)
                report.source_error = True
                logger.error("Event source failed for %s: %s", event_type.value, e)
            except Exception:
                report.failed.append(event_type.value)
                logger.exception("Error processing %s events, will retry from cursor %s",
                                 event_type.value, self.cursors.get(event_type.value))
        self.last_cycle = report
        return report

    async def run(self):
        logger.info("Starting event indexer for %d event types", len(self.handlers))
        while not self.stopping:
            delay = self.poll_interval
            try:
                report = await self.run_cycle()
                if report.source_error:
                    delay = self.poll_interval * 2
            except Exception:
                logger.exception("Error in indexer main loop")
                delay = self.poll_interval * 2
            if self.stopping:
                break
            await self._sleep(delay)
        logger.info("Event indexer stopped")
