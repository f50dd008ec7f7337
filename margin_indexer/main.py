import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from .config import (
    APP_TITLE, SUI_NETWORK, SUI_GRAPHQL_URL, MARGIN_MASTER_PACKAGE_ID,
    POLL_INTERVAL_MS, PAGE_SIZE, CURSOR_FILE, LOG_LEVEL,
)
from .db import engine, SessionLocal, create_schema
from .cursors import JsonFileCursorStore
from .indexer import Indexer
from .sui_graphql import SuiEventSource

logger = logging.getLogger(__name__)

def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

def build_indexer(session_factory=SessionLocal) -> Indexer:
    source = SuiEventSource(SUI_GRAPHQL_URL, MARGIN_MASTER_PACKAGE_ID, page_size=PAGE_SIZE)
    logger.info("Sui GraphQL client initialized network=%s url=%s", SUI_NETWORK, SUI_GRAPHQL_URL)
    return Indexer(
        source=source,
        session_factory=session_factory,
        cursor_store=JsonFileCursorStore(CURSOR_FILE),
        poll_interval=POLL_INTERVAL_MS / 1000,
    )

async def shutdown_indexer(indexer: Indexer, task: asyncio.Task):
    # the page in flight finishes before the engine goes away
    indexer.stop()
    await task
    await indexer.source.aclose()
    await engine.dispose()

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await create_schema()
    indexer = build_indexer()
    task = asyncio.create_task(indexer.run())
    app.state.indexer = indexer
    try:
        yield
    finally:
        await shutdown_indexer(indexer, task)

app = FastAPI(title=APP_TITLE, lifespan=lifespan)

@app.get("/health")
async def health(request: Request):
    indexer = getattr(request.app.state, "indexer", None)
    last = indexer.last_cycle if indexer else None
    return {
        "status": "ok" if indexer and not indexer.stopping else "stopping",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "network": SUI_NETWORK,
        "cursors": dict(indexer.cursors) if indexer else {},
        "last_cycle": last.as_dict() if last else None,
    }
