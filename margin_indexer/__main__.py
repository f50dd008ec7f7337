import asyncio
import signal
from .db import create_schema
from .main import build_indexer, configure_logging, shutdown_indexer

async def main():
    configure_logging()
    await create_schema()
    indexer = build_indexer()
    task = asyncio.create_task(indexer.run())
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, indexer.stop)
    await task
    await shutdown_indexer(indexer, task)

if __name__ == "__main__":
    asyncio.run(main())
