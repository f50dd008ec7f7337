import os

APP_TITLE = os.getenv("APP_TITLE", "MarginMaster Indexer")
DATABASE_URL = os.getenv("DATABASE_URL")
SUI_NETWORK = os.getenv("SUI_NETWORK", "testnet").lower()
MARGIN_MASTER_PACKAGE_ID = os.getenv("MARGIN_MASTER_PACKAGE_ID", "0x0")
POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "5000"))
PAGE_SIZE = int(os.getenv("INDEXER_PAGE_SIZE", "50"))
CURSOR_FILE = os.getenv("INDEXER_CURSOR_FILE", ".indexer-cursors.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SUI_GRAPHQL_URLS = {
    "mainnet": "https://sui-mainnet.mystenlabs.com/graphql",
    "testnet": "https://sui-testnet.mystenlabs.com/graphql",
    "devnet": "https://sui-devnet.mystenlabs.com/graphql",
}

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is required")
if SUI_NETWORK not in SUI_GRAPHQL_URLS:
    raise RuntimeError(f"SUI_NETWORK must be one of {sorted(SUI_GRAPHQL_URLS)}, got {SUI_NETWORK!r}")
if POLL_INTERVAL_MS <= 0 or PAGE_SIZE <= 0:
    raise RuntimeError("POLL_INTERVAL_MS and INDEXER_PAGE_SIZE must be positive")

SUI_GRAPHQL_URL = os.getenv("SUI_GRAPHQL_URL", SUI_GRAPHQL_URLS[SUI_NETWORK])
