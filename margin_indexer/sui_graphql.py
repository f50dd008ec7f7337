import json
import logging
import httpx
from .events import EventPage, EventRecord, EventType

logger = logging.getLogger(__name__)

EVENTS_QUERY = """
query QueryEvents($eventType: String!, $after: String, $limit: Int) {
  events(filter: { eventType: $eventType }, after: $after, first: $limit) {
    pageInfo { hasNextPage endCursor }
    edges {
      cursor
      node {
        type { repr }
        json
        timestamp
        transactionBlock { digest }
      }
    }
  }
}
"""

class EventSourceError(Exception):
    """Network or protocol failure talking to the event source; retry later."""

class SuiEventSource:
    def __init__(self, url: str, package_id: str, page_size: int = 50, client: httpx.AsyncClient | None = None):
        self.url = url
        self.package_id = package_id
        self.page_size = page_size
        self._client = client or httpx.AsyncClient(timeout=20)

    def event_filter(self, event_type: EventType) -> str:
        return f"{self.package_id}::events::{event_type.value}"

    async def graphql(self, query: str, variables: dict) -> dict:
        try:
            r = await self._client.post(self.url, json={"query": query, "variables": variables})
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EventSourceError(f"event query failed: {e}") from e
        if not isinstance(body, dict):
            raise EventSourceError("event query returned a non-object body")
        if body.get("errors"):
            raise EventSourceError(f"event query returned errors: {body['errors']}")
        return body.get("data") or {}

    async def query(self, event_type: EventType, cursor: str | None = None) -> EventPage:
        data = await self.graphql(EVENTS_QUERY, {
            "eventType": self.event_filter(event_type),
            "after": cursor,
            "limit": self.page_size,
        })
        events = data.get("events") or {}
        page_info = events.get("pageInfo") or {}
        records = [_decode_edge(event_type, edge) for edge in events.get("edges") or []]
        return EventPage(
            events=records,
            has_next_page=bool(page_info.get("hasNextPage")),
            next_cursor=page_info.get("endCursor") or None,
        )

    async def aclose(self):
        await self._client.aclose()

def _decode_edge(event_type: EventType, edge: dict) -> EventRecord:
    node = edge.get("node") or {}
    payload = node.get("json")
    # some endpoints serialize the Move struct as a JSON string
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            payload = {}
    if not isinstance(payload, dict):
        payload = {}
    tx = (node.get("transactionBlock") or {}).get("digest") or edge.get("cursor") or ""
    return EventRecord(
        event_type=event_type,
        tx_digest=tx,
        payload=payload,
        timestamp=node.get("timestamp"),
        cursor=edge.get("cursor"),
    )
