"""
Ticket store backed by Redis: ticket:{id} holds the record JSON and
player_tickets:{player_id} lists the player's ticket ids, newest first.
"""

import logging
from typing import Optional

from support_engine.config import REDIS_CONN_TIMEOUT, REDIS_URL, TICKET_TTL_SECONDS
from support_engine.models import TicketRecord

logger = logging.getLogger(__name__)

TICKET_PREFIX = "ticket:"
PLAYER_TICKETS_PREFIX = "player_tickets:"


def _ticket_key(ticket_id: str) -> str:
    return f"{TICKET_PREFIX}{ticket_id}"


def _player_key(player_id: str) -> str:
    return f"{PLAYER_TICKETS_PREFIX}{player_id}"


class TicketStore:
    def __init__(self, redis_client=None, ttl_seconds: int = TICKET_TTL_SECONDS):
        self._client = redis_client
        self.ttl_seconds = ttl_seconds

    def _redis(self):
        if self._client is None:
            import redis

            self._client = redis.from_url(
                REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=REDIS_CONN_TIMEOUT,
            )
        return self._client

    def create(self, record: TicketRecord) -> TicketRecord:
        r = self._redis()
        key = _ticket_key(record.ticket_id)
        if self.ttl_seconds > 0:
            r.set(key, record.model_dump_json(), ex=self.ttl_seconds)
        else:
            r.set(key, record.model_dump_json())
        r.lpush(_player_key(record.player_id), record.ticket_id)
        logger.info("Ticket %s stored for %s (status=%s).", record.ticket_id, record.player_id, record.status)
        return record

    def get(self, ticket_id: str) -> Optional[TicketRecord]:
        raw = self._redis().get(_ticket_key(ticket_id))
        if not raw:
            return None
        return TicketRecord.model_validate_json(raw)

    def list_for_player(self, player_id: str, limit: int = 50) -> list[TicketRecord]:
        """Player's tickets, newest first; ids whose record has expired are skipped."""
        r = self._redis()
        out: list[TicketRecord] = []
        for ticket_id in r.lrange(_player_key(player_id), 0, max(0, limit - 1)):
            record = self.get(ticket_id)
            if record is not None:
                out.append(record)
        return out
