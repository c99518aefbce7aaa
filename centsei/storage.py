from __future__ import annotations

import json
from typing import Any

from loguru import logger
from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine

metadata = MetaData()

kv_store = Table(
    "kv_store",
    metadata,
    Column("key", String(255), primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now(), onupdate=func.now()),
)

ENTRIES_KEY = "entries"
ROLLOVER_KEY = "rollover"
TIMEZONE_KEY = "timezone"
WEEKLY_BALANCES_KEY = "weekly_balances"
SCORE_HISTORY_KEY = "score_history"


def create_store_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


class KeyValueStore:
    """JSON values under string keys; the engine's persistence collaborator."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def init_schema(self) -> None:
        metadata.create_all(self.engine)

    def get(self, key: str, default: Any = None) -> Any:
        with self.engine.begin() as conn:
            raw = conn.execute(
                select(kv_store.c.value).where(kv_store.c.key == key)
            ).scalar_one_or_none()
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable value stored under {}", key)
            return default

    def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value, sort_keys=True)
        with self.engine.begin() as conn:
            exists = conn.execute(
                select(kv_store.c.key).where(kv_store.c.key == key)
            ).first()
            if exists:
                conn.execute(
                    update(kv_store).where(kv_store.c.key == key).values(value=raw)
                )
            else:
                conn.execute(insert(kv_store).values(key=key, value=raw))
        logger.debug("Stored {} ({} bytes)", key, len(raw))
