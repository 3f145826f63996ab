"""
ExploreValley API - Document store adapter

Transactional core between the relational store and the in-memory document.

read_data():
  1. Fetch every table in parallel (optional tables degrade to empty)
  2. Reshape rows into the document, attach restaurant menus
  3. Validate against the document model (fatal on corrupt data)
  4. Rebuild user / behavior profiles

mutate_data(mutator, label):
  1. Load via read_data()                      ─┐
  2. Deep-clone as `before`                     │
  3. Throttled backup snapshot to Redis         │  in memory only,
  4. mutator(db) mutates the document in place  │  any error = zero writes
  5. Operational rules (unless label exempt)    │
  6. Profile syncs                              │
  7. Final validation                          ─┘
  8. Persist table by table in WRITE_ORDER
  9. Return the persisted document

There is no lock: two overlapping calls both load, and the later writer wins.
Step 8 can fail part-way; PersistenceError then names the tables written and
the tables not confirmed.
"""
import asyncio
import inspect
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from explorevalley.core.config import get_settings
from explorevalley.core.errors import MissingTableError, PersistenceError, StorageError
from explorevalley.core.redis_client import get_redis
from explorevalley.db.supabase import SupabaseClient, get_store_client
from explorevalley.db.tables import TABLES, WRITE_ORDER, TableSpec, document_to_rows, row_key, rows_to_document
from explorevalley.models.document import Database, validate_document
from explorevalley.services.operational_rules import apply_operational_rules
from explorevalley.services.user_profiles import sync_behavior_profiles, sync_user_profiles

settings = get_settings()
logger = logging.getLogger(__name__)

Mutator = Callable[[Database], Any]


def _in_filter(keys: set[str]) -> str:
    quoted = ",".join('"' + k.replace('"', '\\"') + '"' for k in sorted(keys))
    return f"({quoted})"


class DocumentStore:
    def __init__(self, client: SupabaseClient | None = None, redis: aioredis.Redis | None = None):
        self.client = client or get_store_client()
        self.redis = redis if redis is not None else get_redis()

    # ── Read path ──────────────────────────────────────────────────────────────

    async def _fetch_table(self, spec: TableSpec) -> list[dict[str, Any]]:
        try:
            return await self.client.select_all(spec.table, order=spec.order_by)
        except MissingTableError:
            if not spec.optional_table:
                raise
            logger.warning("Optional table %s is missing; reading it as empty", spec.table)
            return []

    async def fetch_rows(self) -> dict[str, list[dict[str, Any]]]:
        names = list(TABLES)
        results = await asyncio.gather(*(self._fetch_table(TABLES[n]) for n in names))
        return dict(zip(names, results))

    def _build(self, rows: dict[str, list[dict[str, Any]]]) -> Database:
        db = validate_document(rows_to_document(rows))
        sync_user_profiles(db)
        sync_behavior_profiles(db)
        return db

    async def read_data(self) -> Database:
        return self._build(await self.fetch_rows())

    # ── Write path ─────────────────────────────────────────────────────────────

    async def mutate_data(self, mutator: Mutator, label: str | None = None) -> Database:
        stored = await self.fetch_rows()
        db = self._build(stored)
        before = db.clone()

        await self._backup(before, label)

        result = mutator(db)
        if inspect.isawaitable(result):
            await result

        working = validate_document(db)
        if label not in settings.RULE_EXEMPT_LABELS:
            apply_operational_rules(before, working)
        sync_user_profiles(working)
        sync_behavior_profiles(working)
        final = validate_document(working)

        await self._persist(stored, document_to_rows(before), document_to_rows(final), label)
        return final

    async def _backup(self, snapshot: Database, label: str | None) -> None:
        if not settings.BACKUP_ENABLED or not label or label in settings.BACKUP_SKIP_LABELS:
            return
        throttle_key = f"{settings.BACKUP_KEY_PREFIX}:{label}"
        try:
            acquired = await self.redis.set(throttle_key, "1", nx=True, ex=settings.BACKUP_MIN_INTERVAL_SECONDS)
            if not acquired:
                return
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            await self.redis.setex(
                f"{settings.BACKUP_KEY_PREFIX}:{label}:{stamp}",
                settings.BACKUP_RETENTION_SECONDS,
                json.dumps(snapshot.to_document()),
            )
            logger.info("Backup snapshot stored for label=%s at %s", label, stamp)
        except RedisError as exc:
            logger.warning("Backup snapshot for label=%s skipped: %s", label, exc)

    async def _write_table(
        self,
        spec: TableSpec,
        stored_rows: list[dict[str, Any]],
        before_rows: list[dict[str, Any]],
        after_rows: list[dict[str, Any]],
    ) -> int:
        stored_keys = {row_key(spec, r) for r in stored_rows}
        before_by_key = {row_key(spec, r): r for r in before_rows}
        after_keys = {row_key(spec, r) for r in after_rows}

        if spec.append_only:
            fresh = [r for r in after_rows if row_key(spec, r) not in stored_keys]
            await self.client.insert_ignore_stripping_missing_columns(
                spec.table, fresh, spec.conflict_key, strippable=spec.optional_columns,
            )
            return len(fresh)

        changed = [
            r for r in after_rows
            if row_key(spec, r) not in stored_keys or before_by_key.get(row_key(spec, r)) != r
        ]
        stale = stored_keys - after_keys if spec.replace else set(before_by_key) - after_keys

        # Deletes precede inserts and skip an empty write unless the table is clearable.
        if stale and (after_rows or spec.clearable):
            await self.client.delete_where(spec.table, spec.conflict_key, "in", _in_filter(stale))
        elif stale:
            logger.warning("Not deleting %d rows from %s: new content is empty", len(stale), spec.table)

        await self.client.upsert_stripping_missing_columns(
            spec.table, changed, spec.conflict_key, strippable=spec.optional_columns,
        )
        return len(changed)

    async def _persist(
        self,
        stored: dict[str, list[dict[str, Any]]],
        before: dict[str, list[dict[str, Any]]],
        after: dict[str, list[dict[str, Any]]],
        label: str | None,
    ) -> None:
        written: list[str] = []
        for index, name in enumerate(WRITE_ORDER):
            spec = TABLES[name]
            try:
                count = await self._write_table(spec, stored.get(name, []), before.get(name, []), after[name])
            except MissingTableError:
                if not spec.optional_table:
                    raise self._partial(spec, "table missing", written, index)
                logger.warning("Optional table %s is missing; write skipped", spec.table)
                continue
            except StorageError as exc:
                raise self._partial(spec, exc.detail, written, index) from exc
            if count:
                logger.debug("Wrote %d rows to %s (label=%s)", count, spec.table, label)
            written.append(spec.table)

    def _partial(self, spec: TableSpec, detail: str, written: list[str], index: int) -> PersistenceError:
        pending = [TABLES[n].table for n in WRITE_ORDER[index:]]
        logger.error(
            "Persistence failed at %s: %s | written=%s | not confirmed=%s",
            spec.table, detail, written, pending,
        )
        return PersistenceError(spec.table, detail, list(written), pending)


async def read_data() -> Database:
    return await DocumentStore().read_data()


async def mutate_data(mutator: Mutator, label: str | None = None) -> Database:
    return await DocumentStore().mutate_data(mutator, label)
