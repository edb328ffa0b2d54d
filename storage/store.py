
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from utils.timeutil import to_datetime

logger = logging.getLogger("storage")

metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


odds_snapshots = Table(
    "odds_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("fixture_id", BigInteger, nullable=False, index=True),
    Column("kickoff", DateTime(timezone=True), index=True),
    Column("home_team", String(255)),
    Column("away_team", String(255)),
    Column("league", String(255)),
    Column("market_id", Integer),
    Column("market_name", String(255)),
    Column("selection", String(255), nullable=False),
    Column("line", Numeric(6, 2, asdecimal=False)),
    Column("best_odds", Numeric(6, 3, asdecimal=False)),
    Column("best_bookmaker", String(100)),
    Column("fair_odds", Numeric(6, 3, asdecimal=False)),
    Column("ev", Numeric(6, 2, asdecimal=False)),
    Column("bookmaker_count", Integer),
    Column("created_at", DateTime(timezone=True), default=_utcnow, index=True),
)

tracked_bets = Table(
    "tracked_bets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("fixture_id", BigInteger, nullable=False),
    Column("home_team", String(255)),
    Column("away_team", String(255)),
    Column("league", String(255)),
    Column("kickoff", DateTime(timezone=True)),
    Column("market_id", Integer),
    Column("market_name", String(255)),
    Column("selection", String(255), nullable=False),
    Column("line", Numeric(6, 2, asdecimal=False)),
    Column("odds", Numeric(6, 3, asdecimal=False), nullable=False),
    Column("fair_odds", Numeric(6, 3, asdecimal=False)),
    Column("ev_at_placement", Numeric(6, 2, asdecimal=False)),
    Column("stake_units", Numeric(6, 2, asdecimal=False)),
    Column("stake_amount", Numeric(10, 2, asdecimal=False)),
    Column("bookmaker", String(100)),
    Column("result", String(20), default="pending", index=True),
    Column("profit", Numeric(10, 2, asdecimal=False), default=0),
    Column("placed_at", DateTime(timezone=True), default=_utcnow, index=True),
    Column("settled_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), default=_utcnow),
)


class StoreError(Exception):
    """A persistence operation failed."""


def _where(stmt, criteria):
    return stmt.where(*criteria) if criteria else stmt


def _row(mapping) -> Dict[str, Any]:
    out = dict(mapping)
    for k, v in out.items():
        if isinstance(v, datetime):
            out[k] = to_datetime(v)
    return out


class Store:
    """Thin, fallible accessor over the snapshot and tracked-bet tables.

    Calls are independent transactions; nothing spans batches.
    """

    def __init__(self, url: str = "sqlite:///ev_snapshots.db", *, engine: Engine | None = None):
        if engine is None:
            kwargs: Dict[str, Any] = {}
            if url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
                if url in ("sqlite://", "sqlite:///:memory:"):
                    kwargs["poolclass"] = StaticPool
            engine = create_engine(url, **kwargs)
        self.engine = engine
        self.tables: Dict[str, Table] = dict(metadata.tables)

    def create_schema(self) -> None:
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"create_schema: {e}") from e

    def table(self, name: str) -> Table:
        try:
            return self.tables[name]
        except KeyError:
            raise StoreError(f"unknown table {name!r}") from None

    def insert_batch(self, table: str, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(self.table(table)), rows)
        except SQLAlchemyError as e:
            raise StoreError(f"insert into {table}: {e}") from e
        return len(rows)

    def insert_one(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        t = self.table(table)
        try:
            with self.engine.begin() as conn:
                res = conn.execute(insert(t), row)
                pk = res.inserted_primary_key[0]
                created = conn.execute(select(t).where(t.c.id == pk)).mappings().first()
        except SQLAlchemyError as e:
            raise StoreError(f"insert into {table}: {e}") from e
        return _row(created)

    def select(
        self,
        table: str,
        *criteria,
        order_by: Optional[str] = None,
        descending: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
        columns: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        t = self.table(table)
        cols = [t.c[c] for c in columns] if columns else [t]
        stmt = _where(select(*cols), criteria)
        if order_by:
            col = t.c[order_by]
            stmt = stmt.order_by(col.desc() if descending else col.asc(), t.c.id.asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self.engine.connect() as conn:
                return [_row(m) for m in conn.execute(stmt).mappings()]
        except SQLAlchemyError as e:
            raise StoreError(f"select from {table}: {e}") from e

    def count(self, table: str, *criteria) -> int:
        t = self.table(table)
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(_where(select(func.count()).select_from(t), criteria)).scalar_one())
        except SQLAlchemyError as e:
            raise StoreError(f"count {table}: {e}") from e

    def update(self, table: str, values: Dict[str, Any], *criteria) -> int:
        try:
            with self.engine.begin() as conn:
                return conn.execute(_where(update(self.table(table)), criteria).values(**values)).rowcount
        except SQLAlchemyError as e:
            raise StoreError(f"update {table}: {e}") from e

    def delete(self, table: str, *criteria) -> int:
        try:
            with self.engine.begin() as conn:
                return conn.execute(_where(delete(self.table(table)), criteria)).rowcount
        except SQLAlchemyError as e:
            raise StoreError(f"delete from {table}: {e}") from e

    def ping(self) -> bool:
        try:
            self.select("tracked_bets", columns=["id"], limit=1)
        except StoreError as e:
            logger.warning("store ping failed: %s", e)
            return False
        return True
