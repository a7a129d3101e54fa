"""Relational paste store on SQLAlchemy Core.

Works with any SQLAlchemy dialect in SUPPORTED_DIALECTS. At-most-once
creation relies on the primary key (or, for upgraded legacy tables, the
unique index): an insert either succeeds or raises IntegrityError.

The schema version lives in the `<prefix>config` table under `VERSION`.
It is compared with the package version once per handle and any pending
upgrade steps run before the handle is used.
"""
from __future__ import annotations
import json
import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ValidationError
from sqlalchemy import (
    Connection,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    event,
    insert,
    inspect,
    literal,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from paste_lib import __version__

from .base import StorageBackend
from .errors import BackendUnavailableError, StorageConfigurationError
from .keys import build_thread_index
from .records import (
    ATTACHMENT_KEYS,
    is_v2,
    normalize_comment,
    normalize_paste,
    paste_expire_date,
    paste_flags,
    paste_postdate,
    record_version,
    versioned_keys,
)
from .schema import PasteTables, build_tables

logger = logging.getLogger(__name__)

SUPPORTED_DIALECTS = frozenset({"sqlite", "postgresql", "mysql", "mariadb", "mssql", "oracle"})
VERSION_KEY = "VERSION"
# Upgrade steps, applied to stores whose recorded version is older.
META_COLUMNS_VERSION = (0, 21)
FOLDED_ATTACHMENTS_VERSION = (1, 0)


class DatabaseOptions(BaseModel):
    dsn: str
    usr: Optional[str]
    pwd: Optional[str]
    opt: Optional[Dict[str, Any]]
    tbl: str = ""


def _version_tuple(version: str) -> Tuple[int, ...]:
    parts = []
    for part in str(version).split("."):
        digits = "".join(ch for ch in part if ch.isdigit())
        parts.append(int(digits or 0))
    return tuple(parts)


def _decode_json(value: Any) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None


class DatabaseStorage(StorageBackend):
    """Paste store backed by a relational database."""

    def __init__(
        self,
        dsn: str,
        usr: Optional[str] = None,
        pwd: Optional[str] = None,
        tbl: str = "",
        opt: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Connect and make sure the tables exist in the current version.

        Args:
            dsn: SQLAlchemy connection URL, e.g. "sqlite:///data/paste.sq3"
                or "postgresql://host/pastes"
            usr: user name, overrides the one in `dsn` when given
            pwd: password, overrides the one in `dsn` when given
            tbl: table name prefix
            opt: extra keyword arguments for `sqlalchemy.create_engine`

        Raises:
            StorageConfigurationError: the connection target is not recognised
            BackendUnavailableError: the database cannot be reached or upgraded
        """
        self._prefix = tbl
        self._tables: PasteTables = build_tables(tbl)
        self._engine = self._create_engine(dsn, usr, pwd, dict(opt or {}))
        # a StaticPool hands every thread the same connection
        self._lock = threading.RLock() if isinstance(self._engine.pool, StaticPool) else nullcontext()
        self._attach()

    @classmethod
    def from_options(cls, **options: Any) -> "DatabaseStorage":
        try:
            opts = DatabaseOptions.model_validate(options)
        except ValidationError as exc:
            raise StorageConfigurationError(f"invalid database options: {exc}") from exc
        return cls(dsn=opts.dsn, usr=opts.usr, pwd=opts.pwd, tbl=opts.tbl, opt=opts.opt)

    @staticmethod
    def _create_engine(dsn: str, usr: Optional[str], pwd: Optional[str], opt: Dict[str, Any]) -> Engine:
        try:
            url = make_url(dsn)
        except ArgumentError as exc:
            raise StorageConfigurationError(f"unrecognised connection target {dsn!r}") from exc
        family = url.get_backend_name()
        if family not in SUPPORTED_DIALECTS:
            raise StorageConfigurationError(f"unsupported database type {family!r}")
        if usr is not None:
            url = url.set(username=usr)
        if pwd is not None:
            url = url.set(password=pwd)
        if family == "sqlite" and url.database in (None, "", ":memory:"):
            # one shared connection, otherwise each checkout sees an empty database
            opt.setdefault("poolclass", StaticPool)
            opt.setdefault("connect_args", {"check_same_thread": False})
        try:
            engine = create_engine(url, **opt)
        except ImportError as exc:
            raise BackendUnavailableError(f"database driver for {family!r} is not installed: {exc}") from exc
        except (ArgumentError, TypeError) as exc:
            raise StorageConfigurationError(f"invalid engine options: {exc}") from exc
        if family == "sqlite":
            DatabaseStorage._configure_sqlite(engine)
        return engine

    @staticmethod
    def _configure_sqlite(engine: Engine) -> None:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            # wait for concurrent writers instead of failing with SQLITE_BUSY
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    def close(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except SQLAlchemyError as exc:
                logger.exception("Database store failed to %s", action)
                raise BackendUnavailableError(f"failed to {action}: {exc}") from exc

    # -- schema --------------------------------------------------------

    def _attach(self) -> None:
        tables = self._tables
        with self._guard("attach to database"), self._engine.begin() as conn:
            existing = set(inspect(conn).get_table_names())
            if tables.paste.name not in existing:
                tables.metadata.create_all(conn)
                self._write_version(conn)
                logger.info("Created paste tables (prefix %r) at version %s", self._prefix, __version__)
                return
            version = self._read_version(conn, existing)
            if _version_tuple(version) < _version_tuple(__version__):
                self._upgrade(conn, version)
            elif version != __version__:
                logger.warning(
                    "Paste tables (prefix %r) are at version %s, newer than %s; leaving them as they are",
                    self._prefix,
                    version,
                    __version__,
                )

    def _read_version(self, conn: Connection, existing: set) -> str:
        config = self._tables.config
        if config.name not in existing:
            return "0.0.0"
        value = conn.execute(select(config.c.value).where(config.c.id == VERSION_KEY)).scalar()
        return value or "0.0.0"

    def _write_version(self, conn: Connection) -> None:
        config = self._tables.config
        conn.execute(delete(config).where(config.c.id == VERSION_KEY))
        conn.execute(insert(config).values(id=VERSION_KEY, value=__version__))

    def _upgrade(self, conn: Connection, version: str) -> None:
        tables = self._tables
        current = _version_tuple(version)
        logger.info("Upgrading paste tables (prefix %r) from %s to %s", self._prefix, version, __version__)

        if current < META_COLUMNS_VERSION:
            columns = {column["name"] for column in inspect(conn).get_columns(tables.paste.name)}
            quote = conn.dialect.identifier_preparer.quote
            column_type = Text().compile(dialect=conn.dialect)
            for name in ("meta",) + ATTACHMENT_KEYS:
                if name not in columns:
                    conn.execute(text(f"ALTER TABLE {quote(tables.paste.name)} ADD COLUMN {quote(name)} {column_type}"))

        # adds the config and comment tables where they are missing
        tables.metadata.create_all(conn)

        if current < FOLDED_ATTACHMENTS_VERSION:
            folded = self._fold_legacy_attachments(conn)
            if folded:
                logger.info("Moved attachments of %d paste(s) into their metadata", folded)
            for index in list(tables.paste.indexes) + list(tables.comment.indexes):
                index.create(conn, checkfirst=True)

        self._write_version(conn)

    def _fold_legacy_attachments(self, conn: Connection) -> int:
        paste = self._tables.paste
        rows = conn.execute(
            select(paste.c.dataid, paste.c.meta, paste.c.attachment, paste.c.attachmentname).where(
                paste.c.attachment.isnot(None)
            )
        ).all()
        for row in rows:
            meta = _decode_json(row.meta)
            if not isinstance(meta, dict):
                meta = {}
            if row.attachment:
                meta.setdefault("attachment", row.attachment)
                if row.attachmentname:
                    meta.setdefault("attachmentname", row.attachmentname)
            conn.execute(
                update(paste)
                .where(paste.c.dataid == row.dataid)
                .values(meta=json.dumps(meta), attachment=None, attachmentname=None)
            )
        return len(rows)

    # -- row mapping ---------------------------------------------------

    @staticmethod
    def _payload(record: Dict[str, Any]) -> Any:
        if is_v2(record):
            return json.dumps({key: value for key, value in record.items() if key != "meta"})
        return record.get("data")

    def _paste_row(self, paste_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        opendiscussion, burnafterreading = paste_flags(record)
        return {
            "dataid": paste_id,
            "data": self._payload(record),
            "postdate": paste_postdate(record),
            "expiredate": paste_expire_date(record),
            "opendiscussion": int(opendiscussion),
            "burnafterreading": int(burnafterreading),
            "meta": json.dumps(record["meta"]),
            "attachment": None,
            "attachmentname": None,
        }

    @staticmethod
    def _paste_from_row(row: Any) -> Dict[str, Any]:
        payload = _decode_json(row["data"])
        if isinstance(payload, dict) and is_v2(payload):
            record, version = payload, 2
        else:
            record, version = {"data": row["data"]}, 1
        created_key, _ = versioned_keys(version)

        meta = _decode_json(row["meta"])
        legacy = not isinstance(meta, dict)
        if legacy:
            meta = {}
        # rows written by older versions keep some fields only in columns
        postdate = row["postdate"]
        if created_key not in meta and postdate is not None and (legacy or int(postdate) > 0):
            meta[created_key] = int(postdate)
        expire_date = int(row["expiredate"] or 0)
        if expire_date > 0:
            meta.setdefault("expire_date", expire_date)
        if version == 1:
            for flag in ("opendiscussion", "burnafterreading"):
                if row[flag] and flag not in meta:
                    meta[flag] = True
            if row["attachment"] and "attachment" not in meta:
                meta["attachment"] = row["attachment"]
                if row["attachmentname"]:
                    meta.setdefault("attachmentname", row["attachmentname"])
        record["meta"] = meta
        return record

    # -- pastes --------------------------------------------------------

    def exists(self, paste_id: str) -> bool:
        paste = self._tables.paste
        with self._guard("check paste"), self._engine.connect() as conn:
            found = conn.execute(select(paste.c.dataid).where(paste.c.dataid == paste_id)).first()
        return found is not None

    def create(self, paste_id: str, paste: Dict[str, Any]) -> bool:
        record = normalize_paste(paste)
        row = self._paste_row(paste_id, record)
        with self._guard("create paste"):
            try:
                with self._engine.begin() as conn:
                    conn.execute(insert(self._tables.paste).values(**row))
            except IntegrityError:
                return False
        return True

    def read(self, paste_id: str) -> Optional[Dict[str, Any]]:
        paste = self._tables.paste
        with self._guard("read paste"), self._engine.connect() as conn:
            row = conn.execute(select(paste).where(paste.c.dataid == paste_id)).mappings().first()
        if row is None:
            return None
        return self._paste_from_row(row)

    def _delete_comments(self, conn: Connection, paste_id: str) -> None:
        comment = self._tables.comment
        conn.execute(delete(comment).where(comment.c.pasteid == paste_id))

    def delete(self, paste_id: str) -> None:
        paste = self._tables.paste
        with self._guard("delete paste"), self._engine.begin() as conn:
            conn.execute(delete(paste).where(paste.c.dataid == paste_id))
            self._delete_comments(conn, paste_id)

    # -- comments ------------------------------------------------------

    def exists_comment(self, paste_id: str, parent_id: str, comment_id: str) -> bool:
        comment = self._tables.comment
        query = select(comment.c.dataid).where(
            comment.c.dataid == comment_id,
            comment.c.pasteid == paste_id,
            comment.c.parentid == parent_id,
        )
        with self._guard("check comment"), self._engine.connect() as conn:
            return conn.execute(query).first() is not None

    def create_comment(self, paste_id: str, parent_id: str, comment_id: str, comment: Dict[str, Any]) -> bool:
        record = normalize_comment(comment)
        created_key, icon_key = versioned_keys(record_version(record))
        meta = record["meta"]
        paste, table = self._tables.paste, self._tables.comment

        # insert only while the paste row exists, in a single statement
        source = select(
            literal(comment_id, String),
            literal(paste_id, String),
            literal(parent_id, String),
            literal(self._payload(record), Text),
            literal(meta.get("nickname"), Text),
            literal(meta.get(icon_key), Text),
            literal(meta[created_key], Integer),
        ).where(select(paste.c.dataid).where(paste.c.dataid == paste_id).exists())
        statement = insert(table).from_select(
            ["dataid", "pasteid", "parentid", "data", "nickname", "vizhash", "postdate"], source
        )
        with self._guard("create comment"):
            try:
                with self._engine.begin() as conn:
                    inserted = conn.execute(statement).rowcount
            except IntegrityError:
                return False
        return inserted == 1

    def read_comments(self, paste_id: str) -> Dict[str, Dict[str, Any]]:
        comment = self._tables.comment
        with self._guard("read comments"), self._engine.connect() as conn:
            query = select(comment).where(comment.c.pasteid == paste_id).order_by(comment.c.postdate)
            rows = conn.execute(query).mappings().all()

        entries = []
        for row in rows:
            payload = _decode_json(row["data"])
            if isinstance(payload, dict) and is_v2(payload):
                record, version = payload, 2
            else:
                record, version = {"data": row["data"]}, 1
            created_key, icon_key = versioned_keys(version)
            meta: Dict[str, Any] = {created_key: int(row["postdate"] or 0)}
            if row["nickname"]:
                meta["nickname"] = row["nickname"]
            if row["vizhash"]:
                meta[icon_key] = row["vizhash"]
            record["meta"] = meta
            record["id"] = row["dataid"]
            record["parentid"] = row["parentid"]
            entries.append((meta[created_key], record))
        # stable sort: rows sharing a timestamp stay in insertion order
        entries.sort(key=lambda entry: entry[0])
        return build_thread_index(entries)

    # -- values --------------------------------------------------------

    @staticmethod
    def _value_id(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    def save_value(self, namespace: str, key: str, value: str) -> None:
        config = self._tables.config
        value_id = self._value_id(namespace, key)
        with self._guard("save value"), self._engine.begin() as conn:
            conn.execute(delete(config).where(config.c.id == value_id))
            conn.execute(insert(config).values(id=value_id, value=value))

    def load_value(self, namespace: str, key: str) -> str:
        config = self._tables.config
        query = select(config.c.value).where(config.c.id == self._value_id(namespace, key))
        with self._guard("load value"), self._engine.connect() as conn:
            row = conn.execute(query).first()
        if row is None:
            raise KeyError(key)
        return row.value

    # -- purge ---------------------------------------------------------

    def _get_expired_pastes(self, batch_size: int, now: int) -> List[str]:
        paste = self._tables.paste
        query = (
            select(paste.c.dataid)
            .where(paste.c.expiredate > 0, paste.c.expiredate <= now)
            .order_by(paste.c.expiredate)
            .limit(batch_size)
        )
        with self._guard("find expired pastes"), self._engine.connect() as conn:
            return [row.dataid for row in conn.execute(query)]

    def _delete_expired(self, paste_id: str, now: int) -> bool:
        paste = self._tables.paste
        with self._guard("purge paste"), self._engine.begin() as conn:
            result = conn.execute(
                delete(paste).where(
                    paste.c.dataid == paste_id,
                    paste.c.expiredate > 0,
                    paste.c.expiredate <= now,
                )
            )
            if result.rowcount != 1:
                return False
            self._delete_comments(conn, paste_id)
        return True
