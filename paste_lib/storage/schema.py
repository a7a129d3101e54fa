"""SQLAlchemy table definitions for the relational paste store.

Uses SQLAlchemy Core (not ORM). Every table name carries the configured
prefix so several installations can share one database.
"""
from __future__ import annotations
from dataclasses import dataclass

from sqlalchemy import (
    Column,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
)


@dataclass(frozen=True)
class PasteTables:
    metadata: MetaData
    paste: Table
    comment: Table
    config: Table


def build_tables(prefix: str = "") -> PasteTables:
    metadata = MetaData()

    paste = Table(
        f"{prefix}paste",
        metadata,
        Column("dataid", String(16), primary_key=True),
        Column("data", Text),
        Column("postdate", Integer),
        Column("expiredate", Integer),
        Column("opendiscussion", Integer),
        Column("burnafterreading", Integer),
        Column("meta", Text),
        # Attachments used to live in their own columns; they are folded
        # into `meta` now and the columns are only read for old rows.
        Column("attachment", Text),
        Column("attachmentname", Text),
    )
    # Legacy tables were created without a primary key; the unique index
    # gives them the same insert-if-absent behaviour after an upgrade.
    Index(f"{prefix}paste_dataid_uq", paste.c.dataid, unique=True)
    Index(f"{prefix}paste_expiredate", paste.c.expiredate)

    comment = Table(
        f"{prefix}comment",
        metadata,
        Column("dataid", String(16), nullable=False),
        Column("pasteid", String(16), nullable=False),
        Column("parentid", String(16), nullable=False),
        Column("data", Text),
        Column("nickname", Text),
        Column("vizhash", Text),
        Column("postdate", Integer),
        PrimaryKeyConstraint("dataid", "pasteid", "parentid"),
    )
    Index(f"{prefix}comment_key_uq", comment.c.dataid, comment.c.pasteid, comment.c.parentid, unique=True)
    Index(f"{prefix}comment_parent", comment.c.pasteid)

    config = Table(
        f"{prefix}config",
        metadata,
        Column("id", String(64), primary_key=True),
        Column("value", Text),
    )

    return PasteTables(metadata=metadata, paste=paste, comment=comment, config=config)
