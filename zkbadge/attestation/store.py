"""
Record store for principals, relations, nonces, claims and published config.

Field elements are stored as decimal strings. ``Store.session()`` wraps one
transaction: it commits when the block exits normally and rolls back on any
exception, so binding checks that raise leave no trace.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import HUMAN_STATUS_VERIFIED

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Principal(Base):
    __tablename__ = "principals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    handle: Mapped[str] = mapped_column(String(64), unique=True)
    identity: Mapped[Optional[str]] = mapped_column(String(80), unique=True, nullable=True)
    human_status: Mapped[str] = mapped_column(String(16), default="pending")
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    social_level: Mapped[int] = mapped_column(Integer, default=0)
    social_claim_hash: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    social_verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    generation_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    generation_claim_hash: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    birth_year_commitment: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)


class Relation(Base):
    __tablename__ = "relations"

    follower_id: Mapped[str] = mapped_column(
        ForeignKey("principals.id", ondelete="CASCADE"), primary_key=True
    )
    following_id: Mapped[str] = mapped_column(
        ForeignKey("principals.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class NonceRecord(Base):
    __tablename__ = "nonces"

    value: Mapped[str] = mapped_column(String(80), primary_key=True)
    scope: Mapped[str] = mapped_column(String(16))
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ClaimRecord(Base):
    __tablename__ = "claims"
    __table_args__ = (UniqueConstraint("principal_id", "kind", name="uq_claim_principal_kind"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    principal_id: Mapped[str] = mapped_column(ForeignKey("principals.id", ondelete="CASCADE"))
    kind: Mapped[str] = mapped_column(String(16))
    public_signals: Mapped[list] = mapped_column(JSON)
    claim_hash: Mapped[str] = mapped_column(String(80))
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ConfigEntry(Base):
    __tablename__ = "config"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(128))


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, connect_args=connect_args)
    return create_engine(url)


class Store:
    """Transactional record store backed by SQLAlchemy."""

    def __init__(self, url_or_engine: str | Engine = "sqlite://") -> None:
        if isinstance(url_or_engine, Engine):
            self._engine = url_or_engine
        else:
            self._engine = make_engine(url_or_engine)
        Base.metadata.create_all(self._engine)
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._sessions() as session:
            with session.begin():
                yield session

    # ------------------------------------------------------------------
    # Principals and relations
    # ------------------------------------------------------------------

    def add_principal(
        self,
        principal_id: str,
        handle: str,
        identity: int | None = None,
        human_status: str = "pending",
    ) -> Principal:
        principal = Principal(
            id=principal_id,
            handle=handle,
            identity=str(identity) if identity is not None else None,
            human_status=human_status,
            social_level=0,
        )
        if human_status == HUMAN_STATUS_VERIFIED:
            principal.verified_at = utcnow()
        with self.session() as session:
            session.add(principal)
        return principal

    def certify(self, principal_id: str, identity: int) -> None:
        """Record an oracle-certified identity; an assigned identity never changes."""
        with self.session() as session:
            principal = session.get(Principal, principal_id)
            if principal is None:
                raise KeyError(principal_id)
            if principal.identity is not None and principal.identity != str(identity):
                raise ValueError(f"principal {principal_id} already has an identity")
            principal.identity = str(identity)
            principal.human_status = HUMAN_STATUS_VERIFIED
            principal.verified_at = utcnow()

    def get_principal(self, principal_id: str) -> Optional[Principal]:
        with self.session() as session:
            return session.get(Principal, principal_id)

    def follow(self, follower_id: str, following_id: str) -> None:
        if follower_id == following_id:
            raise ValueError("a principal cannot relate to itself")
        with self.session() as session:
            if session.get(Relation, (follower_id, following_id)) is None:
                session.add(Relation(follower_id=follower_id, following_id=following_id))

    def unfollow(self, follower_id: str, following_id: str) -> None:
        with self.session() as session:
            session.execute(
                delete(Relation).where(
                    Relation.follower_id == follower_id,
                    Relation.following_id == following_id,
                )
            )

    def relation_identities(self, principal_id: str) -> Dict[int, str]:
        """Map identity -> human status for every principal ``principal_id`` relates to."""
        stmt = (
            select(Principal.identity, Principal.human_status)
            .join(Relation, Relation.following_id == Principal.id)
            .where(Relation.follower_id == principal_id, Principal.identity.is_not(None))
        )
        with self.session() as session:
            return {int(identity): status for identity, status in session.execute(stmt)}

    def verified_identities(self) -> List[int]:
        stmt = select(Principal.identity).where(
            Principal.human_status == HUMAN_STATUS_VERIFIED,
            Principal.identity.is_not(None),
        )
        with self.session() as session:
            return [int(identity) for identity in session.scalars(stmt)]

    def get_claim(self, principal_id: str, kind: str) -> Optional[ClaimRecord]:
        stmt = select(ClaimRecord).where(
            ClaimRecord.principal_id == principal_id, ClaimRecord.kind == kind
        )
        with self.session() as session:
            return session.scalars(stmt).first()

    def count_claims(self, kind: str | None = None) -> int:
        stmt = select(ClaimRecord)
        if kind is not None:
            stmt = stmt.where(ClaimRecord.kind == kind)
        with self.session() as session:
            return len(session.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Config entries
    # ------------------------------------------------------------------

    @staticmethod
    def read_config(session: Session) -> Dict[str, str]:
        return {entry.key: entry.value for entry in session.scalars(select(ConfigEntry))}

    @staticmethod
    def write_config(session: Session, key: str, value: str) -> None:
        entry = session.get(ConfigEntry, key)
        if entry is None:
            session.add(ConfigEntry(key=key, value=value))
        else:
            entry.value = value
