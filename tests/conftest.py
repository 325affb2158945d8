"""Shared fixtures: ORM models on in-memory SQLite, audited registry, tracked sessions."""

import html
from types import SimpleNamespace

import pytest
from sqlalchemy import Column, ForeignKey, Integer, String, create_engine
from sqlalchemy.orm import sessionmaker, validates
from sqlalchemy.pool import StaticPool

from audit_trail.domain.registry import AuditedEntityRegistry
from audit_trail.infrastructure.database.audit_repository_db import SqlAlchemyAuditRepository
from audit_trail.infrastructure.database.entity_store import SqlAlchemyEntityStore
from audit_trail.infrastructure.database.session import Base
from audit_trail.infrastructure.database.tracking import AuditTracker


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(String)
    username = Column(String, nullable=True)
    logins = Column(Integer, nullable=False, default=0)
    password = Column(String, nullable=True)

    @validates("name")
    def _escape_name(self, key, value):
        return html.escape(value) if value is not None else value


class Tenant(Base):
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    subdomain = Column(String)


class Company(Base):
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(String)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)


class CustomUser(Base):
    __tablename__ = "custom_users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    kind = Column(String(32))
    name = Column(String)

    __mapper_args__ = {"polymorphic_on": kind, "polymorphic_identity": "custom_user"}


class CustomUserSubclass(CustomUser):
    __mapper_args__ = {"polymorphic_identity": "custom_user_subclass"}


@pytest.fixture
def models():
    return SimpleNamespace(
        User=User,
        Tenant=Tenant,
        Company=Company,
        CustomUser=CustomUser,
        CustomUserSubclass=CustomUserSubclass,
    )


@pytest.fixture
def audited_registry():
    audited = AuditedEntityRegistry()
    audited.register(User, exclude=["password"])
    audited.register(Company)
    audited.register(CustomUserSubclass)
    return audited


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine, audited_registry):
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    tracker = AuditTracker(audited_registry, ignored_attributes=["updated_at"])
    tracker.install(factory)
    yield factory
    tracker.remove(factory)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def audit_repository(session):
    return SqlAlchemyAuditRepository(session)


@pytest.fixture
def entity_store(session, audited_registry):
    return SqlAlchemyEntityStore(session, audited_registry)
