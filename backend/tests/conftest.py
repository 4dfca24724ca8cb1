"""
Configuration partagée pour tous les tests.
- client : override get_db (MagicMock), l'utilisateur connecté et l'horloge
- db_session : base SQLite en mémoire avec le schéma complet
"""

import os

# Avant tout import de l'application : aucune connexion PostgreSQL en test
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.clock import get_clock
from app.database import Base, get_db
from app.main import app
from app.models.coach import Coach
from app.models.learner import Learner
from app.models.referential import Referential
from app.security import CurrentUser, get_current_user
from app.services.qr_service import build_qr_payload

FIXED_NOW = datetime(2026, 3, 2, 8, 55)  # lundi


@pytest.fixture
def current_user():
    return CurrentUser(user_id="admin-1", role="ADMIN")


@pytest.fixture
def client(current_user):
    """Client HTTP de test avec la BDD mockée, un administrateur connecté et une horloge fixe."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """Client sans override d'authentification : le token Bearer est réellement vérifié."""
    app.dependency_overrides[get_db] = lambda: MagicMock()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Session SQLAlchemy sur une base SQLite en mémoire."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def add_referential(db_session):
    def _add(name="Développement Data", late_cutoff=None, code=None):
        referential = Referential(id=uuid.uuid4(), name=name, code=code, late_cutoff=late_cutoff)
        db_session.add(referential)
        db_session.commit()
        return referential
    return _add


def _identity_factory(db_session, model, owner_type, prefix):
    counter = {"n": 0}

    def _add(first_name=None, last_name="Diop", status="ACTIVE", referential=None, matricule=None):
        counter["n"] += 1
        owner_id = uuid.uuid4()
        matricule = matricule or f"{prefix}-{counter['n']:08d}"
        row = model(
            id=owner_id,
            matricule=matricule,
            first_name=first_name or f"Prénom{counter['n']}",
            last_name=last_name,
            status=status,
            referential_id=referential.id if referential else None,
            qr_payload=build_qr_payload(owner_type, owner_id, matricule),
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _add


@pytest.fixture
def add_learner(db_session):
    return _identity_factory(db_session, Learner, "LEARNER", "APP")


@pytest.fixture
def add_coach(db_session):
    return _identity_factory(db_session, Coach, "COACH", "COA")


@pytest.fixture
def login_as(client):
    """Remplace l'utilisateur connecté du client par un compte du rôle donné."""
    def _login(role, identity_id=None):
        user = CurrentUser(user_id=f"{role.lower()}-1", role=role, identity_id=identity_id)
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    return _login
