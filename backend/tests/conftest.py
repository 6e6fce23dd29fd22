import os

# Avant tout import backend.* : settings lit l'environnement à l'import
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.db.base import Base
from backend.app.db.models import models_v1  # noqa: F401  (enregistre les tables)
from backend.app.db.models.core_types import Role
from backend.app.db.models.models_v1 import (
    Item,
    Location,
    LocationInventory,
    Organization,
    Supplier,
    User,
)
from backend.app.db.session import enable_sqlite_foreign_keys
from backend.services.container import build_services
from backend.services.context import RequestContext


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, neuve pour chaque test.

    StaticPool : une seule connexion partagée, sinon chaque connexion
    verrait sa propre base vide.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def services():
    return build_services()


# ---------- master data ----------
@pytest.fixture
def org(db_session):
    o = Organization(name="Clinique Centrale")
    db_session.add(o)
    db_session.commit()
    return o


@pytest.fixture
def other_org(db_session):
    o = Organization(name="Autre Clinique")
    db_session.add(o)
    db_session.commit()
    return o


@pytest.fixture
def user(db_session, org):
    u = User(organization_id=org.id, name="Marie", role=Role.staff)
    db_session.add(u)
    db_session.commit()
    return u


@pytest.fixture
def ctx(org, user):
    return RequestContext(organization_id=org.id, user_id=user.id, role=Role.staff)


@pytest.fixture
def admin_ctx(org, user):
    return RequestContext(organization_id=org.id, user_id=user.id, role=Role.admin)


@pytest.fixture
def viewer_ctx(org, user):
    return RequestContext(organization_id=org.id, user_id=user.id, role=Role.viewer)


@pytest.fixture
def location(db_session, org):
    loc = Location(organization_id=org.id, name="Réserve principale")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def second_location(db_session, org):
    loc = Location(organization_id=org.id, name="Salle de soins")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture
def supplier(db_session, org):
    s = Supplier(organization_id=org.id, name="MedSupply")
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def item(db_session, org, supplier):
    it = Item(organization_id=org.id, name="Gants nitrile M", sku="GL-M", default_supplier_id=supplier.id)
    db_session.add(it)
    db_session.commit()
    return it


@pytest.fixture
def second_item(db_session, org, supplier):
    it = Item(organization_id=org.id, name="Compresses 10x10", sku="CP-10", default_supplier_id=supplier.id)
    db_session.add(it)
    db_session.commit()
    return it


@pytest.fixture
def make_item(db_session, org):
    def _make(name: str, *, supplier_id: int | None = None, sku: str | None = None) -> Item:
        it = Item(organization_id=org.id, name=name, sku=sku, default_supplier_id=supplier_id)
        db_session.add(it)
        db_session.commit()
        return it

    return _make


@pytest.fixture
def set_stock(db_session):
    """Pose directement une ligne de ledger (arrange uniquement, hors service)."""

    def _set(item_id: int, location_id: int, quantity: int, **thresholds) -> LocationInventory:
        row = db_session.get(LocationInventory, (item_id, location_id))
        if row is None:
            row = LocationInventory(item_id=item_id, location_id=location_id, quantity=quantity)
            db_session.add(row)
        row.quantity = quantity
        for key, value in thresholds.items():
            setattr(row, key, value)
        db_session.commit()
        return row

    return _set
