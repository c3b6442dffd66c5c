"""Test configuration and fixtures."""

import os
import tempfile

import pytest

# Point the app at a throwaway SQLite file BEFORE sealworks.config is imported.
_DB_DIR = tempfile.mkdtemp(prefix="sealworks-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

from sealworks import models  # noqa: E402,F401  (registers tables)
from sealworks.database import Base, SessionLocal, engine  # noqa: E402
from sealworks.models import Partner, Product  # noqa: E402
from sealworks.rendering import IdempotencyGuard  # noqa: E402
from sealworks.services.seal_sheets import SealSheetService  # noqa: E402
from sealworks.services.token_issuer import TokenIssuer  # noqa: E402


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    """
    Database session fixture.

    Objects stay loaded after commit so reading fixture attributes never
    reopens a transaction that would hold SQLite's read lock while the
    TestClient writes.
    """
    session = SessionLocal(expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def partner(db):
    p = Partner(name="Acme Bottling")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def other_partner(db):
    p = Partner(name="Borealis Foods")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def products(db, partner):
    """Two products owned by `partner`."""
    items = [
        Product(partner_id=partner.id, name="Cold Brew 330ml", sku="CB-330"),
        Product(partner_id=partner.id, name="Cold Brew 1L", sku="CB-1000"),
    ]
    db.add_all(items)
    db.commit()
    return items


@pytest.fixture
def other_product(db, other_partner):
    p = Product(partner_id=other_partner.id, name="Oat Bar", sku="OB-01")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_sheet(db):
    """Factory: mint `quantity` tokens onto a new sheet, optionally assigned to a partner."""

    def _make(quantity=3, partner=None, entity=("batch", "b-1"), version_id="label-v1"):
        rows = TokenIssuer(db).create_token_batch(
            entity[0], entity[1], quantity, actor="tester", version_id=version_id
        )
        contract = IdempotencyGuard().prepare([r.token for r in rows], {"fixture": True})
        sheets = SealSheetService(db)
        sheet = sheets.create_sheet(rows, contract, "seal-v1", actor="tester")
        if partner is not None:
            sheets.assign_sheet(sheet.id, partner.id, actor="tester")
        db.commit()
        return sheet, sorted(rows, key=lambda r: r.token)

    return _make
