"""
Pytest fixtures for PharmaPOS backend tests.

Provides the in-memory app and database, catalog/stock fixtures, actor
headers for the API, and in-memory collaborators for the pricing core.
"""

import pytest

from pharmapos import create_app
from pharmapos import domain
from pharmapos.errors import NotFound
from pharmapos.extensions import db
from pharmapos.models import InventoryRecord, Outlet, PackVariant, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SUBMIT_RETRY_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.expire_all()


@pytest.fixture(scope='function')
def outlet(db_session):
    outlet = Outlet(code="MAIN", name="Main Pharmacy")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def paracetamol(db_session, outlet):
    """
    Paracetamol: 10 Le per tablet, 3-pack at 25, 10 tablets in stock.
    """
    product = Product(
        sku="PARA-500",
        name="Paracetamol 500mg",
        category="Analgesics",
        unit="tablet",
        unit_price_cents=10,
        cost_price_cents=6,
        reorder_level=2,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add(PackVariant(product_id=product.id, pack_size=3, pack_price_cents=25, unit_price_cents=8))
    db_session.add(InventoryRecord(
        product_id=product.id,
        outlet_id=outlet.id,
        current_stock=10,
        minimum_stock=2,
        maximum_stock=0,
    ))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def three_pack(db_session, paracetamol):
    return db_session.query(PackVariant).filter_by(product_id=paracetamol.id, pack_size=3).one()


@pytest.fixture(scope='function')
def amoxicillin(db_session, outlet):
    """Amoxicillin: 12 per capsule, no pack variants, 5 in stock."""
    product = Product(
        sku="AMOX-250",
        name="Amoxicillin 250mg",
        category="Antibiotics",
        unit="capsule",
        unit_price_cents=12,
        cost_price_cents=8,
        reorder_level=10,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add(InventoryRecord(product_id=product.id, outlet_id=outlet.id, current_stock=5))
    db_session.commit()
    return product


def actor_headers(role: str, actor_id: int = 7) -> dict:
    """Helper to create actor headers for a role."""
    return {'X-Actor-Id': str(actor_id), 'X-Actor-Role': role}


@pytest.fixture
def cashier_headers():
    return actor_headers("cashier")


@pytest.fixture
def manager_headers():
    return actor_headers("manager", actor_id=3)


# =============================================================================
# IN-MEMORY COLLABORATORS
# =============================================================================


class FakeCatalog:
    def __init__(self, products=(), variants=()):
        self.products = {p.id: p for p in products}
        self.variants = list(variants)

    def get_product(self, product_id):
        if product_id not in self.products:
            raise NotFound(f"Product {product_id} not found")
        return self.products[product_id]

    def get_pack_variants(self, product_id):
        return [v for v in self.variants if v.product_id == product_id]


class FakeInventory:
    def __init__(self, stock=None):
        self.stock = dict(stock or {})
        self.adjustments = []

    def get_current_stock(self, product_id, outlet_id):
        return self.stock.get((product_id, outlet_id), 0)

    def adjust(self, adjustment):
        key = (adjustment.product_id, adjustment.outlet_id)
        self.stock[key] = self.stock.get(key, 0) + adjustment.delta
        self.adjustments.append(adjustment)
        return domain.AdjustResult(new_stock=self.stock[key], adjustment_id=len(self.adjustments))


class FakeSalesApi:
    """Records submissions; raises the queued errors first, then succeeds."""

    def __init__(self, errors=()):
        self.errors = list(errors)
        self.submitted = []
        self.by_correlation = {}

    def submit(self, record):
        self.submitted.append(record)
        if self.errors:
            raise self.errors.pop(0)
        if record.correlation_id in self.by_correlation:
            first = self.by_correlation[record.correlation_id]
            return domain.SubmitResult(first.sale_id, first.document_number, first.timestamp, duplicate=True)
        result = domain.SubmitResult(
            sale_id=len(self.by_correlation) + 1,
            document_number=f"S-{len(self.by_correlation) + 1:06d}",
            timestamp=record.created_at,
        )
        self.by_correlation[record.correlation_id] = result
        return result


@pytest.fixture
def tablet():
    return domain.Product(id=1, name="Paracetamol 500mg", unit_price_cents=10, unit="tablet", cost_price_cents=6)


@pytest.fixture
def tablet_three_pack():
    return domain.PackVariant(id=11, product_id=1, pack_size=3, pack_price_cents=25, unit_price_cents=8)


@pytest.fixture
def fake_catalog(tablet, tablet_three_pack):
    return FakeCatalog(products=[tablet], variants=[tablet_three_pack])


@pytest.fixture
def fake_sales_api():
    return FakeSalesApi()


@pytest.fixture
def sales_api_factory():
    return FakeSalesApi


@pytest.fixture
def inventory_factory():
    return FakeInventory
