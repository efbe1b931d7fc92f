"""
Pytest fixtures for the stock engine tests.

Provides test database setup, two tenants with reference data, users of
every role with bearer tokens, and the test client.
"""

import pytest
from shopstock import create_app
from shopstock.extensions import db
from shopstock.models import Company, Shop, Supplier, Category, Product, User
from shopstock.services import session_service, receipt_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
        'DEFAULT_MINIMUM_QUANTITY': 100,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def company_a(db_session):
    """Company A (first tenant) with one shop, supplier and raw-material category."""
    company = Company(company_id="C-A", name="Acme Bakery", is_active=True)
    db_session.add(company)
    db_session.add(Shop(shop_id="S-A1", company_id="C-A", name="Acme Main"))
    db_session.add(Supplier(supplier_id="SUP-A", company_id="C-A", name="Mill & Co"))
    db_session.add(Supplier(supplier_id="SUP-A2", company_id="C-A", name="Dairy Direct"))
    db_session.add(Category(category_id="CAT-A", company_id="C-A", name="Raw"))
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def company_b(db_session):
    """Company B (second tenant)."""
    company = Company(company_id="C-B", name="Beta Foods", is_active=True)
    db_session.add(company)
    db_session.add(Shop(shop_id="S-B1", company_id="C-B", name="Beta Main"))
    db_session.add(Supplier(supplier_id="SUP-B", company_id="C-B", name="Beta Supplier"))
    db_session.add(Category(category_id="CAT-B", company_id="C-B", name="Raw"))
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def products(db_session, company_a):
    """P1/P2 raw materials, P3 flagged requires_grn, FG a finished good."""
    items = {
        "P1": Product(product_id="P1", company_id="C-A", category_id="CAT-A", name="Flour",
                      product_type="Raw Material", uom_id="kg", minimum_quantity=10),
        "P2": Product(product_id="P2", company_id="C-A", category_id="CAT-A", name="Butter",
                      product_type="raw", uom_id="kg", minimum_quantity=10),
        "P3": Product(product_id="P3", company_id="C-A", category_id="CAT-A", name="Boxes",
                      product_type="Packaging", requires_grn=True),
        "FG": Product(product_id="FG", company_id="C-A", category_id="CAT-A", name="Cake",
                      product_type="Finished Good", has_raw_materials=True),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def product_b(db_session, company_b):
    product = Product(product_id="PB1", company_id="C-B", category_id="CAT-B", name="Beta Flour",
                      product_type="Raw Material")
    db_session.add(product)
    db_session.commit()
    return product


def _make_user(db_session, user_id, role, company_id, shop_id):
    user = User(user_id=user_id, username=user_id.lower(), role=role,
                company_id=company_id, shop_id=shop_id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def users(db_session, company_a, company_b):
    return {
        "super": _make_user(db_session, "U-SUPER", "superAdmin", None, None),
        "admin": _make_user(db_session, "U-ADMIN", "admin", "C-A", "S-A1"),
        "stock": _make_user(db_session, "U-STOCK", "stockManager", "C-A", "S-A1"),
        "cashier": _make_user(db_session, "U-CASHIER", "cashier", "C-A", "S-A1"),
        "admin_b": _make_user(db_session, "U-ADMIN-B", "admin", "C-B", "S-B1"),
    }


def _headers_for(user_id: str) -> dict:
    _, token = session_service.issue_session(user_id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(users):
    return _headers_for("U-ADMIN")


@pytest.fixture(scope='function')
def stock_headers(users):
    return _headers_for("U-STOCK")


@pytest.fixture(scope='function')
def cashier_headers(users):
    return _headers_for("U-CASHIER")


@pytest.fixture(scope='function')
def super_headers(users):
    return _headers_for("U-SUPER")


@pytest.fixture(scope='function')
def admin_b_headers(users):
    return _headers_for("U-ADMIN-B")


def receive(lines, *, supplier_id="SUP-A", when=None, company_id="C-A", shop_id="S-A1", created_by="U-ADMIN"):
    """Helper: create a GRN from (product_id, quantity, unit_cost_cents) tuples."""
    return receipt_service.create_receipt(
        company_id=company_id,
        shop_id=shop_id,
        supplier_id=supplier_id,
        created_by=created_by,
        transaction_date_time=when,
        lines=[
            {"category_id": "CAT-A", "product_id": p, "quantity": q, "unit_cost_cents": c}
            for p, q, c in lines
        ],
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
