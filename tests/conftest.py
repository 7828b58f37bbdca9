import pytest
from decimal import Decimal
from datetime import date

from backoffice import create_app
from backoffice.database import get_session, create_all, drop_all
from backoffice.models import Category, Product, Supplier


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    ctx = app.app_context()
    ctx.push()
    yield app
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test on the shared in-memory database."""
    create_all()
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    drop_all()


@pytest.fixture(scope='function')
def category(session):
    """Create test category."""
    category = Category(name='Beverages', image_path='categories/beverages.webp', sort_order=1)
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(session):
    """Create test supplier."""
    supplier = Supplier(name='Acme Wholesale', phone='555-0100', email='orders@acme.test')
    session.add(supplier)
    session.commit()
    return supplier


@pytest.fixture(scope='function')
def product(session, category):
    """Categorized product holding 10 units at an average cost of 5.00."""
    product = Product(
        name='Cola 500ml',
        full_name='Cola 500ml bottle',
        category_id=category.id,
        sku='COLA-500',
        barcode='7790001000011',
        wholesale_price=Decimal('8.00'),
        retailsale_price=Decimal('10.00'),
        in_stock=Decimal('10'),
        cost=Decimal('5.00')
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def other_product(session):
    """Uncategorized product with no stock yet."""
    product = Product(
        name='Paper Cups',
        sku='CUPS-50',
        in_stock=Decimal('0'),
        cost=Decimal('0')
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def purchase_body(product):
    """Valid JSON body for a purchase of 10 units at 7.00."""
    def build(**overrides):
        body = {
            'date': date(2024, 3, 1).isoformat(),
            'reference_number': 'INV-1001',
            'notes': 'Spring restock',
            'lines': [
                {'product_id': product.id, 'quantity': '10', 'unit_cost': '7.00'},
            ],
        }
        body.update(overrides)
        return body
    return build
