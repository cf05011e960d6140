import pytest
from datetime import timedelta
from decimal import Decimal

from bakery import create_app
from bakery.database import Base, create_all, drop_all, get_session
from bakery.models import AppUser, Product, ProductStock, PromoCode
from bakery.services.cart_service import CartService
from bakery.services.cart_store import MemoryCartStore
from bakery.services.catalog_service import Catalog
from bakery.services.notification_service import NotificationDispatcher
from bakery.services.order_service import OrderService
from bakery.utils.money import utcnow


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every enqueued notification for assertions."""

    def __init__(self):
        self.sent = []

    def enqueue(self, event, recipient, context):
        self.sent.append((event, recipient, context))

    @property
    def events(self):
        return [event for event, _, _ in self.sent]


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_all()
        yield app
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session; every table is emptied after the test."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.remove()


@pytest.fixture(scope='function')
def cart_store():
    return MemoryCartStore()


@pytest.fixture(scope='function')
def catalog(session):
    return Catalog(session)


@pytest.fixture(scope='function')
def cart_service(cart_store, catalog):
    return CartService(cart_store, catalog)


@pytest.fixture(scope='function')
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture(scope='function')
def order_service(cart_service, dispatcher):
    return OrderService(cart_service, notifier=dispatcher)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for products with a stock row."""
    def _make(name='Croissant', price='3.50', stock=10, customizable=False, active=True):
        product = Product(
            name=name,
            category='Pastries',
            price=Decimal(price),
            is_customizable=customizable,
            active=active
        )
        session.add(product)
        session.flush()
        session.add(ProductStock(product_id=product.id, on_hand_qty=stock))
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def chocolate_cake(make_product):
    return make_product(name='Chocolate Cake', price='25.99', stock=10)


@pytest.fixture(scope='function')
def custom_cake(make_product):
    return make_product(name='Celebration Cake', price='30.00', stock=5, customizable=True)


@pytest.fixture(scope='function')
def welcome_promo(session):
    """WELCOME10: 10% off, unlimited, valid now."""
    promo = PromoCode(
        code='WELCOME10',
        discount_type='percent',
        amount=Decimal('10.00'),
        valid_from=utcnow() - timedelta(days=1),
        valid_to=utcnow() + timedelta(days=30),
        usage_limit=None,
        used_count=0
    )
    session.add(promo)
    session.commit()
    return promo


@pytest.fixture(scope='function')
def customer(session):
    """Registered customer account."""
    user = AppUser(
        email='ana@example.com',
        full_name='Ana Baker',
        phone='+1 555 0100',
        active=True
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def stock_of(session):
    """Current on-hand quantity of a product straight from the database."""
    def _stock(product_id):
        session.expire_all()
        return session.get(ProductStock, int(product_id)).on_hand_qty
    return _stock
