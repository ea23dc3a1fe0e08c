import os
import sys
from decimal import Decimal

import pytest

os.environ.setdefault('APP_ENV', 'testing')
os.environ['RATELIMIT_ENABLED'] = '0'
os.environ['CELERY_TASK_ALWAYS_EAGER'] = '1'
os.environ.setdefault('JWT_SECRET', 'test-jwt-secret-0123456789abcdef0123456789')

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from models import db, User, Address, Shop, Product, InventoryEntry  # noqa: E402

# Customer reference point used across the suite (central Bengaluru)
HOME = (12.9716, 77.5946)


@pytest.fixture(scope='session')
def app_instance():
    from app import create_app
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI='sqlite:///:memory:',
        SQLALCHEMY_TRACK_MODIFICATIONS=False
    )
    return app


@pytest.fixture(scope='function')
def app(app_instance):
    with app_instance.app_context():
        db.drop_all()
        db.create_all()
        yield app_instance
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    return app.test_client()


class Factory:
    """Small helpers that insert committed rows for a test."""

    def __init__(self):
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def user(self, role='customer', email=None):
        u = User(email=email or f'user{self._next()}@example.com', role=role)
        db.session.add(u)
        db.session.commit()
        return u

    def address(self, user, lat=HOME[0], lng=HOME[1], default=True):
        a = Address(
            user_id=user.id, line1='12 Test Street', city='Bengaluru',
            latitude=lat, longitude=lng, is_default=default,
        )
        db.session.add(a)
        db.session.commit()
        return a

    def shop(self, owner=None, lat=HOME[0], lng=HOME[1], name=None, delivery_time=None):
        owner = owner or self.user(role='shop_owner')
        s = Shop(
            user_id=owner.id, store_name=name or f'Shop {self._next()}', city='Bengaluru',
            address='Market Road', latitude=lat, longitude=lng, delivery_time=delivery_time,
        )
        db.session.add(s)
        db.session.commit()
        return s

    def product(self, name='Toned Milk', brand=None, description=None):
        p = Product(name=name, brand=brand, description=description, net_qty='500', unit='ml')
        db.session.add(p)
        db.session.commit()
        return p

    def stock(self, shop, product, price='30.00', quantity=10, available=True):
        e = InventoryEntry(
            shop_id=shop.id, product_id=product.id, price=Decimal(price),
            quantity=quantity, is_available=available,
        )
        db.session.add(e)
        db.session.commit()
        return e


@pytest.fixture()
def factory(app):
    return Factory()


@pytest.fixture()
def auth_header(app):
    from app.utils.jwt import create_access_token

    def _header(user):
        return {'Authorization': f'Bearer {create_access_token(user.id, user.role)}'}
    return _header


def stock_of(shop_id, product_id):
    """Current committed-or-flushed quantity, bypassing the identity map."""
    return db.session.execute(
        db.select(InventoryEntry.quantity).where(
            InventoryEntry.shop_id == shop_id,
            InventoryEntry.product_id == product_id,
        )
    ).scalar_one()


class Market:
    pass


@pytest.fixture()
def market(factory):
    """A customer with a default address and two nearby shops.

    shop_a: milk 30.00 x10, bread 40.00 x5
    shop_b: milk 28.00 x3
    """
    m = Market()
    m.customer = factory.user()
    m.address = factory.address(m.customer)
    m.owner_a = factory.user(role='shop_owner')
    m.owner_b = factory.user(role='shop_owner')
    m.shop_a = factory.shop(m.owner_a, lat=HOME[0] + 0.01, name='Corner Kirana')
    m.shop_b = factory.shop(m.owner_b, lat=HOME[0] + 0.02, name='Fresh Basket')
    m.milk = factory.product('Toned Milk', brand='Amul')
    m.bread = factory.product('Brown Bread', brand='Harvest Gold')
    factory.stock(m.shop_a, m.milk, '30.00', 10)
    factory.stock(m.shop_a, m.bread, '40.00', 5)
    factory.stock(m.shop_b, m.milk, '28.00', 3)
    return m


def line(shop, product, quantity):
    return {'shopId': shop.id, 'productId': product.id, 'quantity': quantity}
