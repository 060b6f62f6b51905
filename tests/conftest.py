from decimal import Decimal

import pytest

from jewellers import create_app
from jewellers.models import db, Role, Category, Metal, MetalType
from jewellers.store import Store


@pytest.fixture
def app():
    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite://'})
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    with app.app_context():
        yield Store()


@pytest.fixture
def rings(store):
    return store.create(Category, name='Rings')


@pytest.fixture
def gold(store):
    return store.create(Metal, type=MetalType.GOLD, purity='22K')


@pytest.fixture
def staff(store):
    return store.create(Role, name='STAFF')


def product_values(category, metal, **overrides):
    values = dict(
        category_id=category.id,
        metal_id=metal.id,
        name='Solitaire ring',
        weight=Decimal('5.25'),
        production_cost=Decimal('18000.00'),
        description='Single stone band',
    )
    values.update(overrides)
    return values
