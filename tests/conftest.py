import mongomock
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from auth import Role, create_access_token
from cart import CartRegistry, get_cart_registry
from catalog import Catalog
from database import get_db, get_session_factory, init_orders_schema
from orders import OrderStore
from schemas import ProductIn


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["ecom_test"]


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_orders_schema(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def carts():
    return CartRegistry()


@pytest.fixture
def catalog(mongo_db):
    return Catalog(mongo_db["product"])


@pytest.fixture
def order_store(session_factory):
    return OrderStore(session_factory)


@pytest.fixture
def make_product(catalog):
    def _make(name="Widget", price=10.0, category="tools", sku=None):
        return catalog.create(ProductIn(sku=sku or f"SKU-{name}", name=name, price=price, category=category))
    return _make


@pytest.fixture
def client(mongo_db, session_factory, carts):
    main.app.dependency_overrides[get_db] = lambda: mongo_db
    main.app.dependency_overrides[get_session_factory] = lambda: session_factory
    main.app.dependency_overrides[get_cart_registry] = lambda: carts
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def bearer(user_id, role):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def headers_for():
    return bearer


@pytest.fixture
def customer_headers():
    return bearer("customer-1", Role.CUSTOMER)


@pytest.fixture
def admin_headers():
    return bearer("admin-1", Role.ADMIN)
