import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from commerce.config import AppConfig
from commerce.db.session import make_session_factory
from commerce.models import Base, Coupon, Product, ProductVariant, Store, VariantOption


NOW = datetime(2026, 1, 15, 12, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def app_config():
    return AppConfig(
        database_url="sqlite://",
        secret_key="test-secret-0123456789abcdef0123456789",
        log_level="WARNING",
        currency="USD",
        tax_rate=Decimal("0.10"),
        shipping_flat_fee=Decimal("5"),
        free_shipping_threshold=Decimal("100"),
    )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(
        sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    )


@pytest.fixture
def catalog(session_factory):
    """Two stores and a handful of products.

    s-a: p-plain (100, stock 5), p-pen (10, stock 100), p-deal (100, 80 on discount, stock 10)
    s-b: p-mug (20, stock 50), p-shirt (30, stock 4; Color Red +10 stock 3, Blue +0 untracked)
    """
    with session_factory() as s:
        s.add_all(
            [
                Store(id="s-a", owner_id="seller-a", name="Store A", orders_count=0, total_revenue=Decimal("0")),
                Store(id="s-b", owner_id="seller-b", name="Store B", orders_count=0, total_revenue=Decimal("0")),
            ]
        )
        s.flush()
        s.add_all(
            [
                Product(id="p-plain", store_id="s-a", name="Lamp", base_price=Decimal("100"), stock=5,
                        category_id="c-home", images=["lamp.jpg"], is_deleted=False),
                Product(id="p-pen", store_id="s-a", name="Pen", base_price=Decimal("10"), stock=100,
                        category_id="c-office", is_deleted=False),
                Product(id="p-deal", store_id="s-a", name="Kettle", base_price=Decimal("100"),
                        discount_price=Decimal("80"), discount_start=NOW - timedelta(days=1),
                        discount_end=NOW + timedelta(days=1), stock=10, category_id="c-home", is_deleted=False),
                Product(id="p-mug", store_id="s-b", name="Mug", base_price=Decimal("20"), stock=50,
                        category_id="c-kitchen", images=["mug.jpg"], is_deleted=False),
                Product(
                    id="p-shirt",
                    store_id="s-b",
                    name="Shirt",
                    base_price=Decimal("30"),
                    stock=4,
                    category_id="c-apparel",
                    is_deleted=False,
                    variants=[
                        ProductVariant(
                            id="v-color",
                            name="Color",
                            is_deleted=False,
                            sort_order=0,
                            options=[
                                VariantOption(id="o-red", value="Red", price_modifier=Decimal("10"), stock=3,
                                              sku="SH-RED", sort_order=0),
                                VariantOption(id="o-blue", value="Blue", price_modifier=Decimal("0"), stock=None,
                                              sku="SH-BLUE", sort_order=1),
                            ],
                        )
                    ],
                ),
            ]
        )
    return session_factory


@pytest.fixture
def add_coupon(session_factory, now):
    def _add(code="SAVE10", **overrides):
        fields = dict(
            id=f"cp-{code.lower()}",
            code=code,
            type="percentage",
            value=Decimal("10"),
            min_cart_total=Decimal("0"),
            max_discount=None,
            expiry_date=now + timedelta(days=30),
            usage_limit=10,
            used_count=0,
            active=True,
        )
        fields.update(overrides)
        with session_factory() as s:
            s.add(Coupon(**fields))
        return fields["id"]

    return _add


@pytest.fixture
def fetch(session_factory):
    def _fetch(model, row_id):
        with session_factory() as s:
            return s.get(model, row_id)

    return _fetch


@pytest.fixture
def option_stock(session_factory):
    def _stock(option_id):
        with session_factory() as s:
            return s.get(VariantOption, option_id).stock

    return _stock
