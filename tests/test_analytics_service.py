from datetime import datetime

import pytest

from market_service.db import db
from market_service.models import Order, OrderStatus
from market_service.services import analytics_service

NOW = datetime(2026, 3, 31, 12, 0, 0)


def _order(product, buyer, qty, status, updated_at):
    o = Order(
        product_id=product.id,
        buyer_id=buyer.id,
        quantity=qty,
        unit_price=product.price_per_kg,
        status=status,
        created_at=updated_at,
        updated_at=updated_at,
    )
    db.session.add(o)
    db.session.commit()
    return o


def test_empty_analytics(users, products):
    a1 = users["a1"].id
    assert analytics_service.monthly_revenue(a1, now=NOW) == []
    assert analytics_service.top_products(a1) == []
    assert analytics_service.artisan_analytics(a1) == {"monthly_revenue": [], "top_products": []}


def test_monthly_revenue_buckets(users, products):
    b1 = users["b1"]
    p1, p2, p3 = products["p1"], products["p2"], products["p3"]
    _order(p1, b1, 2, OrderStatus.DELIVERED, datetime(2026, 1, 10))
    _order(p2, b1, 1, OrderStatus.COMPLETED, datetime(2026, 1, 20))
    _order(p1, b1, 4, OrderStatus.DELIVERED, datetime(2025, 11, 3))
    # Outside the window, wrong status, other artisan
    _order(p1, b1, 9, OrderStatus.DELIVERED, datetime(2024, 12, 1))
    _order(p1, b1, 9, OrderStatus.APPROVED, datetime(2026, 2, 1))
    _order(p1, b1, 9, OrderStatus.CANCELLED, datetime(2026, 2, 1))
    _order(p3, b1, 9, OrderStatus.DELIVERED, datetime(2026, 2, 1))

    rows = analytics_service.monthly_revenue(users["a1"].id, 12, now=NOW)
    assert rows == [
        {"year": 2025, "month": 11, "revenue": pytest.approx(4 * 12.5)},
        {"year": 2026, "month": 1, "revenue": pytest.approx(2 * 12.5 + 20.0)},
    ]


def test_monthly_revenue_window(users, products):
    b1, p1 = users["b1"], products["p1"]
    _order(p1, b1, 1, OrderStatus.DELIVERED, datetime(2025, 12, 15))
    _order(p1, b1, 1, OrderStatus.DELIVERED, datetime(2026, 3, 1))

    rows = analytics_service.monthly_revenue(users["a1"].id, 2, now=NOW)
    assert [(r["year"], r["month"]) for r in rows] == [(2026, 3)]


def test_top_products(users, products):
    b1 = users["b1"]
    p1, p2 = products["p1"], products["p2"]
    _order(p1, b1, 2, OrderStatus.DELIVERED, datetime(2020, 1, 1))
    _order(p2, b1, 5, OrderStatus.DELIVERED, datetime(2026, 1, 1))
    _order(p1, b1, 1, OrderStatus.COMPLETED, datetime(2026, 2, 1))
    _order(p1, b1, 50, OrderStatus.OPEN, datetime(2026, 2, 1))

    assert analytics_service.top_products(users["a1"].id) == [
        {"product_id": p2.id, "name": "Goat Cheese", "total_quantity_sold": 5},
        {"product_id": p1.id, "name": "Wildflower Honey", "total_quantity_sold": 3},
    ]
    assert len(analytics_service.top_products(users["a1"].id, limit=1)) == 1


@pytest.mark.parametrize("now, months, expected", [
    (datetime(2026, 3, 31), 1, datetime(2026, 2, 28)),
    (datetime(2026, 3, 15), 12, datetime(2025, 3, 15)),
    (datetime(2026, 1, 10), 2, datetime(2025, 11, 10)),
])
def test_months_ago(now, months, expected):
    assert analytics_service.months_ago(now, months) == expected
