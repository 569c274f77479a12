from datetime import datetime
from calendar import monthrange
from typing import Optional

from flask import current_app
from sqlalchemy import extract, func

from market_service.db import db
from market_service.models import Order, Product, SOLD_STATUSES


def months_ago(now: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier, clamped to the month's last day."""
    total = now.year * 12 + (now.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(now.day, monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def price_column():
    """Unit price matching how deliveries book revenue."""
    if current_app.config.get("REVENUE_PRICE_SOURCE", "delivery") == "order":
        return Order.unit_price
    return Product.price_per_kg


def _sold_orders(artisan_id: int):
    return (
        db.session.query(Order)
        .join(Product, Product.id == Order.product_id)
        .filter(Product.artisan_id == artisan_id)
        .filter(Order.status.in_(SOLD_STATUSES))
    )


def monthly_revenue(artisan_id: int, window_months: Optional[int] = None, now: Optional[datetime] = None) -> list[dict]:
    if window_months is None:
        window_months = current_app.config.get("ANALYTICS_WINDOW_MONTHS", 12)
    since = months_ago(now or datetime.utcnow(), window_months)

    year_col = extract("year", Order.updated_at).label("year")
    month_col = extract("month", Order.updated_at).label("month")
    revenue_col = func.sum(Order.quantity * func.coalesce(price_column(), 0)).label("revenue")

    rows = (
        _sold_orders(artisan_id)
        .filter(Order.updated_at >= since)
        .with_entities(year_col, month_col, revenue_col)
        .group_by(year_col, month_col)
        .order_by(year_col.asc(), month_col.asc())
        .all()
    )
    return [
        {"year": int(r.year), "month": int(r.month), "revenue": float(r.revenue or 0)}
        for r in rows
    ]


def top_products(artisan_id: int, limit: Optional[int] = None) -> list[dict]:
    if limit is None:
        limit = current_app.config.get("TOP_PRODUCTS_LIMIT", 5)

    total_col = func.sum(Order.quantity).label("total_quantity_sold")
    rows = (
        _sold_orders(artisan_id)
        .with_entities(Product.id, Product.name, total_col)
        .group_by(Product.id, Product.name)
        .order_by(total_col.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [
        {"product_id": r.id, "name": r.name, "total_quantity_sold": int(r.total_quantity_sold or 0)}
        for r in rows
    ]


def artisan_analytics(artisan_id: int) -> dict:
    return {
        "monthly_revenue": monthly_revenue(artisan_id),
        "top_products": top_products(artisan_id),
    }
