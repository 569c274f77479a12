from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from market_service.db import db
from market_service.errors import BadRequest, Conflict, Forbidden, NotFound
from market_service.models import Order, OrderStatus, Product, User
from market_service.services.catalog import get_artisan_location, get_product
from market_service.utils.responses import commit_or_rollback

# Statuses a buyer can no longer cancel from
CANCEL_BLOCKED = (
    OrderStatus.CANCELLED,
    OrderStatus.COMPLETED,
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
)
CANCELLABLE = (OrderStatus.OPEN, OrderStatus.APPROVED)


def _parse_quantity(value) -> int:
    if isinstance(value, bool):
        raise BadRequest("quantity must be a positive integer")
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise BadRequest("quantity must be a positive integer")
    if qty <= 0 or (isinstance(value, float) and qty != value):
        raise BadRequest("quantity must be a positive integer")
    return qty


def _load_order(order_id) -> Order:
    order: Optional[Order] = db.session.get(Order, order_id) if order_id else None
    if not order:
        raise NotFound("Order not found")
    return order


def _owned_product(order: Order, artisan_id: int) -> Product:
    product = db.session.get(Product, order.product_id)
    if not product:
        raise NotFound("Product associated with this order not found")
    if product.artisan_id != artisan_id:
        raise Forbidden("You do not own this product")
    return product


def _check_version(order: Order, expected_version):
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        raise BadRequest("version must be an integer")
    if order.version != expected:
        raise Conflict("Order was modified by another request")


def _commit_transition(order: Order, *statements):
    try:
        for stmt in statements:
            db.session.execute(stmt)
        commit_or_rollback()
    except StaleDataError:
        db.session.rollback()
        raise Conflict("Order was modified by another request")
    current_app.logger.info("order %s -> %s (v%s)", order.id, order.status.value, order.version)


# ---------- Create ----------
def create_order(product_id, quantity, buyer_id: int) -> Order:
    if not product_id or quantity is None:
        raise BadRequest("Missing required fields for creating an order.")
    qty = _parse_quantity(quantity)
    product = get_product(product_id)

    lead_days = current_app.config.get("DELIVERY_LEAD_DAYS", 7)
    order = Order(
        product_id=product.id,
        buyer_id=buyer_id,
        quantity=qty,
        unit_price=product.price_per_kg,
        status=OrderStatus.OPEN,
        delivery_date=datetime.utcnow() + timedelta(days=lead_days),
    )
    db.session.add(order)
    commit_or_rollback()
    current_app.logger.info("order %s created by buyer %s for product %s", order.id, buyer_id, product.id)
    return order


# ---------- Artisan transitions ----------
def approve_order(order_id, artisan_id: int, expected_version=None) -> Order:
    order = _load_order(order_id)
    _owned_product(order, artisan_id)

    coords = get_artisan_location(artisan_id)
    if not coords:
        raise BadRequest("Artisan location not set. Please set your location first.")

    if order.status != OrderStatus.OPEN:
        raise Conflict(f"Order cannot be approved as it is {order.status.value}.")
    _check_version(order, expected_version)

    order.artisan_lat = coords["lat"]
    order.artisan_lng = coords["lng"]
    order.status = OrderStatus.APPROVED
    _commit_transition(order)
    return order


def reject_order(order_id, artisan_id: int, expected_version=None) -> Order:
    order = _load_order(order_id)
    _owned_product(order, artisan_id)

    if order.status != OrderStatus.OPEN:
        raise Conflict(f"Order cannot be rejected as it is {order.status.value}.")
    _check_version(order, expected_version)

    order.status = OrderStatus.REJECTED
    _commit_transition(order)
    return order


def _revenue_for(order: Order, product: Product) -> float:
    if current_app.config.get("REVENUE_PRICE_SOURCE", "delivery") == "order":
        price = order.unit_price
    else:
        price = product.price_per_kg
    return order.quantity * (price or 0)


def deliver_order(order_id, artisan_id: int, expected_version=None) -> Order:
    """Mark an approved order as delivered and book the revenue.

    The revenue is added with an SQL increment in the same commit as the
    status change, so concurrent deliveries for one artisan all count.
    """
    order = _load_order(order_id)
    product = _owned_product(order, artisan_id)

    if order.status != OrderStatus.APPROVED:
        raise Conflict('Order must be in "approved" status to be marked as delivered.')
    _check_version(order, expected_version)

    order.status = OrderStatus.DELIVERED
    order.delivery_date = datetime.utcnow()

    total = _revenue_for(order, product)
    _commit_transition(
        order,
        update(User)
        .where(User.id == artisan_id)
        .values(revenue=User.revenue + total)
        .execution_options(synchronize_session=False),
    )
    current_app.logger.info("artisan %s revenue +%s from order %s", artisan_id, total, order.id)
    return order


# ---------- Buyer transitions ----------
def cancel_order(order_id, buyer_id: int, message: Optional[str] = None, expected_version=None) -> Order:
    order = _load_order(order_id)

    if order.buyer_id != buyer_id:
        raise Forbidden("You are not authorized to cancel this order.")

    if order.status in CANCEL_BLOCKED:
        raise Conflict(f"Order cannot be cancelled as it is already {order.status.value}.")
    if order.status not in CANCELLABLE:
        raise Conflict("Order cannot be cancelled in its current status.")
    _check_version(order, expected_version)

    order.status = OrderStatus.CANCELLED
    order.cancellation_message = (message or "").strip() or current_app.config.get(
        "DEFAULT_CANCELLATION_MESSAGE", "Cancelled by buyer."
    )
    _commit_transition(order)
    return order


# ---------- Read views ----------
def track_order(order_id) -> dict:
    order = _load_order(order_id)

    events = [{"status": "Order Placed", "timestamp": order.created_at}]
    if order.status == OrderStatus.COMPLETED:
        events.append({"status": "Order Confirmed & Processing", "timestamp": datetime.utcnow()})
    elif order.status == OrderStatus.DELIVERED:
        events.append({
            "status": "Order Confirmed & Processing",
            "timestamp": order.updated_at - timedelta(hours=24),
        })
        events.append({"status": "Delivered", "timestamp": order.delivery_date})
    events.sort(key=lambda e: e["timestamp"])

    return {
        "order_id": order.id,
        "product_name": order.product.name if order.product else None,
        "status": order.status.value,
        "estimated_delivery": order.delivery_date,
        "events": events,
    }


def summarize_order(order_id) -> dict:
    """Status, artisan location and product identity for the buyer's map."""
    order = _load_order(order_id)
    product = order.product
    if not product:
        raise NotFound("Product associated with this order not found")

    location = order.artisan_location or get_artisan_location(product.artisan_id)
    return {
        "order_id": order.id,
        "status": order.status.value,
        "artisan_location": location,
        "product": {"id": product.id, "name": product.name},
    }


def list_buyer_orders(buyer_id: int) -> list[Order]:
    return (
        Order.query.filter(Order.buyer_id == buyer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_artisan_orders(artisan_id: int) -> list[Order]:
    return (
        Order.query.join(Product, Product.id == Order.product_id)
        .filter(Product.artisan_id == artisan_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
