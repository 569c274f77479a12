from flask import Blueprint, request

from market_service.auth_mw import require_user
from market_service.models import Order, UserRole
from market_service.services import order_service
from market_service.utils.responses import ok, iso

bp = Blueprint("orders", __name__, url_prefix="/orders")


def _order_json(o: Order):
    product = o.product
    return {
        "id": o.id,
        "product_id": o.product_id,
        "product": {
            "id": product.id,
            "name": product.name,
            "unit": product.unit,
            "artisan_id": product.artisan_id,
            "artisan_name": product.artisan.name if product.artisan else None,
        } if product else None,
        "buyer_id": o.buyer_id,
        "buyer_name": o.buyer.name if o.buyer else None,
        "quantity": o.quantity,
        "unit_price": o.unit_price,
        "status": o.status.value,
        "artisan_approved": o.artisan_approved,
        "artisan_location": o.artisan_location,
        "delivery_date": iso(o.delivery_date),
        "cancellation_message": o.cancellation_message,
        "version": o.version,
        "created_at": iso(o.created_at),
        "updated_at": iso(o.updated_at),
    }


def _expected_version():
    d = request.get_json(silent=True) or {}
    return d.get("version", request.args.get("version"))


# ---------- Create / List ----------
@bp.post("")
@require_user(UserRole.BUYER)
def create_order(actor):
    d = request.get_json(silent=True) or {}
    o = order_service.create_order(d.get("product_id"), d.get("quantity"), actor.id)
    return ok(_order_json(o), 201)


@bp.get("/my-orders")
@require_user(UserRole.BUYER)
def my_orders(actor):
    return ok([_order_json(o) for o in order_service.list_buyer_orders(actor.id)])


@bp.get("/artisan-orders")
@require_user(UserRole.ARTISAN)
def artisan_orders(actor):
    return ok([_order_json(o) for o in order_service.list_artisan_orders(actor.id)])


# ---------- Transitions ----------
@bp.put("/<int:order_id>/approve")
@require_user(UserRole.ARTISAN)
def approve_order(order_id: int, actor):
    o = order_service.approve_order(order_id, actor.id, _expected_version())
    return ok({"msg": "Order approved", "order": _order_json(o)})


@bp.put("/<int:order_id>/reject")
@require_user(UserRole.ARTISAN)
def reject_order(order_id: int, actor):
    o = order_service.reject_order(order_id, actor.id, _expected_version())
    return ok({"msg": "Order rejected", "order": _order_json(o)})


@bp.put("/<int:order_id>/deliver")
@require_user(UserRole.ARTISAN)
def deliver_order(order_id: int, actor):
    o = order_service.deliver_order(order_id, actor.id, _expected_version())
    return ok({"msg": "Order marked as delivered and revenue updated.", "order": _order_json(o)})


@bp.patch("/<int:order_id>/cancel")
@require_user(UserRole.BUYER)
def cancel_order(order_id: int, actor):
    d = request.get_json(silent=True) or {}
    o = order_service.cancel_order(
        order_id, actor.id, d.get("cancellation_message"), d.get("version")
    )
    return ok({"msg": "Order cancelled successfully.", "order": _order_json(o)})


# ---------- Tracking ----------
@bp.get("/<int:order_id>/track")
@require_user()
def track_order(order_id: int, actor):
    info = order_service.track_order(order_id)
    info["estimated_delivery"] = iso(info["estimated_delivery"])
    info["events"] = [
        {"status": e["status"], "timestamp": iso(e["timestamp"])} for e in info["events"]
    ]
    return ok(info)


@bp.get("/<int:order_id>/summary")
@require_user()
def order_summary(order_id: int, actor):
    return ok(order_service.summarize_order(order_id))
