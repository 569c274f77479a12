from flask import Blueprint, request

from market_service.auth_mw import require_user
from market_service.models import UserRole
from market_service.services import analytics_service
from market_service.utils.responses import ok

bp = Blueprint("analytics", __name__, url_prefix="/artisans/analytics")


@bp.get("")
@require_user(UserRole.ARTISAN)
def artisan_analytics(actor):
    return ok(analytics_service.artisan_analytics(actor.id))


@bp.get("/monthly-revenue")
@require_user(UserRole.ARTISAN)
def monthly_revenue(actor):
    months = request.args.get("months", type=int)
    if months is not None and months <= 0:
        months = None
    return ok(analytics_service.monthly_revenue(actor.id, months))


@bp.get("/top-products")
@require_user(UserRole.ARTISAN)
def top_products(actor):
    limit = request.args.get("limit", type=int)
    if limit is not None and limit <= 0:
        limit = None
    return ok(analytics_service.top_products(actor.id, limit))
