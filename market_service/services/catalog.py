from typing import Optional

from market_service.db import db
from market_service.errors import NotFound
from market_service.models import Product, User


def get_product(product_id) -> Product:
    product: Optional[Product] = db.session.get(Product, product_id) if product_id else None
    if not product:
        raise NotFound("Product not found")
    return product


def get_user(user_id) -> User:
    user: Optional[User] = db.session.get(User, user_id) if user_id else None
    if not user:
        raise NotFound("User not found")
    return user


def get_artisan_location(artisan_id):
    """Live coordinates from the artisan's profile, or None when unset."""
    artisan = db.session.get(User, artisan_id)
    return artisan.location if artisan else None
