import jwt
import pytest

from market_service.app import create_app
from market_service.db import db
from market_service.models import Product, User, UserRole

SECRET = "test-secret"


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "JWT_SECRET": SECRET,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    buyer = User(name="Bea Buyer", email="b1@example.com", role=UserRole.BUYER)
    buyer2 = User(name="Bo Buyer", email="b2@example.com", role=UserRole.BUYER)
    artisan = User(name="Ari Artisan", email="a1@example.com", role=UserRole.ARTISAN, lat=10.0, lng=20.0)
    artisan2 = User(name="Nola Nomad", email="a2@example.com", role=UserRole.ARTISAN)
    db.session.add_all([buyer, buyer2, artisan, artisan2])
    db.session.commit()
    return {"b1": buyer, "b2": buyer2, "a1": artisan, "a2": artisan2}


@pytest.fixture
def products(users):
    honey = Product(artisan_id=users["a1"].id, name="Wildflower Honey", price_per_kg=12.5)
    cheese = Product(artisan_id=users["a1"].id, name="Goat Cheese", price_per_kg=20.0)
    rugs = Product(artisan_id=users["a2"].id, name="Wool Rug", price_per_kg=50.0, unit="piece")
    db.session.add_all([honey, cheese, rugs])
    db.session.commit()
    return {"p1": honey, "p2": cheese, "p3": rugs}


def make_token(user_id: int, secret: str = SECRET) -> str:
    return jwt.encode({"sub": str(user_id)}, secret, algorithm="HS256")


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {make_token(user.id)}"}
    return _headers
