# config.py
import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///market.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JSON_AS_ASCII = False

    # JWT issued by the auth service
    JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
    JWT_ALGO = os.getenv("JWT_ALGO", "HS256")

    # Orders
    DELIVERY_LEAD_DAYS = int(os.getenv("DELIVERY_LEAD_DAYS", "7"))
    DEFAULT_CANCELLATION_MESSAGE = os.getenv("DEFAULT_CANCELLATION_MESSAGE", "Cancelled by buyer.")
    # "delivery": current product price when delivered, "order": price snapshot at creation
    REVENUE_PRICE_SOURCE = os.getenv("REVENUE_PRICE_SOURCE", "delivery")

    # Analytics
    ANALYTICS_WINDOW_MONTHS = int(os.getenv("ANALYTICS_WINDOW_MONTHS", "12"))
    TOP_PRODUCTS_LIMIT = int(os.getenv("TOP_PRODUCTS_LIMIT", "5"))
