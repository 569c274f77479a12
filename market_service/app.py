import logging
import os

from flask import Flask, jsonify

from market_service.config import Config
from market_service.db import db
from market_service.errors import ServiceError
from market_service.utils.responses import err

# Configure logging
logging.basicConfig(level=logging.INFO)


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    db.init_app(app)

    from market_service import models  # noqa: F401  registers tables

    with app.app_context():
        db.create_all()

    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        app.logger.warning("request rejected (%s): %s", e.status_code, e.message)
        return err(e.message, e.status_code)

    from market_service.routes.orders import bp as orders_bp
    from market_service.routes.chat import bp as chat_bp
    from market_service.routes.analytics import bp as analytics_bp

    app.register_blueprint(orders_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(analytics_bp)

    @app.get("/")
    def index():
        return {"service": "market", "status": "ok"}

    @app.get("/health")
    def health():
        return jsonify(service="market", status="ok"), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5020")), debug=False)
