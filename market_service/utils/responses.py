from flask import current_app, jsonify

from market_service.db import db


def ok(data=None, code=200):
    """JSON body (lists included) with a status code."""
    return jsonify(data if data is not None else {}), code


def err(msg, code=400):
    return jsonify({"error": msg}), code


def commit_or_rollback():
    """Commit the unit of work; on any failure leave nothing half-written."""
    try:
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        current_app.logger.warning("rolled back: %s", exc.__class__.__name__)
        raise


def iso(dt):
    return dt.isoformat() if dt else None
