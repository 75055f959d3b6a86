# Overview: Shared helpers for the Flask API blueprints.

from flask import current_app, request

from ..errors import ValidationError
from ..services.concurrency import run_with_retry
from ..time_utils import parse_iso_date

DEFAULT_LIST_LIMIT = 500
MAX_LIST_LIMIT = 5000


def retry_write(func):
    """Run a ledger write, retrying lock timeouts and version conflicts per WRITE_RETRY_ATTEMPTS."""
    return run_with_retry(func, attempts=current_app.config["WRITE_RETRY_ATTEMPTS"])


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def query_limit() -> int:
    raw = request.args.get("limit")
    if raw is None or raw == "":
        return DEFAULT_LIST_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return min(limit, MAX_LIST_LIMIT)


def query_date(name: str):
    raw = request.args.get(name)
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", details={name: raw})
