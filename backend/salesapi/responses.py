# Overview: JSON response envelope used by every endpoint.

from __future__ import annotations

from typing import Any

from flask import jsonify


def ok(data: Any = None, message: str = "OK", status: int = 200):
    """Success envelope: {status: "ok", message, data}."""
    return jsonify({"status": "ok", "message": message, "data": data}), status


def error(code: str, message: str, status: int, details: dict | None = None):
    """Failure envelope: {status: "error", message, code, details?}."""
    body = {"status": "error", "message": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status
