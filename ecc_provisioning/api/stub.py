"""Endpoints of the local ECC provisioning stub.

Mirrors the wire contract of the real gateway closely enough for
development and end-to-end tests: it records every request body and keeps
an in-memory user table per application.
"""
from __future__ import annotations
from typing import Optional

from flask import Blueprint, abort, current_app, jsonify, request

bp = Blueprint("ecc_stub", __name__)

_SERVER_KEYS = ("host", "systemNumber", "client", "jcoUser", "jcoPassword", "isTestingServer")


def _forced_status(path: str) -> Optional[int]:
    return current_app.config["ECC_STATUS_OVERRIDES"].get(path)


def _read_payload() -> dict:
    """Decode and record the JSON body, aborting with 400 when malformed."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        _abort_json(400, "Request body must be a JSON object")
    current_app.config["ECC_RECEIVED"].append({"path": request.path, "body": payload})
    return payload


def _abort_json(status: int, message: str):
    response = jsonify({"error": message})
    response.status_code = status
    abort(response)


def _require_server(payload: dict) -> dict:
    server = payload.get("server") if "server" in payload else payload
    if not isinstance(server, dict) or any(key not in server for key in _SERVER_KEYS):
        _abort_json(400, "Incomplete server identity")
    return server


@bp.before_request
def apply_status_override():
    """Short-circuit with a forced status code when one is configured."""
    status = _forced_status(request.path)
    if status is None:
        return None
    if request.method == "POST":
        current_app.config["ECC_RECEIVED"].append(
            {"path": request.path, "body": request.get_json(silent=True)}
        )
    return jsonify({"error": f"Forced status {status}"}), status


@bp.route("/about", methods=["GET"])
def about():
    """Return the service version as plain text."""
    return (current_app.config["ECC_VERSION"], 200, {"Content-Type": "text/plain"})


@bp.route("/health")
def health_check():
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ping", methods=["POST"])
def ping():
    _require_server(_read_payload())
    return jsonify({"status": "ok"}), 200


@bp.route("/create_user", methods=["POST"])
def create_user():
    """Create a user (201) or update an existing one (200)."""
    payload = _read_payload()
    _require_server(payload)
    username = payload.get("username")
    if not username:
        _abort_json(400, "username is required")

    users = current_app.config["ECC_USERS"]
    existed = username in users
    users[username] = {
        "firstname": payload.get("firstname", ""),
        "lastname": payload.get("lastname", ""),
        "licenseType": payload.get("licenseType", ""),
        "parameters": payload.get("parameters") or {},
        "groups": users.get(username, {}).get("groups", []),
        "locked": False,
    }
    return jsonify({"username": username}), 200 if existed else 201


@bp.route("/assign_groups", methods=["POST"])
def assign_groups():
    payload = _read_payload()
    _require_server(payload)
    groups = payload.get("userGroups")
    if not isinstance(groups, list):
        _abort_json(400, "userGroups must be a list")

    user = current_app.config["ECC_USERS"].setdefault(payload.get("username"), {"groups": [], "locked": False})
    user["groups"] = [group.get("group") for group in groups if isinstance(group, dict)]
    return jsonify({"username": payload.get("username"), "groups": user["groups"]}), 200


@bp.route("/lock", methods=["POST"])
def lock():
    """Lock a known user; unknown users answer 404."""
    payload = _read_payload()
    _require_server(payload)
    user = current_app.config["ECC_USERS"].get(payload.get("username"))
    if user is None:
        _abort_json(404, "User not found")
    user["locked"] = True
    return jsonify({"username": payload.get("username"), "locked": True}), 200
