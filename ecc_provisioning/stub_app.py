"""Flask application factory for the local ECC provisioning stub.

The stub stands in for the remote provisioning gateway during development
and in end-to-end tests.
"""
from __future__ import annotations
from typing import Mapping, Optional

from flask import Flask

from ecc_provisioning.api.stub import bp as stub_bp


def create_stub_app(version: str = "1.0.0", status_overrides: Optional[Mapping[str, int]] = None) -> Flask:
    """Create the stub application.

    Args:
        version: Text returned by GET /about
        status_overrides: Path to status code; matching requests are
            answered with that status instead of being processed
    """
    app = Flask(__name__)
    app.config["ECC_VERSION"] = version
    app.config["ECC_STATUS_OVERRIDES"] = dict(status_overrides or {})
    app.config["ECC_RECEIVED"] = []
    app.config["ECC_USERS"] = {}
    app.register_blueprint(stub_bp)
    return app
