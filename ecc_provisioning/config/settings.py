"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ecc_provisioning.core.client import (
    EccClient,
    DEFAULT_HTTPS_PORT,
    DEFAULT_HTTP_PORT,
    REQUEST_TIMEOUT,
)

logger = logging.getLogger(__name__)


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("Loaded %s from /run/secrets", secret_name)
                return secret_value
        except OSError as e:
            logger.warning("Failed to read /run/secrets/%s: %s", secret_name, e)

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            logger.info("Loaded %s from environment (fallback)", env_var)
            return secret_value

    return None


def _env_flag(var_name: str, default: bool) -> bool:
    value = os.environ.get(var_name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_or_default(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info("[demo-mode] Using default for %s", var_name)
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


@dataclass
class EccSettings:
    """Connection settings for one ECC backend and its provisioning gateway."""
    # Mode
    demo_mode: bool

    # Backend identity forwarded on every call
    host: str
    jco_user: str
    jco_password: str
    client_id: str = "300"
    system_number: str = "00"
    is_testing_server: bool = True

    # Provisioning gateway
    service_url: str = "https://127.0.0.1"
    service_port: Optional[int] = None

    # Transport
    timeout: float = REQUEST_TIMEOUT
    allow_untrusted_certificates: bool = True
    default_https_port: int = DEFAULT_HTTPS_PORT
    default_http_port: int = DEFAULT_HTTP_PORT

    def build_client(self, transport=None) -> EccClient:
        """Construct an EccClient bound to these settings."""
        return EccClient.create(
            transport,
            self.host,
            self.client_id,
            self.system_number,
            self.jco_user,
            self.jco_password,
            timeout=self.timeout,
            allow_untrusted_certificates=self.allow_untrusted_certificates,
            is_testing_server=self.is_testing_server,
            default_https_port=self.default_https_port,
            default_http_port=self.default_http_port,
        )


def load_settings() -> EccSettings:
    """Load ECC settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE", False)

    # JCo password: /run/secrets > environment
    jco_password = _load_secret_from_file("ecc_jco_password", "ECC_JCO_PASSWORD")
    if not jco_password:
        if demo_mode:
            jco_password = os.environ.get("ECC_JCO_PASSWORD_DEMO", "Demo123!")
            logger.info("[demo-mode] Using demo ECC_JCO_PASSWORD")
        else:
            raise RuntimeError("ECC_JCO_PASSWORD not found in /run/secrets or environment")

    host = _get_or_default("ECC_HOST", demo_default="ecc.example.local", demo_mode=demo_mode)
    jco_user = _get_or_default("ECC_JCO_USER", demo_default="DEMOUSER", demo_mode=demo_mode)
    client_id = os.environ.get("ECC_CLIENT", "300")
    system_number = os.environ.get("ECC_SYSTEM_NUMBER", "00")

    service_url = os.environ.get("ECC_SERVICE_URL", "https://127.0.0.1").rstrip("/")
    port_str = os.environ.get("ECC_SERVICE_PORT", "").strip()
    try:
        service_port = int(port_str) if port_str else None
        timeout = float(os.environ.get("ECC_TIMEOUT", str(REQUEST_TIMEOUT)))
    except ValueError as e:
        raise RuntimeError(f"Invalid numeric ECC setting: {e}") from e
    if timeout <= 0:
        raise RuntimeError("ECC_TIMEOUT must be positive")

    allow_untrusted = _env_flag("ECC_ALLOW_UNTRUSTED_CERTS", True)
    is_testing_server = _env_flag("ECC_TESTING_SERVER", True)

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info("Mode=%s; host=%s; client=%s; gateway=%s", mode_label, host, client_id, service_url)
    if allow_untrusted:
        logger.warning("TLS certificate verification is disabled for the provisioning gateway")
    if demo_mode:
        logger.warning("Demo credentials in use. Do not deploy with these defaults.")

    return EccSettings(
        demo_mode=demo_mode,
        host=host,
        jco_user=jco_user,
        jco_password=jco_password,
        client_id=client_id,
        system_number=system_number,
        is_testing_server=is_testing_server,
        service_url=service_url,
        service_port=service_port,
        timeout=timeout,
        allow_untrusted_certificates=allow_untrusted,
    )
