"""HTTP client for the ECC provisioning service.

Handles payload encoding, transport calls, cancellation and status mapping.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Callable, Collection, Dict, Mapping, Optional, Sequence
from urllib.parse import urlsplit

import requests
from requests.utils import get_encoding_from_headers

from .context import CallContext
from .exceptions import EncodingError, RequestCanceled, TransportError, UnexpectedStatus
from .models import (
    AssignGroupsRequest,
    CreateUserRequest,
    LockRequest,
    RoleAssignment,
    ServerIdentity,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 120
DEFAULT_HTTPS_PORT = 9443
DEFAULT_HTTP_PORT = 9090
ERROR_BODY_LIMIT = 1024
# urllib3 blocks until a whole chunk arrives, so read byte by byte
BODY_CHUNK_SIZE = 1

OK_ONLY = frozenset({200})
OK_OR_CREATED = frozenset({200, 201})


def build_transport(allow_untrusted_certificates: bool = True) -> requests.Session:
    """Create the default transport.

    With allow_untrusted_certificates the peer certificate is not verified,
    so self-signed gateway certificates are accepted.
    """
    session = requests.Session()
    session.verify = not allow_untrusted_certificates
    return session


class EccClient:
    """Client for the ECC user provisioning service.

    Every operation embeds the configured ServerIdentity, so one client
    targets exactly one backend system. The gateway URL and port are given
    per call.

    Usage:
        client = EccClient.create(None, "ecc-host", "300", "00", "JCOUSER", "secret")
        ctx = CallContext.with_timeout(30)
        version = client.get_version(ctx, "https://127.0.0.1", 9443)
        client.create_user(ctx, "https://127.0.0.1", 9443, "JDOE", "Init123!",
                           "John", "Doe", "91", {"/BA1/F4_EXCH": "Test"})
    """

    def __init__(
        self,
        host: str,
        client_id: str,
        system_number: str,
        username: str,
        password: str,
        transport: Optional[requests.Session] = None,
        *,
        timeout: float = REQUEST_TIMEOUT,
        allow_untrusted_certificates: bool = True,
        is_testing_server: bool = True,
        default_https_port: int = DEFAULT_HTTPS_PORT,
        default_http_port: int = DEFAULT_HTTP_PORT,
    ):
        """Initialize the client.

        Args:
            host: ECC application server host
            client_id: ECC client (mandant), e.g. "300"
            system_number: ECC system number, e.g. "00"
            username: JCo technical user
            password: JCo technical user password
            transport: Session-like object with a request() method; a
                default requests.Session is built when omitted
            timeout: Overall per-call timeout in seconds
            allow_untrusted_certificates: Skip TLS peer verification on the
                default transport
            is_testing_server: Value forwarded as isTestingServer
            default_https_port: Port used for https URLs when none is given
            default_http_port: Port used for http URLs when none is given
        """
        self.host = host
        self.client_id = client_id
        self.system_number = system_number
        self.username = username
        self.password = password
        self.timeout = timeout
        self.allow_untrusted_certificates = allow_untrusted_certificates
        self.is_testing_server = is_testing_server
        self.default_https_port = default_https_port
        self.default_http_port = default_http_port
        if transport is None:
            transport = build_transport(allow_untrusted_certificates)
        self.transport = transport

    @classmethod
    def create(
        cls,
        transport: Optional[requests.Session],
        host: str,
        client_id: str,
        system_number: str,
        username: str,
        password: str,
        **options: Any,
    ) -> "EccClient":
        """Build a client; no I/O happens here."""
        return cls(host, client_id, system_number, username, password, transport, **options)

    def server_identity(self) -> ServerIdentity:
        return ServerIdentity(
            host=self.host,
            system_number=self.system_number,
            client_id=self.client_id,
            username=self.username,
            password=self.password,
            is_testing_server=self.is_testing_server,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────
    def get_version(self, ctx: Optional[CallContext], base_url: str, port: Optional[int] = None) -> str:
        """Return the service version reported by GET /about.

        Raises:
            RequestCanceled: Context cancelled or expired
            TransportError: Connection or I/O failure, or the client timeout
                elapsed before the body was read
            UnexpectedStatus: Status other than 200 (body is not read)
        """
        return self._call(
            ctx, "GET", base_url, port, "/about",
            success_codes=OK_ONLY,
            decode=_decode_text,
            capture_error_body=False,
        )

    def ping(self, ctx: Optional[CallContext], base_url: str, port: Optional[int] = None) -> None:
        """Check that the service can reach the configured backend."""
        self._call(
            ctx, "POST", base_url, port, "/ping",
            payload=lambda: self.server_identity().to_payload(),
            success_codes=OK_ONLY,
        )

    def lock(self, ctx: Optional[CallContext], base_url: str, port: Optional[int], username: str) -> None:
        """Lock a user; only 200 counts as success."""
        self._call(
            ctx, "POST", base_url, port, "/lock",
            payload=lambda: LockRequest(server=self.server_identity(), username=username).to_payload(),
            success_codes=OK_ONLY,
        )

    def create_user(
        self,
        ctx: Optional[CallContext],
        base_url: str,
        port: Optional[int],
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        license_type: str,
        parameters: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Create (201) or update (200) a user.

        Args:
            parameters: Extra user attributes, forwarded untouched
        """
        def payload() -> Dict[str, Any]:
            return CreateUserRequest(
                server=self.server_identity(),
                username=username,
                password=password,
                first_name=first_name,
                last_name=last_name,
                license_type=license_type,
                parameters=parameters if parameters is not None else {},
            ).to_payload()

        self._call(
            ctx, "POST", base_url, port, "/create_user",
            payload=payload,
            success_codes=OK_OR_CREATED,
        )

    def assign_user_groups(
        self,
        ctx: Optional[CallContext],
        base_url: str,
        port: Optional[int],
        username: str,
        groups: Sequence[RoleAssignment],
    ) -> None:
        """Assign activity groups to a user in the given order."""
        self._call(
            ctx, "POST", base_url, port, "/assign_groups",
            payload=lambda: AssignGroupsRequest.build(self.server_identity(), username, groups).to_payload(),
            success_codes=OK_OR_CREATED,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────
    def build_url(self, base_url: str, port: Optional[int], path: str) -> str:
        base = base_url.rstrip("/")
        if port is None:
            scheme = urlsplit(base).scheme.lower()
            port = self.default_http_port if scheme == "http" else self.default_https_port
        return f"{base}:{port}{path}"

    def _call(
        self,
        ctx: Optional[CallContext],
        method: str,
        base_url: str,
        port: Optional[int],
        path: str,
        *,
        success_codes: Collection[int],
        payload: Optional[Callable[[], Dict[str, Any]]] = None,
        decode: Optional[Callable[[requests.Response, bytes], Any]] = None,
        capture_error_body: bool = True,
    ) -> Any:
        """Execute one request/response exchange.

        The payload is encoded before the context is consulted, so encoding
        errors surface even for cancelled calls and never reach the network.
        The whole exchange, body included, must finish before both the
        caller's deadline and the client timeout.
        """
        ctx = ctx or CallContext.background()
        call_ctx = CallContext.with_timeout(self.timeout, parent=ctx)
        url = self.build_url(base_url, port, path)

        body = None
        headers = {"Accept": "application/json, text/plain"}
        if payload is not None:
            body = _encode(payload)
            headers["Content-Type"] = "application/json"

        if ctx.cancelled:
            raise RequestCanceled(url, _cancel_reason(ctx))

        logger.debug("%s %s", method, url)
        try:
            resp = self.transport.request(
                method,
                url,
                data=body,
                headers=headers,
                timeout=call_ctx.bound_timeout(self.timeout),
                stream=True,
            )
        except requests.RequestException as exc:
            if ctx.cancelled:
                raise RequestCanceled(url, _cancel_reason(ctx)) from exc
            raise TransportError(url, exc) from exc

        unregister = ctx.on_cancel(resp.close)
        try:
            if ctx.cancelled:
                raise RequestCanceled(url, _cancel_reason(ctx))
            logger.debug("%s %s -> %s", method, url, resp.status_code)
            if resp.status_code not in success_codes:
                detail = self._read_error_body(resp, ctx, call_ctx, url) if capture_error_body else ""
                raise UnexpectedStatus(resp.status_code, url, detail)
            if decode is None:
                return None
            data = self._read_body(resp, ctx, call_ctx, url)
            result = decode(resp, data)
            self._check_live(ctx, call_ctx, url)
            return result
        finally:
            unregister()
            resp.close()

    def _read_body(
        self,
        resp: requests.Response,
        ctx: CallContext,
        call_ctx: CallContext,
        url: str,
        limit: Optional[int] = None,
    ) -> bytes:
        """Read the body chunk by chunk, checking both deadlines between chunks."""
        buf = bytearray()
        try:
            for chunk in resp.iter_content(chunk_size=BODY_CHUNK_SIZE):
                buf.extend(chunk)
                if limit is not None and len(buf) >= limit:
                    break
                self._check_live(ctx, call_ctx, url)
        except (requests.RequestException, OSError) as exc:
            if ctx.cancelled:
                raise RequestCanceled(url, _cancel_reason(ctx)) from exc
            raise TransportError(url, exc) from exc
        except (ValueError, AttributeError) as exc:
            # Reading from a response closed by cancel()
            if not ctx.cancelled:
                raise
            raise RequestCanceled(url, _cancel_reason(ctx)) from exc
        self._check_live(ctx, call_ctx, url)
        return bytes(buf[:limit]) if limit is not None else bytes(buf)

    def _read_error_body(
        self,
        resp: requests.Response,
        ctx: CallContext,
        call_ctx: CallContext,
        url: str,
    ) -> str:
        # Diagnostic only; a broken body never changes the classification
        try:
            data = self._read_body(resp, ctx, call_ctx, url, limit=ERROR_BODY_LIMIT)
        except TransportError:
            return ""
        return _decode_text(resp, data)

    def _check_live(self, ctx: CallContext, call_ctx: CallContext, url: str) -> None:
        if ctx.cancelled:
            raise RequestCanceled(url, _cancel_reason(ctx))
        if call_ctx.expired:
            timeout = requests.exceptions.Timeout(f"call exceeded the {self.timeout}s client timeout")
            raise TransportError(url, timeout)


def _encode(payload: Callable[[], Dict[str, Any]]) -> bytes:
    try:
        return json.dumps(payload(), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, AttributeError) as exc:
        raise EncodingError(f"Unable to encode request body: {exc}") from exc


def _decode_text(resp: requests.Response, data: bytes) -> str:
    """Decode with the declared charset, UTF-8 when none is declared."""
    encoding = "utf-8"
    content_type = resp.headers.get("Content-Type") or ""
    if "charset" in content_type.lower():
        encoding = get_encoding_from_headers(resp.headers) or encoding
    try:
        return data.decode(encoding, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def _cancel_reason(ctx: CallContext) -> str:
    return "deadline exceeded" if ctx.expired else "context cancelled"
