"""Command-line helper for provisioning users on an ECC backend.

This module serves as a CLI wrapper around ecc_provisioning.core.
"""
from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import urllib3

from ecc_provisioning.config import load_settings
from ecc_provisioning.core import (
    CallContext,
    EccError,
    RoleAssignment,
    UnexpectedStatus,
)
from scripts import audit


def parse_group(value: str) -> RoleAssignment:
    """Parse NAME[,FROM[,TO]] into a RoleAssignment."""
    parts = [part.strip() for part in value.split(",")]
    if not parts[0] or len(parts) > 3:
        raise argparse.ArgumentTypeError(f"Invalid group '{value}', expected NAME[,FROM[,TO]]")
    parts += [""] * (3 - len(parts))
    return RoleAssignment(group=parts[0], from_date=parts[1], to_date=parts[2])


def parse_parameter(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Invalid parameter '{value}', expected KEY=VALUE")
    return key, val


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ECC provisioning helper")
    parser.add_argument("--url", default=None, help="Provisioning gateway base URL (default: ECC_SERVICE_URL)")
    parser.add_argument("--port", type=int, default=None, help="Gateway port (default: ECC_SERVICE_PORT or scheme default)")
    parser.add_argument("--timeout", type=float, default=None, help="Per-call transport timeout in seconds")
    parser.add_argument("--deadline", type=float, default=None, help="Overall deadline for the command in seconds")
    parser.add_argument("--verify-tls", action="store_true", help="Verify the gateway TLS certificate")
    parser.add_argument("--operator", default="automation",
                        help="Operator identifier for audit logs (default: automation)")
    parser.add_argument("--log-level", default=os.environ.get("ECC_LOG_LEVEL", "WARNING"))

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("version")
    sub.add_parser("ping")

    sc = sub.add_parser("create-user")
    sc.add_argument("--username", required=True)
    sc.add_argument("--password", default=os.environ.get("ECC_NEW_USER_PASSWORD"))
    sc.add_argument("--first", required=True)
    sc.add_argument("--last", required=True)
    sc.add_argument("--license-type", default="91")
    sc.add_argument("--param", dest="params", action="append", type=parse_parameter, default=[])

    sg = sub.add_parser("assign-groups")
    sg.add_argument("--username", required=True)
    sg.add_argument("--group", dest="groups", action="append", type=parse_group, default=[])

    sl = sub.add_parser("lock")
    sl.add_argument("--username", required=True)

    sd = sub.add_parser("demo")
    sd.add_argument("--username", required=True)
    sd.add_argument("--password", default=os.environ.get("ECC_NEW_USER_PASSWORD"))
    sd.add_argument("--first", required=True)
    sd.add_argument("--last", required=True)
    sd.add_argument("--license-type", default="91")
    sd.add_argument("--param", dest="params", action="append", type=parse_parameter, default=[])
    sd.add_argument("--group", dest="groups", action="append", type=parse_group, default=[])

    ss = sub.add_parser("stub-server")
    ss.add_argument("--host", default="127.0.0.1")
    ss.add_argument("--listen-port", type=int, default=9090)
    ss.add_argument("--stub-version", default=os.environ.get("ECC_STUB_VERSION", "1.0.0"))

    return parser


def _run_stub(args) -> None:
    from ecc_provisioning.stub_app import create_stub_app
    app = create_stub_app(version=args.stub_version)
    app.run(host=args.host, port=args.listen_port)


def _audit(event_type, username, args, system, details, success):
    audit.safe_log_event(
        event_type,
        username,
        operator=args.operator,
        system=system,
        details=details,
        success=success,
    )


def main() -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.cmd:
        parser.print_help()
        return

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.cmd == "stub-server":
        _run_stub(args)
        return

    if args.cmd in ("create-user", "demo") and not args.password:
        parser.error("Missing --password (or ECC_NEW_USER_PASSWORD)")

    try:
        settings = load_settings()
    except RuntimeError as e:
        parser.error(str(e))
    if args.timeout is not None:
        settings.timeout = args.timeout
    if args.verify_tls:
        settings.allow_untrusted_certificates = False
    if settings.allow_untrusted_certificates:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    client = settings.build_client()
    url = args.url or settings.service_url
    port = args.port if args.port is not None else settings.service_port
    system = f"{settings.host}/{settings.client_id}"
    ctx = CallContext.with_timeout(args.deadline) if args.deadline else CallContext.background()

    if args.cmd == "version":
        try:
            version = client.get_version(ctx, url, port)
        except EccError as e:
            print(f"[version] Unable to connect with the provisioning gateway: {e}", file=sys.stderr)
            sys.exit(1)
        print(version)
    elif args.cmd == "ping":
        try:
            client.ping(ctx, url, port)
        except EccError as e:
            print(f"[ping] Unable to ping the provisioning gateway: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"[ping] Server {system} is OK", file=sys.stderr)
    elif args.cmd == "create-user":
        if not _create_user(client, ctx, url, port, args, system):
            sys.exit(1)
    elif args.cmd == "assign-groups":
        if not _assign_groups(client, ctx, url, port, args, system):
            sys.exit(1)
    elif args.cmd == "lock":
        if not _lock(client, ctx, url, port, args, system):
            sys.exit(1)
    elif args.cmd == "demo":
        if not _demo(client, ctx, url, port, args, system):
            sys.exit(1)
    else:
        parser.print_help()


def _create_user(client, ctx, url, port, args, system) -> bool:
    parameters = dict(args.params)
    details = {
        "first_name": args.first,
        "last_name": args.last,
        "license_type": args.license_type,
        "parameters": parameters,
    }
    try:
        client.create_user(ctx, url, port, args.username, args.password, args.first, args.last,
                           args.license_type, parameters)
    except EccError as e:
        print(f"[create-user] Unable to create user {args.username}: {e}", file=sys.stderr)
        _audit("create_user", args.username, args, system, {**details, "error": _describe(e)}, False)
        return False
    print(f"[create-user] User '{args.username}' provisioned on {system}", file=sys.stderr)
    _audit("create_user", args.username, args, system, details, True)
    return True


def _assign_groups(client, ctx, url, port, args, system) -> bool:
    details = {"groups": [group.to_payload() for group in args.groups]}
    try:
        client.assign_user_groups(ctx, url, port, args.username, args.groups)
    except EccError as e:
        print(f"[assign-groups] Unable to assign groups to {args.username}: {e}", file=sys.stderr)
        _audit("assign_groups", args.username, args, system, {**details, "error": _describe(e)}, False)
        return False
    names = ", ".join(group.group for group in args.groups) or "(none)"
    print(f"[assign-groups] Assigned {names} to '{args.username}'", file=sys.stderr)
    _audit("assign_groups", args.username, args, system, details, True)
    return True


def _lock(client, ctx, url, port, args, system) -> bool:
    try:
        client.lock(ctx, url, port, args.username)
    except EccError as e:
        print(f"[lock] Unable to lock user {args.username}: {e}", file=sys.stderr)
        _audit("lock_user", args.username, args, system, {"error": _describe(e)}, False)
        return False
    print(f"[lock] User '{args.username}' locked", file=sys.stderr)
    _audit("lock_user", args.username, args, system, {}, True)
    return True


def _demo(client, ctx, url, port, args, system) -> bool:
    """Run version, ping, create, assign and lock in order, stopping at the first failure."""
    print("[demo] Checking if the server is up", file=sys.stderr)
    try:
        version = client.get_version(ctx, url, port)
    except EccError as e:
        print(f"[demo] Unable to connect with the provisioning gateway: {e}", file=sys.stderr)
        return False
    print(f"[demo] The version is {version}", file=sys.stderr)

    try:
        client.ping(ctx, url, port)
    except EccError as e:
        print(f"[demo] Unable to ping the provisioning gateway: {e}", file=sys.stderr)
        return False
    print("[demo] Server is OK", file=sys.stderr)

    return (
        _create_user(client, ctx, url, port, args, system)
        and _assign_groups(client, ctx, url, port, args, system)
        and _lock(client, ctx, url, port, args, system)
    )


def _describe(error: EccError) -> str:
    if isinstance(error, UnexpectedStatus):
        return f"status {error.status_code}"
    return str(error)


if __name__ == "__main__":
    main()
