#!/usr/bin/env python3
"""
AgentAuth Command Line Interface

Usage:
    agentauth generate [--json]
    agentauth derive <private_key>
    agentauth sign [--token <token>] [--data <json>] [--output <file>]
    agentauth verify --headers <file> [--freshness <ms>]
"""

import argparse
import json
import sys
from typing import List, Optional

from . import __version__, config
from .exceptions import AgentAuthError
from .logging_config import audit_log, configure_logging


def load_json(path: str) -> dict:
    """Load JSON from file, or stdin when path is "-"."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def cmd_generate(args) -> int:
    """Generate a new identity."""
    from .identity import generate_identity

    identity = generate_identity()
    audit_log.identity_generated(identity.agentauth_address, identity.agentauth_id)

    if args.json:
        print(json.dumps(identity.to_dict(), indent=2))
    else:
        print(f"AGENTAUTH_ID={identity.agentauth_id}")
        print(f"AGENTAUTH_ADDRESS={identity.agentauth_address}")
        print(f"AGENTAUTH_TOKEN={identity.agentauth_token}")
    return 0


def cmd_derive(args) -> int:
    """Derive address and ID from a private key."""
    from .identity import derive_from_token

    try:
        derived = derive_from_token(args.private_key)
    except AgentAuthError:
        print("Error: Invalid private key format.", file=sys.stderr)
        return 1

    print(f"AGENTAUTH_ID={derived.agentauth_id}")
    print(f"AGENTAUTH_ADDRESS={derived.agentauth_address}")
    return 0


def cmd_sign(args) -> int:
    """Produce signed AgentAuth headers for one request."""
    from .protocol import create_auth_headers

    token = args.token or config.get_token()
    if not token:
        print(f"Error: pass --token or set {config.TOKEN_ENV_VAR}.", file=sys.stderr)
        return 1

    try:
        extra = json.loads(args.data) if args.data else None
    except json.JSONDecodeError as e:
        print(f"Error: --data is not valid JSON: {e.msg}", file=sys.stderr)
        return 1
    if extra is not None and not isinstance(extra, dict):
        print("Error: --data must be a JSON object.", file=sys.stderr)
        return 1

    try:
        headers = create_auth_headers(token, extra)
    except AgentAuthError:
        print("Error: Invalid AGENTAUTH_TOKEN format.", file=sys.stderr)
        return 1

    if args.output:
        save_json(headers, args.output)
        print(f"Headers saved to: {args.output}", file=sys.stderr)
    else:
        print(json.dumps(headers, indent=2))
    return 0


def cmd_verify(args) -> int:
    """Verify a set of AgentAuth headers."""
    from .protocol import verify

    try:
        headers = load_json(args.headers)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read headers: {e}", file=sys.stderr)
        return 1

    freshness = args.freshness if args.freshness is not None else config.DEFAULT_FRESHNESS_MS
    result = verify(headers, freshness=freshness)

    print(json.dumps(result.to_dict(), indent=2))
    if result.valid:
        print("\n✓ VALID", file=sys.stderr)
        return 0
    print("\n✗ INVALID", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentauth",
        description="AgentAuth identity and request signing CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  agentauth generate                      Create a new identity
  agentauth derive aa-<64 hex>            Show address and ID for a key
  AGENTAUTH_TOKEN=aa-... agentauth sign   Print signed request headers
  agentauth verify -H headers.json        Check a set of headers
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # generate
    gen_parser = subparsers.add_parser("generate", help="Generate a new AgentAuth identity")
    gen_parser.add_argument("--json", action="store_true", help="Print the identity as JSON")

    # derive
    derive_parser = subparsers.add_parser("derive", help="Derive address and ID from a private key")
    derive_parser.add_argument("private_key", help="Private key in any format (aa-, 0x, or raw hex)")

    # sign
    sign_parser = subparsers.add_parser("sign", help="Create signed request headers")
    sign_parser.add_argument("-t", "--token", help=f"Private key token (default: ${config.TOKEN_ENV_VAR})")
    sign_parser.add_argument("--data", help="Extra payload fields as a JSON object")
    sign_parser.add_argument("-o", "--output", help="Output file for headers")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify AgentAuth headers")
    verify_parser.add_argument("-H", "--headers", required=True, help="Headers JSON file ('-' for stdin)")
    verify_parser.add_argument("-f", "--freshness", type=int, help="Freshness window in milliseconds")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level="DEBUG" if args.debug else None)

    if args.command == "generate":
        return cmd_generate(args)
    elif args.command == "derive":
        return cmd_derive(args)
    elif args.command == "sign":
        return cmd_sign(args)
    elif args.command == "verify":
        return cmd_verify(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    sys.exit(main())
