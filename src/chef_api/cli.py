"""
Command-line interface for the Chef API SDK
Signs requests, sends raw API requests and checks captured signatures
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .api_client import ApiClient
from .authentication import create_signer, verify_request
from .config import load_credentials
from .exceptions import ChefSDKError, ValidationError
from .version import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='chef-api',
        description='Chef Server API client with request signing'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'chef-api-sdk {__version__}'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log debug output, including intermediate signing values'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    setup_sign_parser(subparsers)
    setup_raw_parser(subparsers)
    setup_verify_parser(subparsers)

    return parser


def _add_credentials_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--credentials', help='Credentials file (default: ~/.chef/credentials)')
    parser.add_argument('--profile', help='Credentials profile name')


def setup_sign_parser(subparsers):
    """Setup sign subcommand."""
    sign_parser = subparsers.add_parser('sign', help='Print the signed headers for a request')
    sign_parser.add_argument('method', help='HTTP method')
    sign_parser.add_argument('path', help='Request path, e.g. /organizations/acme/nodes')
    sign_parser.add_argument('--body', help='Request body')
    sign_parser.add_argument('--user', help='User id (default: client_name from credentials)')
    sign_parser.add_argument('--key', help='PEM private key file (default: client_key from credentials)')
    sign_parser.add_argument('--sign-version', help='Protocol version, 1.1 or 1.3')
    sign_parser.add_argument('--api-version', default='1', help='Server API version (default: 1)')
    sign_parser.add_argument('--timestamp', help='Fixed timestamp, YYYY-MM-DDTHH:MM:SSZ')
    sign_parser.add_argument(
        '--format',
        choices=['headers', 'json'],
        default='headers',
        help='Output format (default: headers)'
    )
    sign_parser.add_argument(
        '--show-canonical',
        action='store_true',
        help='Also print the canonical request'
    )
    _add_credentials_arguments(sign_parser)


def setup_raw_parser(subparsers):
    """Setup raw request subcommand."""
    raw_parser = subparsers.add_parser('raw', help='Send a signed request and print the JSON response')
    raw_parser.add_argument('path', help='Request path, e.g. /organizations/acme/nodes')
    raw_parser.add_argument('-m', '--method', default='GET', help='HTTP method (default: GET)')
    raw_parser.add_argument('--body', help='JSON request body')
    raw_parser.add_argument('--api-version', default='1', help='Server API version (default: 1)')
    raw_parser.add_argument('-q', '--query', help='Search query')
    raw_parser.add_argument('--timeout', type=float, default=30.0, help='Request timeout in seconds')
    raw_parser.add_argument('--insecure', action='store_true', help='Skip TLS certificate verification')
    _add_credentials_arguments(raw_parser)


def setup_verify_parser(subparsers):
    """Setup verify subcommand."""
    verify_parser = subparsers.add_parser('verify', help='Verify a captured signed header set')
    verify_parser.add_argument('method', help='HTTP method')
    verify_parser.add_argument('path', help='Request path')
    verify_parser.add_argument('--public-key', required=True, help='PEM public key file')
    verify_parser.add_argument(
        '-H', '--header',
        action='append',
        default=[],
        help="Received header as 'Name: Value' (repeatable)"
    )
    verify_parser.add_argument('--body', help='Request body')
    verify_parser.add_argument('--api-version', default='1', help='Server API version (default: 1)')


def parse_header_arguments(values: List[str]) -> Dict[str, str]:
    """Parse 'Name: Value' strings into a header dict."""
    headers = {}
    for item in values:
        name, separator, value = item.partition(':')
        if not separator or not name.strip():
            raise ValidationError(f"Header must look like 'Name: Value', got {item!r}")
        headers[name.strip()] = value.strip()
    return headers


def handle_sign_command(args) -> int:
    """Handle sign command."""
    userid = args.user
    sign_version = args.sign_version
    key = Path(args.key).expanduser().read_bytes() if args.key else None

    if userid is None or key is None:
        config = load_credentials(args.credentials, args.profile)
        userid = userid or config.client_name
        key = key or config.key()
        sign_version = sign_version or config.sign_ver

    signer = create_signer(
        sign_version,
        args.path,
        key,
        args.method,
        userid,
        api_version=args.api_version,
        body=args.body,
        timestamp=args.timestamp,
        trace=args.verbose
    )
    headers = signer.build()

    if args.format == 'json':
        output = {'headers': headers.to_dict()}
        if args.show_canonical:
            output['canonical_request'] = signer.canonical_request()
        print(json.dumps(output, indent=2))
        return 0

    for name, value in headers.items():
        print(f"{name}: {value}")
    if args.show_canonical:
        print()
        print(signer.canonical_request())
    return 0


def handle_raw_command(args) -> int:
    """Handle raw request command."""
    body = None
    if args.body is not None:
        try:
            body = json.loads(args.body)
        except json.JSONDecodeError as e:
            print(f"Error: --body is not valid JSON: {e}", file=sys.stderr)
            return 1

    client = ApiClient.from_credentials(
        args.credentials,
        args.profile,
        timeout=args.timeout,
        verify_ssl=not args.insecure,
        trace=args.verbose
    )
    with client:
        result = client.execute(
            args.method,
            args.path,
            body=body,
            api_version=args.api_version,
            query=args.query
        )

    if result is not None:
        print(json.dumps(result, indent=2, sort_keys=True))
    return 0


def handle_verify_command(args) -> int:
    """Handle verify command."""
    public_key = Path(args.public_key).expanduser().read_bytes()
    headers = parse_header_arguments(args.header)

    result = verify_request(
        headers,
        args.method,
        args.path,
        public_key,
        body=args.body,
        api_version=args.api_version
    )

    if result.valid:
        print(f"✓ Signature valid (protocol {result.version.value})")
        return 0

    print(f"✗ Signature invalid (protocol {result.version.value}): {result.reason}")
    if args.verbose:
        print()
        print(result.canonical_request)
    return 1


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI

    Args:
        argv: Command line arguments (None to use sys.argv)

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        if args.command == 'sign':
            return handle_sign_command(args)
        elif args.command == 'raw':
            return handle_raw_command(args)
        elif args.command == 'verify':
            return handle_verify_command(args)
        else:
            parser.print_help()
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130
    except ChefSDKError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
