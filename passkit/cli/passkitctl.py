#!/usr/bin/env python3
"""
passkitctl - Pass Package Assembler Control CLI

Commands:
    generate        Build a signed package for a pass type
    models          List available pass models
    check           Verify signing key material is accessible
    config          Configuration management
    serve           Run the HTTP server

Usage:
    passkitctl generate event
    passkitctl generate coupon --json
    passkitctl models
    passkitctl check
    passkitctl config validate
    passkitctl config show
    passkitctl serve --port 8080

Environment:
    PASSKIT_CONFIG           Path to configuration file
    PASSKIT_KEY_PASSPHRASE   Signing key passphrase
"""

import argparse
import json
import sys

import yaml

from ..api.server import PassServer
from ..config import load_config, validate_config
from ..errors import PasskitError
from ..logging_config import configure_from_environment
from ..models import ModelRepository
from ..pipeline import PassAssembler
from ..signing import create_signer


def _load(args):
    config = load_config(args.config)
    configure_from_environment(
        verbose=args.verbose or config.logging.verbose,
        json_format=config.logging.json_format,
        log_file=config.logging.log_file,
    )
    return config


def _report_error(args, error: PasskitError) -> int:
    if getattr(args, 'json', False):
        print(json.dumps(error.to_dict()))
    else:
        print(f"Error: {error.message}", file=sys.stderr)
    return 2 if error.client_error else 1


def cmd_generate(args):
    """Build a signed package."""
    try:
        config = _load(args)
        result = PassAssembler(config).assemble_sync(args.package_type)
    except PasskitError as e:
        return _report_error(args, e)

    if args.json:
        print(json.dumps({
            'status': True,
            'type': result.package_type,
            'path': str(result.path),
            'size': result.size,
            'manifest': result.manifest,
        }))
    else:
        print(f"{result.path} ({result.size} bytes, {len(result.manifest)} files)")
    return 0


def cmd_models(args):
    """List available pass models."""
    try:
        config = _load(args)
    except PasskitError as e:
        return _report_error(args, e)

    types = ModelRepository(config).list_types()
    if args.json:
        print(json.dumps({'status': True, 'models': types}))
    elif types:
        for package_type in types:
            print(package_type)
    else:
        print(f"No pass models found in {config.models_dir}", file=sys.stderr)
    return 0


def cmd_check(args):
    """Verify the signer can reach its key material."""
    try:
        config = _load(args)
        signer = create_signer(config)
        signer.check_prerequisites()
    except PasskitError as e:
        return _report_error(args, e)

    print(f"Signing prerequisites available ({signer.name} backend)")
    return 0


def cmd_config(args):
    """Configuration management."""
    try:
        config = _load(args)
    except PasskitError as e:
        return _report_error(args, e)

    if args.config_cmd == 'show':
        print(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False), end='')
        return 0

    result = validate_config(config)
    for finding in result.findings:
        print(str(finding))
    print(result.summary())
    return 0 if result.can_start else 1


def cmd_serve(args):
    """Run the HTTP server."""
    try:
        config = _load(args)
        server = PassServer(config)
    except PasskitError as e:
        return _report_error(args, e)

    try:
        server.serve_forever(args.host, args.port)
    except OSError as e:
        print(f"Error: cannot bind: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def main(argv=None):
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--config', '-c', help='Configuration file (JSON or YAML)')
    common.add_argument('--verbose', '-v', action='store_true', help='Verbose logging')

    parser = argparse.ArgumentParser(
        prog='passkitctl',
        description='Pass Package Assembler Control CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # generate
    gen_parser = subparsers.add_parser('generate', parents=[common], help='Build a signed package')
    gen_parser.add_argument('package_type', help='Pass type, e.g. event')
    gen_parser.add_argument('--json', action='store_true', help='Print result as JSON')
    gen_parser.set_defaults(func=cmd_generate)

    # models
    models_parser = subparsers.add_parser('models', parents=[common], help='List available pass models')
    models_parser.add_argument('--json', action='store_true', help='Print result as JSON')
    models_parser.set_defaults(func=cmd_models)

    # check
    check_parser = subparsers.add_parser('check', parents=[common], help='Check signing prerequisites')
    check_parser.set_defaults(func=cmd_check)

    # config
    config_parser = subparsers.add_parser('config', help='Configuration management')
    config_sub = config_parser.add_subparsers(dest='config_cmd')
    config_sub.add_parser('validate', parents=[common], help='Validate configuration')
    config_sub.add_parser('show', parents=[common], help='Show effective configuration')
    config_parser.set_defaults(func=cmd_config)

    # serve
    serve_parser = subparsers.add_parser('serve', parents=[common], help='Run the HTTP server')
    serve_parser.add_argument('--host', help='Bind address (overrides server.host)')
    serve_parser.add_argument('--port', '-p', type=int, help='Port (overrides server.port)')
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == 'config' and not args.config_cmd:
        config_parser.print_help()
        return 0

    result = args.func(args)
    return result if result else 0


if __name__ == "__main__":
    sys.exit(main())
