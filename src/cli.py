#!/usr/bin/env python3
"""
DropMint Command Line Interface.

Commands:
    - serve: Start the API server around a fresh storefront
    - check: Validate configuration and run a dry estimate on a demo storefront
    - info: Show version, platform and effective settings

Usage:
    dropmint serve [--host HOST] [--port PORT] [--debug] [--demo] [--production [--workers N]]
    dropmint check
    dropmint info
    dropmint --version
"""

import argparse
import os
import platform
import sys

# Ensure src is in path when running from source
if os.path.exists(os.path.join(os.path.dirname(__file__), "collection.py")):
    sys.path.insert(0, os.path.dirname(__file__))

__version__ = "0.1.0"


def _load_settings():
    """Settings from the environment, after loading a .env file if present."""
    from dotenv import load_dotenv

    from config import Settings

    load_dotenv()
    return Settings.from_env()


def build_storefront(settings, demo: bool = False):
    """Storefront for `serve`; with `demo`, seeded with one live collection."""
    from ledger import derive_address, is_zero_address
    from storefront import Storefront

    admin = settings.admin
    if is_zero_address(admin):
        admin = derive_address("dropmint:admin")
    store = Storefront.create(settings, admin=admin)

    if demo:
        if not settings.has_platform_recipient:
            settings.platform_recipient = derive_address("dropmint:platform")
        creator = derive_address("dropmint:creator")
        collection = store.deploy_collection(admin, "demo", creator=creator, creator_bps=1000)
        now = store.ledger.now()
        collection.create_drop(creator, 10**15, now)
        collection.create_drop(creator, 0, now)
    return store


def _production_server(flask_app, host: str, port: int, workers: int | None):
    import gunicorn.app.base

    class StandaloneApplication(gunicorn.app.base.BaseApplication):
        """Gunicorn wrapper serving an already-built Flask app."""

        def __init__(self, app, options):
            self.options = options
            self.application = app
            super().__init__()

        def load_config(self):
            for key, value in self.options.items():
                if key in self.cfg.settings and value is not None:
                    self.cfg.set(key, value)

        def load(self):
            return self.application

    return StandaloneApplication(flask_app, {
        "bind": f"{host}:{port}",
        # The ledger lives in process memory, so a single worker serves it
        "workers": workers or 1,
        "threads": int(os.getenv("THREADS", 4)),
        "worker_class": "gthread",
        "timeout": 120,
        "accesslog": "-",
        "errorlog": "-",
    })


def cmd_serve(args):
    """Start the DropMint API server."""
    from app import create_app
    from monitoring import configure_logging

    settings = _load_settings()
    configure_logging(settings.log_level, json_output=settings.log_format == "json")

    host = args.host or settings.host
    port = args.port or settings.port
    flask_app = create_app(build_storefront(settings, demo=args.demo), settings)
    print(f"Starting DropMint API server on {host}:{port}")

    if not args.production:
        debug = args.debug or os.getenv("FLASK_DEBUG", "").lower() == "true"
        flask_app.run(host=host, port=port, debug=debug)
        return

    try:
        server = _production_server(flask_app, host, port, args.workers)
    except ImportError:
        print("Error: gunicorn not installed. Install with: pip install dropmint[production]")
        sys.exit(1)
    server.run()


def _check_engine(settings) -> str:
    """Deploy the demo storefront and estimate a two-drop batch."""
    from resolver import BatchMintItem

    store = build_storefront(settings, demo=True)
    [collection] = store.collections()
    items = [BatchMintItem(collection.address, 0, 1), BatchMintItem(collection.address, 1, 1)]
    total = store.resolver.get_payment_estimate(items)
    return f"OK (demo estimate {total} wei)"


def cmd_check(args):
    """Check configuration, the minting engine and optional dependencies."""
    from errors import ConfigurationError, DropMintError

    print("DropMint Installation Check")
    print("=" * 40)

    checks = []
    settings = None
    try:
        settings = _load_settings()
        checks.append(("Configuration", "OK"))
    except ConfigurationError as e:
        checks.append(("Configuration", f"FAIL: {e.message}"))

    if settings is None:
        checks.append(("Minting engine", "SKIP (configuration invalid)"))
    else:
        try:
            checks.append(("Minting engine", _check_engine(settings)))
        except DropMintError as e:
            checks.append(("Minting engine", f"FAIL: {e.message}"))

    for label, module, missing in (
        ("Flask API", "app", "FAIL"),
        ("Production server", "gunicorn", "SKIP"),
    ):
        try:
            __import__(module)
            checks.append((label, "OK"))
        except ImportError as e:
            checks.append((label, f"{missing}: {e}"))

    print()
    failed = False
    for name, status in checks:
        icon = "✓" if status.startswith("OK") else ("○" if status.startswith("SKIP") else "✗")
        print(f"  {icon} {name}: {status}")
        failed = failed or status.startswith("FAIL")

    print()
    print("Some checks failed. See above for details." if failed else "All checks passed!")
    return 1 if failed else 0


def cmd_info(args):
    """Display version, runtime and effective settings."""
    print("DropMint System Information")
    print("=" * 40)
    print(f"Version: {__version__}")
    print(f"Python: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")

    print()
    print("Configuration:")
    for key, value in _load_settings().to_dict().items():
        print(f"  {key}: {value}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dropmint",
        description="DropMint - token drop minting with multi-currency fee splitting",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Host to bind to (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default: PORT or 5000)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    serve_parser.add_argument("--demo", action="store_true", help="Seed a demo collection")
    serve_parser.add_argument("--production", action="store_true", help="Serve with gunicorn")
    serve_parser.add_argument("--workers", type=int, help="Gunicorn workers (production mode)")

    subparsers.add_parser("check", help="Check configuration and installation")
    subparsers.add_parser("info", help="Display system information")

    args = parser.parse_args()

    commands = {"serve": cmd_serve, "check": cmd_check, "info": cmd_info}
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)
    result = commands[args.command](args)
    if result is not None:
        sys.exit(result)


if __name__ == "__main__":
    main()
