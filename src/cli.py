#!/usr/bin/env python3
"""
Issuance Controller Command Line Interface.

Commands:
    - serve: Start the API server
    - check: Verify installation and configuration
    - info: Display system information
    - status: Summarize the persisted registry state

Usage:
    issuance serve [--host HOST] [--port PORT] [--debug] [--production]
    issuance check
    issuance info
    issuance status
    issuance --version
"""

import argparse
import os
import sys

# Ensure src is in path when running from source
if os.path.exists(os.path.join(os.path.dirname(__file__), "issuance_controller.py")):
    sys.path.insert(0, os.path.dirname(__file__))

__version__ = "0.1.0"


def cmd_serve(args):
    """Start the issuance API server."""
    from dotenv import load_dotenv

    load_dotenv()

    from monitoring import configure_logging

    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", 5000))
    debug = args.debug or os.getenv("FLASK_DEBUG", "").lower() == "true"

    from api import create_app

    flask_app = create_app()
    print(f"Starting issuance controller API on {host}:{port}")

    if args.production:
        try:
            import gunicorn.app.base
        except ImportError:
            print("Error: gunicorn not installed. Install with: pip install issuance-controller[production]")
            sys.exit(1)

        class StandaloneApplication(gunicorn.app.base.BaseApplication):
            """Gunicorn application serving an already-built Flask app."""

            def __init__(self, app, options=None):
                self.options = options or {}
                self.application = app
                super().__init__()

            def load_config(self):
                for key, value in self.options.items():
                    if key in self.cfg.settings and value is not None:
                        self.cfg.set(key.lower(), value)

            def load(self):
                return self.application

        # One worker: registry state lives in this process; threads share it
        # through the controller lock.
        options = {
            "bind": f"{host}:{port}",
            "workers": 1,
            "threads": args.threads or int(os.getenv("THREADS", 4)),
            "worker_class": "gthread",
            "timeout": 120,
            "accesslog": "-",
            "errorlog": "-",
        }
        StandaloneApplication(flask_app, options).run()
    else:
        flask_app.run(host=host, port=port, debug=debug)


def cmd_check(args):
    """Check installation and configuration."""
    print("Issuance Controller Installation Check")
    print("=" * 40)

    checks = []

    try:
        import issuance_controller  # noqa: F401

        checks.append(("Core controller", "OK"))
    except ImportError as e:
        checks.append(("Core controller", f"FAIL: {e}"))

    try:
        from issuance_config import IssuanceConfig
        from issuance_exceptions import ConfigurationError

        try:
            IssuanceConfig.from_env()
            checks.append(("Configuration", "OK"))
        except ConfigurationError as e:
            checks.append(("Configuration", f"FAIL: {e.message}"))
    except ImportError as e:
        checks.append(("Configuration", f"FAIL: {e}"))

    try:
        import api  # noqa: F401

        checks.append(("Flask API", "OK"))
    except ImportError as e:
        checks.append(("Flask API", f"FAIL: {e}"))

    try:
        from storage import StorageError, get_storage_backend

        try:
            storage = get_storage_backend()
            status = "OK" if storage.is_available() else "WARN (not available)"
            checks.append((f"Storage ({storage.__class__.__name__})", status))
        except StorageError as e:
            checks.append(("Storage", f"FAIL: {e}"))
    except ImportError as e:
        checks.append(("Storage", f"FAIL: {e}"))

    try:
        import gunicorn  # noqa: F401

        checks.append(("Production server (gunicorn)", "OK"))
    except ImportError:
        checks.append(("Production server (gunicorn)", "SKIP (gunicorn not installed)"))

    print()
    all_ok = True
    for name, status in checks:
        icon = "✓" if status == "OK" else ("○" if "SKIP" in status else "✗")
        print(f"  {icon} {name}: {status}")
        if "FAIL" in status:
            all_ok = False

    print()
    if all_ok:
        print("All checks passed!")
        return 0
    print("Some checks failed. See above for details.")
    return 1


def cmd_info(args):
    """Display system information."""
    import platform

    print("Issuance Controller System Information")
    print("=" * 40)
    print(f"Version: {__version__}")
    print(f"Python: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")

    print()
    print("Configuration:")
    try:
        from issuance_config import IssuanceConfig
        from issuance_exceptions import ConfigurationError

        config = IssuanceConfig.from_env()
        for key, value in config.to_dict().items():
            print(f"  {key}: {value}")
    except ConfigurationError as e:
        print(f"  Error: {e.message}")
    print(f"  STORAGE_BACKEND: {os.getenv('STORAGE_BACKEND', 'json (default)')}")
    print(f"  LOG_LEVEL: {os.getenv('LOG_LEVEL', 'INFO (default)')}")
    print(f"  LOG_FORMAT: {os.getenv('LOG_FORMAT', 'console (default)')}")

    print()
    print("Storage:")
    from storage import StorageError, get_storage_backend

    try:
        for key, value in get_storage_backend().get_info().items():
            print(f"  {key}: {value}")
    except StorageError as e:
        print(f"  Error: {e}")

    return 0


def cmd_status(args):
    """Summarize the persisted registry and ledger state."""
    from issuance_config import IssuanceConfig
    from storage import StorageError, get_storage_backend

    try:
        data = get_storage_backend().load_state()
    except StorageError as e:
        print(f"Error: {e}")
        return 1

    if not data:
        print("No persisted issuance state found.")
        return 0

    config = IssuanceConfig.from_env()
    registry = data.get("registry", {})
    records = registry.get("records", {})
    ledger = data.get("ledger", {})

    print("Issuance Controller Status")
    print("=" * 40)
    print(f"Total supply: {ledger.get('total_supply', 0)}")
    print(f"Issuers: {registry.get('total_issuers', 0)} / {config.max_issuers}")
    print(f"Cooldowns recorded: {len(registry.get('cooldown_until', {}))}")
    print(f"Notifications: {len(data.get('events', []))}")

    if records:
        print()
        print(f"  {'position':>8}  {'issuer':<44} {'expires':>10} {'minted':>14} {'burned':>14}")
        for identity in registry.get("issuer_list", []):
            record = records[identity]
            print(
                f"  {record['position']:>8}  {identity:<44} {record['expiration_block']:>10} "
                f"{record['total_minted']:>14} {record['total_burned']:>14}"
            )
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="issuance",
        description="Autonomous issuance-rights controller",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default: 5000)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    serve_parser.add_argument(
        "--production", action="store_true", help="Use gunicorn for production"
    )
    serve_parser.add_argument("--threads", type=int, help="Worker threads (production mode)")

    subparsers.add_parser("check", help="Check installation and configuration")
    subparsers.add_parser("info", help="Display system information")
    subparsers.add_parser("status", help="Summarize persisted registry state")

    args = parser.parse_args()

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "check":
        sys.exit(cmd_check(args))
    elif args.command == "info":
        sys.exit(cmd_info(args))
    elif args.command == "status":
        sys.exit(cmd_status(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
