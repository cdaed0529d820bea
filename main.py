import argparse
import logging
import socket
import sys

# 1. Import Settings FIRST so the CLI can fall back on them
import settings
from server_config import ServiceConfig, get_config, set_config
from errors import StorageError
from log_setup import setup_logging

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# HELPER: Port Availability
# -----------------------------------------------------------------------------
def is_port_free(host, port):
    """Returns True if the port is available."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        # Allow reusing the address if it's in TIME_WAIT from a recent shutdown
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


# -----------------------------------------------------------------------------
# CONFIGURATION OVERRIDE LOGIC
# -----------------------------------------------------------------------------
def build_parser():
    parser = argparse.ArgumentParser(description="ASCII art catalog service")
    parser.add_argument("--catalog", help="Font catalog JSON built by librarify.py "
                                          f"(default: ${getattr(settings, 'CATALOG_ENV_VAR', 'ASCII_ART_CATALOG')} "
                                          f"or {getattr(settings, 'CATALOG_PATH', 'fonts.json')})")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("--port", type=int, help="Port to listen on")
    parser.add_argument("--decoder", choices=["pillow", "opencv"], help="Image decoder")
    parser.add_argument("--max-cols", type=int, dest="max_cols", help="Cap output width in columns")
    parser.add_argument("--log", default=getattr(settings, 'LOG_LEVEL', 'INFO'),
                        help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--test", action="store_true",
                        help="Load the catalog, report it, and exit without serving")
    return parser


def configure_runtime(argv=None):
    args = build_parser().parse_args(argv)
    config = ServiceConfig.from_settings().with_overrides(
        catalog_path=args.catalog,
        host=args.host,
        port=args.port,
        decoder=args.decoder,
        max_cols=args.max_cols,
    )
    set_config(config)
    return args


def main(argv=None):
    try:
        args = configure_runtime(argv)
        setup_logging(args.log)
    except ValueError as e:
        print(f"❌ ERROR: {e}", file=sys.stderr)
        return 1

    config = get_config()

    # Imported late so --help stays fast
    from font_catalog import load_catalog
    from web_service import make_server

    # The whole catalog is loaded before the socket is bound
    try:
        catalog = load_catalog(config.catalog_path)
    except StorageError as e:
        print(f"❌ ERROR: {e}", file=sys.stderr)
        return 1

    if args.test:
        for name, sizes in catalog.listing().items():
            print(f"{name}: {' '.join(str(s) for s in sizes)}")
        print(f">> Catalog OK: {len(catalog)} font(s) in {config.catalog_path}")
        return 0

    if config.is_system_port:
        logger.warning(f"Port {config.port} is a system port (<1024); binding may need privileges.")
    if config.port and not is_port_free(config.host, config.port):
        print(f"❌ ERROR: Port {config.port} is ALREADY IN USE.", file=sys.stderr)
        print("   -> Is another instance running?", file=sys.stderr)
        print("   -> Try a different --port", file=sys.stderr)
        return 1

    httpd = make_server(catalog, config)
    host, port = httpd.server_address[:2]
    print(f">> Catalog service running on {host}:{port}")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        print("\n>> Shutting down")
    finally:
        httpd.server_close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
