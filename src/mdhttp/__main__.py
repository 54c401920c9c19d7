"""
=============================================================================
MDHTTP CLI ENTRY POINT
=============================================================================

    mdhttp [options...] <filepath>
    python -m mdhttp [options...] <filepath>

=============================================================================
USAGE
=============================================================================

    # Serve README.md on 0.0.0.0:8080
    mdhttp README.md

    # Local only, custom title and stylesheet
    mdhttp --listen 127.0.0.1:3000 --title "Docs" --css ./theme.css README.md

    # Same thing from the environment (flags still win)
    MDHTTP_listen=127.0.0.1:3000 MDHTTP_title=Docs mdhttp README.md

    # JSON logs from the environment, switched off for one run
    MDHTTP_jsonlog=true mdhttp --no-jsonlog README.md

=============================================================================
EXIT CODES
=============================================================================

    0   graceful shutdown after SIGINT/SIGTERM, or --help / --version
    1   the server failed: unreadable file, bind error, ...
    2   bad command line or environment; usage is printed

=============================================================================
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Dict, List, Mapping, Optional

from . import __version__
from .config import ServerConfig, parse_listen_address
from .log import configure_logging
from .server import ServerClosed, run


logger = logging.getLogger("mdhttp.cli")

USAGE = "mdhttp [options...] <filepath>"

EPILOG = (
    "All options have a corresponding environment variable "
    "MDHTTP_<option>=<value>, e.g. MDHTTP_listen=127.0.0.1:3000.\n"
    "Flags take precedence over environment variables."
)


class _UsageFormatter(argparse.RawDescriptionHelpFormatter):
    """Capitalized "Usage:" prefix."""

    def add_usage(self, usage, actions, groups, prefix=None):
        return super().add_usage(usage, actions, groups, prefix or "Usage: ")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Option defaults are None so that "not given" can fall through to the
    environment and then to the ServerConfig defaults.
    """
    parser = argparse.ArgumentParser(
        prog="mdhttp",
        usage=USAGE,
        description="Serve a Markdown file as a single HTML page.",
        formatter_class=_UsageFormatter,
        epilog=EPILOG,
    )

    parser.add_argument(
        "filepath",
        nargs="*",
        help="Markdown file to render and serve",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--listen",
        default=None,
        help="ip:port to listen on (default: 0.0.0.0:8080, [::1]:8080 for IPv6)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--title",
        default=None,
        help="HTML page title (default: Landing page)",
    )

    parser.add_argument(
        "--css",
        default=None,
        help="stylesheet path, file:// path or http(s) URL",
    )

    parser.add_argument(
        "--favicon",
        default=None,
        help="favicon path, file:// path or http(s) URL",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="debug level logs with source location",
    )

    parser.add_argument(
        "--jsonlog",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="log one JSON object per line",
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--version",
        action="version",
        version=f"mdhttp {__version__}",
    )

    return parser


def load_config(
    argv: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    parser: Optional[argparse.ArgumentParser] = None,
) -> ServerConfig:
    """
    Turn the command line and MDHTTP_* variables into a validated config.

    Precedence: flag > environment > default.

    Raises:
        SystemExit: Code 2 with usage on stderr for any invalid input,
            code 0 for --help and --version.
    """
    parser = parser or build_parser()
    args = parser.parse_args(argv)

    if len(args.filepath) != 1:
        parser.error("Expected a single argument as the markdown filepath!")

    overrides: Dict[str, object] = {"document_path": args.filepath[0]}

    if args.listen is not None:
        try:
            overrides["host"], overrides["port"] = parse_listen_address(args.listen)
        except ValueError:
            parser.error(f"Invalid value for 'listen' '{args.listen}'")
    if args.title is not None:
        overrides["title"] = args.title
    if args.css is not None:
        overrides["css_url"] = args.css
    if args.favicon is not None:
        overrides["favicon_url"] = args.favicon
    if args.debug is not None:
        overrides["debug"] = args.debug
    if args.jsonlog is not None:
        overrides["json_log"] = args.jsonlog

    try:
        config = ServerConfig.from_env(environ, **overrides)
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    return config


# =============================================================================
# SIGNALS
# =============================================================================

def _setup_signals(cancel: threading.Event) -> Dict[int, object]:
    """
    Route SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) to cancel.

    Returns the previous handlers for _restore_signals(). Signal handlers
    can only be installed from the main thread; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        return {}

    def shutdown_handler(signum, frame):
        logger.debug("signal received", extra={"signal": signal.Signals(signum).name})
        cancel.set()

    original = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        original[sig] = signal.signal(sig, shutdown_handler)
    return original


def _restore_signals(original: Dict[int, object]) -> None:
    for sig, handler in original.items():
        signal.signal(sig, handler)


# =============================================================================
# MAIN
# =============================================================================

def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Run the server until a signal arrives.

    Returns:
        The process exit code.
    """
    try:
        config = load_config(argv, environ)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 2

    configure_logging(debug=config.debug, json_format=config.json_log)

    cancel = threading.Event()
    original_handlers = _setup_signals(cancel)
    try:
        run(config, cancel)
    except ServerClosed:
        return 0
    except Exception as e:
        logger.debug("run failed", exc_info=True)
        logger.error(f"Exiting with error: {e}")
        return 1
    finally:
        _restore_signals(original_handlers)

    return 0


if __name__ == "__main__":
    sys.exit(main())
