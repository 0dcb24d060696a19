"""Delve CLI entry point.

Provides subcommands for running the dungeon API server and for generating a
layout straight to stdout or a file. Accepts configuration via flags and
environment variables, with optional .env loading.

Run `python run.py --help` for details.
"""

import argparse
import json
import os
import signal
import sys
from textwrap import dedent

from colorama import Fore, Style
from colorama import init as _color_init
from dotenv import load_dotenv

_color_init()
# Disable colors if output is not a real terminal (e.g., during pytest capture)
_COLOR_ENABLED = sys.stdout.isatty()

EXIT_INVALID = 2
EXIT_EXHAUSTED = 3


def _load_version() -> str:
    try:
        with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "VERSION"), "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError:
        return "0.4.0"


__version__ = _load_version()


def parse_args(argv: list[str]) -> argparse.Namespace:
    description = """
    Delve dungeon layout engine

    Run the HTTP API server or generate a layout from the command line.
    Configuration can be provided via CLI flags or environment variables.
    If both are present, CLI flags take precedence.
    """

    epilog = dedent(
        """
        Environment variables:
          HOST                        Bind address for the web server (default: 0.0.0.0)
          PORT                        Port for the web server (default: 5000)
          DATABASE_URL                SQLAlchemy database URI (default: sqlite:///instance/delve.db)
          DELVE_LOG_LEVEL             debug | info | warn | error
          DELVE_LOG_STREAM            stdout | stderr (generate always logs to stderr)
          DUNGEON_MAX_RETRIES         Per-level retry cap (default: 5)

        Examples:
          # Run the server on the default host and port
          python run.py server

          # Generate a three level dungeon and print a summary
          python run.py generate --levels 3 --seed 42 --summary

          # Tile assembly with the quad catalog, written to a file
          python run.py generate --mode tile --catalog quad --out layout.json
        """
    )

    parser = argparse.ArgumentParser(
        prog="Delve",
        description=dedent(description),
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--env-file", dest="env_file", help="Path to a .env file to load before processing flags")
    parser.add_argument("--version", action="version", version=f"Delve Dungeon Engine {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    server_parser = subparsers.add_parser(
        "server",
        help="Run the dungeon API web server",
        formatter_class=argparse.RawTextHelpFormatter,
        description="Run the Flask dungeon API server",
    )
    server_parser.add_argument("--host", default=None, help="Host interface to bind (default: env HOST or 0.0.0.0)")
    server_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: env PORT or 5000)")
    server_parser.add_argument(
        "--db",
        dest="db_uri",
        default=None,
        help="Database URI (default: env DATABASE_URL or sqlite:///instance/delve.db)",
    )
    server_parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode with verbose error pages")
    server_parser.set_defaults(command="server")

    gen = subparsers.add_parser(
        "generate",
        help="Generate a dungeon layout as JSON",
        formatter_class=argparse.RawTextHelpFormatter,
        description="Generate a layout and print it (or a summary) without starting the server",
    )
    gen.add_argument("--width", type=int, default=None)
    gen.add_argument("--height", type=int, default=None)
    gen.add_argument("--levels", type=int, default=None)
    gen.add_argument("--min-room", dest="min_room_size", type=int, default=None)
    gen.add_argument("--max-room", dest="max_room_size", type=int, default=None)
    gen.add_argument("--density", dest="room_density", type=float, default=None)
    gen.add_argument("--extra", dest="extra_connections_ratio", type=float, default=None, help="Extra loop edge ratio")
    gen.add_argument("--secret", dest="secret_door_ratio", type=float, default=None, help="Secret door ratio")
    gen.add_argument("--mode", default=None, help="partition | tile")
    gen.add_argument("--catalog", dest="tile_catalog", default=None, help="Tile catalog id (tile mode)")
    gen.add_argument("--seed", default=None, help="Integer or text seed (text is hashed); random when omitted")
    gen.add_argument("--theme", default=None)
    gen.add_argument("--difficulty", default=None, help="easy | medium | hard | deadly")
    gen.add_argument("--out", default=None, help="Write JSON to this path instead of stdout")
    gen.add_argument("--summary", action="store_true", help="Print a per-level summary instead of JSON")
    gen.set_defaults(command="generate")

    # If no subcommand provided, default to server
    if len(argv) == 0:
        argv = ["server"]

    return parser.parse_args(argv)


def label(text: str) -> str:
    return f"{Fore.YELLOW}{text}{Style.RESET_ALL}" if _COLOR_ENABLED else text


def value(val) -> str:
    return f"{Fore.GREEN}{val}{Style.RESET_ALL}" if _COLOR_ENABLED else str(val)


def _error(msg: str) -> None:
    prefix = f"{Fore.RED}[ERROR]{Style.RESET_ALL}" if _COLOR_ENABLED else "[ERROR]"
    print(f"{prefix} {msg}", file=sys.stderr)


_PARAM_FIELDS = (
    "width",
    "height",
    "levels",
    "min_room_size",
    "max_room_size",
    "room_density",
    "extra_connections_ratio",
    "secret_door_ratio",
    "mode",
    "tile_catalog",
    "seed",
    "theme",
    "difficulty",
)


def summarize(layout) -> str:
    """Short human readable report of a layout."""
    ident = layout.identity
    lines = [
        f"{label('Dungeon:')} {value(ident.name)} ({ident.dungeon_type}, {ident.difficulty}, level {ident.recommended_level})",
        f"{label('Seed:')} {value(layout.params.seed)}",
    ]
    for lvl in layout.levels:
        secret = sum(1 for d in lvl.doors if d.door_type == "secret")
        lines.append(
            f"  {label(lvl.name + ':'):16} index={lvl.index} mode={lvl.generation_mode} rooms={len(lvl.rooms)} "
            f"corridors={len(lvl.corridors)} doors={len(lvl.doors)} secret={secret} stairs={len(lvl.stairs)}"
        )
    entry = layout.entry_point
    lines.append(f"{label('Entry:')} level {entry.level_index} {entry.room_id}")
    for ex in layout.exit_points:
        lines.append(f"{label('Exit:')} level {ex.level_index} {ex.room_id}")
    return "\n".join(lines)


def run_generate(args: argparse.Namespace) -> int:
    # stdout carries the layout document, engine events go to stderr
    os.environ["DELVE_LOG_STREAM"] = "stderr"
    from delve.dungeon import GenerationExhausted, GenerationParameters, InvalidParameters, generate_dungeon
    from delve.logging_utils import log

    payload = {name: getattr(args, name, None) for name in _PARAM_FIELDS}
    try:
        params = GenerationParameters.from_mapping(payload)
        layout = generate_dungeon(params)
    except InvalidParameters as exc:
        _error(f"invalid parameters: {exc}")
        return EXIT_INVALID
    except GenerationExhausted as exc:
        _error(str(exc))
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return EXIT_EXHAUSTED
    if args.summary:
        print(summarize(layout))
        return 0
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            json.dump(layout.to_dict(), f, indent=2)
        log.info(event="layout_written", path=args.out, seed=params.seed)
        return 0
    print(json.dumps(layout.to_dict(), indent=2))
    return 0


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if getattr(args, "env_file", None):
        load_dotenv(args.env_file)
    else:
        # Load default .env if present (no error if missing)
        load_dotenv()

    mode = (getattr(args, "command", None) or "server").lower()
    if mode == "generate":
        return run_generate(args)

    env_host = os.getenv("HOST", "0.0.0.0")
    env_port = int(os.getenv("PORT", "5000"))
    env_db = os.getenv("DATABASE_URL")

    host = getattr(args, "host", None) or env_host
    port = int(getattr(args, "port", None) or env_port)
    db_uri_cli = getattr(args, "db_uri", None)

    # DATABASE_URL must be in place BEFORE the Flask app is imported
    if db_uri_cli:
        os.environ["DATABASE_URL"] = db_uri_cli
    db_banner = db_uri_cli or env_db or "auto (instance/delve.db)"

    def handle_sigint(sig, frame):
        print("\n[INFO] Shutting down server...")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_sigint)

    # Import server entrypoints only after environment is ready
    from delve.logging_utils import log
    from delve.server import start_server

    title = f"{Fore.CYAN}{Style.BRIGHT}Delve Dungeon API{Style.RESET_ALL}" if _COLOR_ENABLED else "Delve Dungeon API"
    divider = (Fore.MAGENTA + "=" * 40 + Style.RESET_ALL) if _COLOR_ENABLED else "=" * 40
    debug = bool(getattr(args, "debug", False) or os.getenv("FLASK_DEBUG") == "1")
    lines = [
        divider,
        f"  {title}",
        divider,
        f"  {label('Version:'):12} {value(__version__)}",
        f"  {label('Host:'):12} {value(host)}",
        f"  {label('Port:'):12} {value(port)}",
        f"  {label('Database:'):12} {value(db_banner)}",
        f"  {label('Debug:'):12} {value('YES' if debug else 'NO')}",
        divider,
        "",
    ]
    print("\n".join(lines))
    log.info(event="startup", mode=mode, host=host, port=port, db=db_banner, debug=debug)
    start_server(host=host, port=port, debug=debug)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
