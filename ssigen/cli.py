from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .builder import BuildResult, BuildSession
from .config import DEFAULT_CONFIG, BuildConfig, load_config
from .errors import SsigenError
from .logging import configure_logging
from .utils import parse_bool, parse_int


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_str(key: str, default: str) -> str:
        value = config.get(key)
        return default if value is None else str(value)

    def cfg_bool(key: str, default: bool) -> bool:
        value = config.get(key)
        return default if value is None else parse_bool(value)

    def cfg_int(key: str, default: int) -> int:
        return parse_int(config.get(key), default)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    common.add_argument("--source", "-s", default=cfg_str("source", "src"), help="Source directory.")
    common.add_argument("--output", "-o", default=cfg_str("output", "dist"), help="Output directory.")
    common.add_argument(
        "--includes", "-i", default=cfg_str("includes", "includes"), help="Name of the partials directory."
    )
    common.add_argument("--head", default=cfg_str("head", ""), help="Head snippet injected into every page.")
    common.add_argument("--layout", default=cfg_str("layout", ""), help="Default layout for markdown pages.")
    common.add_argument(
        "--clean",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("clean", True),
        help="Clean output directory before a full build.",
    )
    common.add_argument(
        "--workers",
        default=cfg_int("workers", 1),
        type=int,
        help="Number of worker threads for rendering pages (0 = auto).",
    )
    common.add_argument(
        "--base-url", default=cfg_str("base_url", ""), help="Public site URL; enables sitemap.xml."
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    common.add_argument("--log-file", default=cfg_str("log_file", ""), help="Also write logs to this file.")

    live = argparse.ArgumentParser(add_help=False)
    live.add_argument(
        "--preview-errors",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("preview_errors", False),
        help="Render failed includes as visible comments instead of leaving pages unbuilt.",
    )

    parser = argparse.ArgumentParser(prog="ssigen", description="Static site builder with server-side includes.")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("build", parents=[common], help="Build the site once.")
    commands.add_parser("watch", parents=[common, live], help="Build, then rebuild on changes.")
    serve = commands.add_parser("serve", parents=[common, live], help="Watch and serve with live reload.")
    serve.add_argument("--host", default=cfg_str("host", "localhost"), help="Dev server host.")
    serve.add_argument("--port", "-p", default=cfg_int("port", 3000), type=int, help="Dev server port.")
    return parser


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    if args.workers < 0:
        raise SsigenError(f"Invalid --workers value: {args.workers}")
    return BuildConfig(
        source=Path(args.source),
        output=Path(args.output),
        includes=args.includes,
        head=Path(args.head) if args.head else None,
        layout=args.layout or None,
        clean=args.clean,
        workers=args.workers,
        base_url=args.base_url,
        preview_errors=getattr(args, "preview_errors", False),
        project_root=Path.cwd(),
    )


def report(result: BuildResult) -> None:
    print(f"Build completed in {result.duration:.2f}s.")
    print(f"Processed: {result.processed}, Copied: {result.copied}, Skipped: {result.skipped}")
    for failure in result.errors:
        print(f"  {failure.file}: {failure.error}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=DEFAULT_CONFIG)
    pre_args, _ = pre_parser.parse_known_args(argv)
    try:
        config = load_config(Path(pre_args.config))
    except SsigenError as exc:
        print(exc, file=sys.stderr)
        return 1

    args = build_parser(config, pre_args.config).parse_args(argv)
    configure_logging(verbose=args.verbose, log_file=Path(args.log_file) if args.log_file else None)
    try:
        session = BuildSession(config_from_args(args))
        result = session.build()
    except SsigenError as exc:
        print(exc, file=sys.stderr)
        return 1
    report(result)
    if args.command == "build":
        if not result.success:
            return 1
        print(f"Site generated in: {args.output}")
        return 0

    if args.command == "serve":
        from .server import serve

        serve(session, host=args.host, port=args.port)
        return 0

    from .watcher import SiteWatcher

    watcher = SiteWatcher(session, on_build=report).start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("Stopping file watcher...")
    finally:
        watcher.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
