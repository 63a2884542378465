"""Command line interface for cloudscale."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import BatchProgressDisplay, render_configuration_summary
from .exceptions import CloudScaleError, ConfigError
from .models import RunConfig
from .orchestrator import UpscaleOrchestrator
from .services.handle_log import HandleLog
from .services.settings import SettingsStore, resolve_settings

logger = logging.getLogger(__name__)


class CLIError(CloudScaleError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        name = log_level or os.getenv("LOG_LEVEL") or "INFO"
        level = getattr(logging, name.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


ENV_FILE_KEYS = (
    "CLOUDSCALE_CLOUD_NAME",
    "CLOUDSCALE_UPLOAD_PRESET",
    "CLOUDSCALE_CONCURRENCY",
    "CLOUDSCALE_SETTINGS",
    "LOG_LEVEL",
)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    line = line[len("export "):].strip() if line.startswith("export ") else line
    key, sep, value = line.partition("=")
    if not sep or not key.strip():
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key.strip(), value


def _load_env_file(path: Path, override: bool = False) -> Dict[str, str]:
    """
    Load cloudscale variables from a .env file into the environment.

    Only ENV_FILE_KEYS are applied; other keys are skipped with a warning.
    Returns the variables that were set.
    """
    if not path.is_file():
        raise CLIError(f"env file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied: Dict[str, str] = {}
    for number, raw_line in enumerate(content.splitlines(), start=1):
        parsed = _parse_env_line(raw_line)
        if parsed is None:
            continue
        key, value = parsed
        if key not in ENV_FILE_KEYS:
            logger.warning(f"{path}:{number}: ignoring unknown key {key}")
            continue
        if override or key not in os.environ:
            os.environ[key] = value
            applied[key] = value
    return applied


def _default_env_file() -> Optional[Path]:
    candidate = Path(".env")
    return candidate if candidate.is_file() else None


def _collect_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "cloudName": args.cloud_name,
        "uploadPreset": args.upload_preset,
        "concurrency": args.concurrency,
    }


async def _run_upscale(
    source: Path,
    config: RunConfig,
    output_dir: Path,
    handles_file: Optional[Path],
) -> int:
    async with UpscaleOrchestrator() as upscaler:
        files = upscaler.load_folder(source)
        session = upscaler.session
        render_configuration_summary(
            {
                "Folder": session.folder_label,
                "Images": len(files),
                "Credit Estimate": session.credit_estimate,
                "Cloud Name": config.cloud_name,
                "Concurrency": config.concurrency,
                "Output": str(output_dir),
            }
        )

        display = BatchProgressDisplay()
        session.on_start(display.on_start)
        session.on_stats(display.on_stats)
        session.on_item_state(display.on_item_state)
        session.on_item_complete(display.on_item_complete)
        session.on_item_fail(display.on_item_fail)
        session.on_finish(display.on_finish)
        session.on_run_fail(display.on_run_fail)
        session.on_error(display.on_error)
        if handles_file is not None:
            session.on_handle_created(HandleLog(handles_file).append)

        result = await upscaler.start(config)
        if result.artifact is None:
            return 1

        try:
            saved = result.artifact.save(output_dir)
        except OSError as exc:
            raise CLIError(f"could not write archive to {output_dir}: {exc}") from exc
        print(f"Saved {saved}")
        return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudscale",
        description="Upscale every image of a folder with Cloudinary and bundle the results.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="Folder of images")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("."),
        help="Directory for the <folder>_upscaled.zip archive (default: current directory)",
    )
    parser.add_argument("--cloud-name", default=None, help="Cloudinary cloud name")
    parser.add_argument("--upload-preset", default=None, help="Unsigned upload preset")
    parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        default=None,
        help="Images processed in parallel, 1-5 (default from settings or 2)",
    )
    parser.add_argument(
        "--configure",
        action="store_true",
        help="Save --cloud-name/--upload-preset/--concurrency to the settings file",
    )
    parser.add_argument(
        "--settings-file",
        type=Path,
        default=None,
        help="Settings file (default from CLOUDSCALE_SETTINGS or ~/.config/cloudscale/settings.json)",
    )
    parser.add_argument(
        "--handles-file",
        type=Path,
        default=None,
        help="Append uploaded public_ids to this JSON-lines file for later cleanup",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cloudscale {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    store = SettingsStore(args.settings_file)
    overrides = _collect_overrides(args)

    if args.configure:
        try:
            # environment values are per-invocation and never persisted
            store.save(resolve_settings(store.load(), env={}, overrides=overrides))
        except ConfigError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        print(f"Settings saved ✓ ({store.path})")
        if args.source is None:
            return 0

    if args.source is None:
        parser.print_help()
        return 0

    source = Path(args.source).expanduser()
    if not source.is_dir():
        print(f"ERROR: source is not a folder: {source}", file=sys.stderr)
        return 1

    try:
        config = RunConfig.from_settings(resolve_settings(store.load(), overrides=overrides))
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        print(
            "Run: cloudscale --configure --cloud-name <name> --upload-preset <preset>",
            file=sys.stderr,
        )
        return 1

    try:
        return asyncio.run(
            _run_upscale(
                source=source,
                config=config,
                output_dir=Path(args.output).expanduser(),
                handles_file=args.handles_file,
            )
        )
    except CloudScaleError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
