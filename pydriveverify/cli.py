"""CLI interface for PyDriveVerify."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .cli_progress import ScanProgressDisplay
from .config import config
from .exceptions import (
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveVerifyError,
)
from .output import OutputFormatter
from .paths import default_remote_root, normalize_remote_root
from .utils import DEFAULT_WORKERS, format_count, resolve_worker_count
from .verify import VerifyEngine

logger = logging.getLogger(__name__)


def require_access_token(ctx: Any, out: OutputFormatter) -> str:
    """Return the access token from the command line or config, or exit."""
    token: Optional[str] = ctx.obj.get("token")
    if not token:
        try:
            token = config.access_token
        except DriveConfigError as e:
            out.error(str(e))
            ctx.exit(1)
    if not token:
        out.error("Access token not configured.")
        out.info(
            "Run 'pydriveverify init' or set the DRIVE_ACCESS_TOKEN environment variable"
        )
        ctx.exit(1)
    return str(token)


@click.group()
@click.option(
    "--token", "-t", envvar="DRIVE_ACCESS_TOKEN", help="Drive OAuth access token"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pydriveverify")
@click.pass_context
def main(
    ctx: Any,
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyDriveVerify - check that a local folder matches its cloud drive copy."""
    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pydriveverify").setLevel(logging.DEBUG)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--token",
    "-t",
    prompt="Enter your drive access token",
    hide_input=True,
    help="Drive OAuth access token",
)
@click.pass_context
def init(ctx: Any, token: str) -> None:
    """Store an access token.

    The token is saved in ~/.config/pydriveverify/config.json.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating access token...")
    try:
        with DriveClient(access_token=token) as client:
            client.get_root_id()
        out.success("Access token is valid")
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    except DriveAuthenticationError:
        out.warning("Invalid access token")
        if not click.confirm("Save anyway?", default=False):
            out.info("Configuration cancelled")
            ctx.exit(1)
    except DriveAPIError as e:
        out.error(f"Could not validate access token: {e}")
        if not click.confirm("Save anyway?", default=False):
            out.info("Configuration cancelled")
            ctx.exit(1)

    try:
        config.save_access_token(token)
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.option(
    "--local",
    "-l",
    "local_root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Local directory to compare with the drive",
)
@click.option(
    "--remote",
    "-r",
    "remote_root",
    default=None,
    help="Drive folder to verify (default: derived from the local path)",
)
@click.option(
    "--selective",
    is_flag=True,
    help="Local is selectively synced - only check the top-level folders present "
    "locally",
)
@click.option("--skip-hash", is_flag=True, help="Skip hashing local files")
@click.option(
    "--workers",
    "-w",
    type=int,
    default=DEFAULT_WORKERS,
    show_default=True,
    help="Local hashing threads, 0 to use one per CPU core",
)
@click.option(
    "--known-issues",
    "known_issue_mode",
    is_flag=True,
    help="Skip files known to have sync issues with some sync clients "
    "(e.g. names containing ':')",
)
@click.option(
    "--scoped",
    is_flag=True,
    help="List only the remote folder instead of the whole drive "
    "(slower for large trees, faster when the folder is small)",
)
@click.pass_context
def verify(
    ctx: Any,
    local_root: Path,
    remote_root: Optional[str],
    selective: bool,
    skip_hash: bool,
    workers: int,
    known_issue_mode: bool,
    scoped: bool,
) -> None:
    """Compare a local directory with a drive folder.

    Exits with status 1 when the trees differ or a scan fails.

    Examples:
        pydriveverify verify -l ~/Google\\ Drive/Photos
        pydriveverify verify -l /mnt/backup -r /Photos --skip-hash
        pydriveverify verify -l /volume1/drive --selective --known-issues
    """
    out: OutputFormatter = ctx.obj["out"]
    token = require_access_token(ctx, out)

    local_root = local_root.absolute()
    if remote_root is None:
        remote_root = default_remote_root(local_root)
    remote_root = normalize_remote_root(remote_root)

    if selective:
        out.info(
            f'Comparing subfolders of drive folder "{remote_root}" '
            f'to local directory "{local_root}"'
        )
    else:
        out.info(f'Comparing drive folder "{remote_root}" to local directory "{local_root}"')
    if not skip_hash:
        out.info("Checking content hashes.")
    out.info(f"Using {resolve_worker_count(workers)} local worker threads.")
    out.info("")

    try:
        client = DriveClient(access_token=token)
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    engine = VerifyEngine(client)
    try:
        with ScanProgressDisplay(
            enabled=not out.quiet and not out.json_output
        ) as display:
            result = engine.verify(
                local_root,
                remote_root=remote_root,
                selective=selective,
                skip_hash=skip_hash,
                workers=workers,
                known_issue_mode=known_issue_mode,
                scoped=scoped,
                progress_callback=display.update,
            )
    except KeyboardInterrupt:
        out.warning("Verification cancelled by user")
        ctx.exit(130)
    except DriveVerifyError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    remote_count, local_count = engine.manifest_sizes
    out.info(
        f"Generated manifests for {format_count(remote_count, 'remote file')}, "
        f"{format_count(local_count, 'local file')}, with "
        f"{format_count(len(result.errored), 'local error')}"
    )
    out.info("")

    out.print_comparison(result)

    if engine.subfolders is not None:
        out.print_path_list("Subfolders verified", engine.subfolders)

    if not result.is_successful():
        ctx.exit(1)


if __name__ == "__main__":
    main()
