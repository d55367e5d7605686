"""CLI interface for pycpsync."""

import logging
import threading
from pathlib import Path
from typing import Any, Optional

import click

from .api import WebWorkflowClient
from .config import SyncSettings, config
from .exceptions import (
    CpAuthenticationError,
    CpConfigError,
    CpNotFoundError,
    CpPermissionError,
    CpSyncError,
)
from .models import VersionInfo
from .output import OutputFormatter
from .sync import SyncEngine
from .utils import format_size, format_timestamp_ms

logger = logging.getLogger(__name__)


def _make_client(ctx: Any) -> WebWorkflowClient:
    """Build a client from the global options, exiting on config errors."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return WebWorkflowClient(
            address=ctx.obj["address"], password=ctx.obj["password"]
        )
    except CpSyncError as e:
        out.error(str(e))
        ctx.exit(1)


def _connect(ctx: Any, client: WebWorkflowClient) -> VersionInfo:
    """Probe the device; bad credentials or an unreachable device are fatal."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        return client.get_version()
    except (CpAuthenticationError, CpPermissionError):
        out.error("Authentication failed (401/403). Exiting.")
    except CpSyncError as e:
        out.error(f"Failed to reach device: {e}")
    client.close()
    ctx.exit(1)


@click.group()
@click.option(
    "--address", "-a", envvar="CPSYNC_ADDRESS", help="Device host[:port] or URL"
)
@click.option(
    "--password", "-p", envvar="CPSYNC_PASSWORD", help="Web workflow password"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option()
@click.pass_context
def main(
    ctx: Any,
    address: Optional[str],
    password: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pycpsync - mirror a CircuitPython device over the web workflow."""
    ctx.ensure_object(dict)
    ctx.obj["address"] = address
    ctx.obj["password"] = password
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pycpsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--address", "-a", prompt="Device address", help="Device host[:port]")
@click.option(
    "--password",
    "-p",
    prompt="Web workflow password",
    hide_input=True,
    help="Web workflow password",
)
@click.pass_context
def init(ctx: Any, address: str, password: str) -> None:
    """Validate credentials and store them in ~/.config/pycpsync/config."""
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating credentials...")
    with WebWorkflowClient(address=address, password=password) as client:
        try:
            version = client.get_version()
            out.success(f"Connected to {version.hostname or address}")
        except CpSyncError as e:
            out.error(f"Validation failed: {e}")
            if not click.confirm("Save credentials anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)

    config.save_credentials(address, password)
    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.pass_context
def info(ctx: Any) -> None:
    """Show firmware version and disk status of the device."""
    out: OutputFormatter = ctx.obj["out"]
    with _make_client(ctx) as client:
        version = _connect(ctx, client)
        out.print_summary(
            "Device",
            [
                ("Hostname", version.hostname or "-"),
                ("Board", version.board_name or "-"),
                ("CircuitPython", version.version or "-"),
                ("Web API", str(version.web_api_version)),
                ("IP", version.ip or "-"),
            ],
        )
        try:
            disks = client.get_disk_info()
        except CpSyncError as e:
            out.error(f"Failed to read disk status: {e}")
            ctx.exit(1)
        out.table(
            "Disks",
            ["Root", "Free", "Total", "Writable"],
            [
                [
                    d.root,
                    format_size(d.free * d.block_size),
                    format_size(d.total * d.block_size),
                    "yes" if d.writable else "no (mounted by host?)",
                ]
                for d in disks
            ],
        )


@main.command(name="ls")
@click.argument("remote_dir", default="/")
@click.pass_context
def list_remote(ctx: Any, remote_dir: str) -> None:
    """List a remote directory (default: /)."""
    out: OutputFormatter = ctx.obj["out"]
    with _make_client(ctx) as client:
        _connect(ctx, client)
        try:
            listing = client.list_directory(remote_dir)
        except CpNotFoundError:
            out.error(f"No such directory: {remote_dir}")
            ctx.exit(1)
        except CpSyncError as e:
            out.error(f"Listing failed: {e}")
            ctx.exit(1)
        rows = [
            [
                entry.name + ("/" if entry.is_directory else ""),
                "" if entry.is_directory else format_size(entry.size),
                format_timestamp_ms(entry.modified_ms) if entry.modified_ns > 0 else "",
            ]
            for entry in sorted(listing.entries, key=lambda e: (not e.is_directory, e.name))
        ]
        out.table(remote_dir, ["Name", "Size", "Modified"], rows)


_mirror_options = [
    click.option(
        "--local-root",
        "-l",
        default="./CIRCUITPY",
        show_default=True,
        help="Local mirror directory",
    ),
    click.option(
        "--no-wipe",
        is_flag=True,
        help="Keep the existing local mirror instead of deleting it first",
    ),
]

_interval_options = [
    click.option(
        "--poll-interval",
        type=float,
        default=120.0,
        show_default=True,
        help="Seconds between full remote polls",
    ),
    click.option(
        "--writable-interval",
        type=float,
        default=5.0,
        show_default=True,
        help="Seconds between disk checks while the device is write-locked",
    ),
    click.option(
        "--debounce",
        type=float,
        default=500.0,
        show_default=True,
        help="Quiet period in milliseconds before a local change is pushed",
    ),
]


def _apply(options: list[Any], func: Any) -> Any:
    for option in reversed(options):
        func = option(func)
    return func


def mirror_options(func: Any) -> Any:
    return _apply(_mirror_options, func)


def interval_options(func: Any) -> Any:
    return _apply(_interval_options, func)


def _make_engine(
    ctx: Any, client: WebWorkflowClient, settings: SyncSettings
) -> SyncEngine:
    out: OutputFormatter = ctx.obj["out"]
    try:
        return SyncEngine(client, settings, out)
    except CpConfigError as e:
        out.error(f"Invalid settings: {e}")
        ctx.exit(1)


def _bootstrap(ctx: Any, engine: SyncEngine) -> None:
    out: OutputFormatter = ctx.obj["out"]
    if engine.settings.wipe_local_on_start and engine.local_root.exists():
        out.warning(f"Deleting existing local mirror: {engine.local_root}")
    try:
        with out.console.status("Performing initial full pull..."):
            stats = engine.bootstrap()
    except CpSyncError as e:
        out.error(f"Initial full pull failed: {e}")
        ctx.exit(1)
    out.success(
        f"Initial full pull completed ({stats.pulled} files, "
        f"{stats.directories} directories)."
    )


@main.command()
@mirror_options
@click.pass_context
def pull(ctx: Any, local_root: str, no_wipe: bool) -> None:
    """Copy the whole device filesystem into the local mirror and exit."""
    settings = SyncSettings(
        local_root=Path(local_root), wipe_local_on_start=not no_wipe
    )
    with _make_client(ctx) as client:
        _connect(ctx, client)
        engine = _make_engine(ctx, client, settings)
        _bootstrap(ctx, engine)


@main.command()
@mirror_options
@interval_options
@click.pass_context
def watch(
    ctx: Any,
    local_root: str,
    no_wipe: bool,
    poll_interval: float,
    writable_interval: float,
    debounce: float,
) -> None:
    """Pull the device, then keep both sides in sync until Ctrl+C."""
    out: OutputFormatter = ctx.obj["out"]
    settings = SyncSettings(
        local_root=Path(local_root),
        remote_poll_interval=poll_interval,
        writable_poll_interval=writable_interval,
        debounce_interval=debounce / 1000.0,
        wipe_local_on_start=not no_wipe,
    )

    with _make_client(ctx) as client:
        version = _connect(ctx, client)
        out.banner("CircuitPython Sync")
        out.success(
            f"Connected to {version.hostname or client.base_url} "
            f"(Web API v{version.web_api_version})"
        )

        engine = _make_engine(ctx, client, settings)
        _bootstrap(ctx, engine)

        out.info("Watching for local changes and polling remote. Press Ctrl+C to exit.")
        stop_event = threading.Event()
        try:
            engine.run_forever(stop_event)
        except KeyboardInterrupt:
            stop_event.set()
            out.info("Stopped.")


if __name__ == "__main__":
    main()
