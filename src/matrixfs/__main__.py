"""CLI entry point for the matrixfs command."""

from __future__ import annotations

import argparse
import asyncio
import platform
import signal
import sys
from pathlib import Path

from .config import AppConfig, _get_config_path, create_config, load_config
from .errors import AuthenticationError, SyncError

_IS_WINDOWS = platform.system() == "Windows"


def _print_setup_guide(config_path: Path) -> None:
    print(
        f"\nTo get started, create {config_path} (or run `matrixfs --conf`) with:\n\n"
        "matrix:\n"
        '  address: "https://matrix.example.org"\n'
        '  user: "alice"\n'
        '  password: "secret"\n'
        "\nOr set environment variables:\n"
        "  MATRIXFS_ADDRESS=https://matrix.example.org\n"
        "  MATRIXFS_USER=alice\n"
        "  MATRIXFS_PASSWORD=secret\n"
        "\nWithout a user, matrixfs registers a guest session.\n",
        file=sys.stderr,
    )


def _load_config_or_exit(config_path: Path) -> AppConfig:
    try:
        return load_config(config_path)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        _print_setup_guide(config_path)
        sys.exit(1)


async def _run(config: AppConfig, service: str, interactive: bool) -> None:
    from .cli import renderer
    from .services.matrix import MautrixClient
    from .services.session import Session
    from .services.store import DirectoryStore

    store = DirectoryStore(config.app.buffers_root / service)
    client = MautrixClient(
        config.matrix.address,
        device_id=config.matrix.device_id,
        sync_timeout_ms=config.matrix.sync_timeout_ms,
    )
    source = None
    if interactive:
        from .cli.prompt import PromptCommandSource

        source = PromptCommandSource(
            buffer=config.app.status_buffer,
            history_path=config.app.data_dir / "cli_history",
        )

    session = Session(config, client, store, commands=source)
    renderer.render_welcome(config.matrix.address, config.matrix.user, str(store.root))

    loop = asyncio.get_running_loop()
    if not _IS_WINDOWS:
        try:
            loop.add_signal_handler(signal.SIGTERM, session.quit)
        except NotImplementedError:
            pass
    try:
        await session.run()
    finally:
        await client.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(prog="matrixfs", description="matrixfs - Matrix rooms as file buffers")
    parser.add_argument("-s", "--service", default="matrix", help="Name of service (buffer root subdirectory)")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--conf", action="store_true", help="Write a default configuration file and exit")
    parser.add_argument("--no-input", action="store_true", help="Do not read commands from the terminal")
    args = parser.parse_args()

    config_path: Path = args.config or _get_config_path()

    if args.conf:
        try:
            path = create_config(config_path)
        except ValueError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"Wrote default configuration to {path}")
        return

    from .cli import renderer

    renderer.setup_logging(args.debug)
    config = _load_config_or_exit(config_path)

    try:
        asyncio.run(_run(config, args.service, interactive=not args.no_input and sys.stdin.isatty()))
    except (AuthenticationError, SyncError) as e:
        renderer.render_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
