"""CLI interface for filegate"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click

from filegate.application.progress import UploadProgress
from filegate.application.upload_service import UploadService, format_file_size
from filegate.domain.errors import FileGateError
from filegate.domain.models.upload import UploadFile
from filegate.infrastructure.auth import SessionEvents, StaticAuthService
from filegate.infrastructure.config.config_manager import ConfigManager, ConfigurationError
from filegate.infrastructure.http_client import RequestDispatcher
from filegate.infrastructure.notifier import Notifier

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    logging.getLogger().setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _die(message: str, verbose: bool = False, exc: Optional[Exception] = None) -> None:
    """Exit with a user-friendly error message"""
    if exc is not None:
        logger.error(message, exc_info=verbose)
    else:
        logger.error(message)
    raise click.ClickException(message)


class ClickNotifier(Notifier):
    """Notifier that prints messages to stderr"""

    def error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)


def _load_config(ctx: click.Context) -> ConfigManager:
    try:
        return ConfigManager(config_path=ctx.obj.get("config_path"))
    except ConfigurationError as e:
        _die(str(e), verbose=ctx.obj.get("verbose", False), exc=e)


def _on_session_invalidated(reason: str) -> None:
    click.echo(f"Session is no longer valid ({reason}). Please sign in again.", err=True)


def _run_with_service(ctx: click.Context, action: Callable[[UploadService], Awaitable[Any]]) -> Any:
    """Build the dispatcher and upload service, run ``action`` and close them"""
    verbose = ctx.obj.get("verbose", False)
    config_manager = _load_config(ctx)
    session_config = config_manager.get_session_config()

    events = SessionEvents()
    events.subscribe(_on_session_invalidated)
    auth_service = StaticAuthService(token=session_config.token, session_id=session_config.session_id)

    async def _main() -> Any:
        async with RequestDispatcher(
            config_manager.get_backends_config(),
            auth_service,
            retry_config=config_manager.get_retry_config(),
            session_events=events,
        ) as dispatcher:
            service = UploadService(
                dispatcher,
                ClickNotifier(),
                upload_config=config_manager.get_upload_config(),
            )
            return await action(service)

    try:
        return asyncio.run(_main())
    except FileGateError as e:
        _die(f"{e.message} (status {e.status})" if e.status else e.message, verbose=verbose, exc=e)
    except click.ClickException:
        raise
    except Exception as e:
        _die(f"Fatal error: {e}", verbose=verbose, exc=e)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to .filegate.yml config file",
)
@click.pass_context
def cli(ctx, verbose: bool, config: Path):
    """filegate - resilient file uploads over presigned URLs"""
    ctx.ensure_object(dict)
    setup_logging(verbose)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mime-type", type=str, help="Content type to send instead of the guessed one")
@click.option("--no-progress", is_flag=True, help="Don't show the progress bar")
@click.pass_context
def upload(ctx, file_path: Path, mime_type: Optional[str], no_progress: bool):
    """Upload a file.

    FILE_PATH: Path to the file to upload
    """
    upload_file = UploadFile.from_path(file_path, mime_type=mime_type)
    logger.info(f"Uploading {upload_file.name} ({format_file_size(upload_file.size)})")

    async def _upload(service: UploadService):
        progress = UploadProgress()

        async def _show_progress():
            with click.progressbar(length=100, label=upload_file.name, file=click.get_text_stream("stderr")) as bar:
                shown = 0
                async for percent in progress:
                    bar.update(percent - shown)
                    shown = percent

        if no_progress:
            return await service.upload_file(upload_file, progress)
        result, _ = await asyncio.gather(service.upload_file(upload_file, progress), _show_progress())
        return result

    result = _run_with_service(ctx, _upload)
    if not result.success:
        raise click.ClickException(result.message)
    click.echo(json.dumps(result.data, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("file_id", type=str)
@click.pass_context
def info(ctx, file_id: str):
    """Show the record of an uploaded file."""
    record = _run_with_service(ctx, lambda service: service.get_file_info(file_id))
    click.echo(json.dumps(record, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("file_id", type=str)
@click.pass_context
def delete(ctx, file_id: str):
    """Delete an uploaded file."""
    _run_with_service(ctx, lambda service: service.delete_file(file_id))
    click.echo(f"Deleted {file_id}")


@cli.command()
@click.argument("filename", type=str)
@click.option("--preview", is_flag=True, help="Build the preview address instead of the download one")
@click.option("--with-auth", is_flag=True, help="Append session credentials")
@click.pass_context
def url(ctx, filename: str, preview: bool, with_auth: bool):
    """Print the access address of a file."""

    async def _url(service: UploadService) -> str:
        if preview and with_auth:
            return service.get_preview_url({"filename": filename})
        return service.get_file_url(filename, for_preview=preview, with_auth=with_auth)

    click.echo(_run_with_service(ctx, _url))


@cli.command()
@click.argument("num_bytes", type=click.IntRange(min=0))
def size(num_bytes: int):
    """Format a byte count."""
    click.echo(format_file_size(num_bytes))


def main():
    """Main entry point"""
    cli(obj={})


if __name__ == "__main__":
    main()
