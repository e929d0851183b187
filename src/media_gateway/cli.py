"""
Media Gateway CLI - Command-line interface.

Run the API server, or download and inspect media from the terminal.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from media_gateway.core.config import GatewayConfig, load_platform_configs
from media_gateway.core.exceptions import MediaGatewayError, format_exception
from media_gateway.downloads.fetcher import YtDlpFetcher
from media_gateway.downloads.models import MediaType
from media_gateway.downloads.orchestrator import DownloadOrchestrator
from media_gateway.downloads.platforms import FormatPolicy
from media_gateway.downloads.registry import ArtifactRegistry
from media_gateway.oauth.coordinator import OAuthCoordinator

app = typer.Typer(
    name="media-gateway",
    help="Media Gateway - media downloads and platform authorization",
    no_args_is_help=True,
)
console = Console()


def _build_orchestrator(config: GatewayConfig, output: Path) -> DownloadOrchestrator:
    fetcher = YtDlpFetcher(
        config.fetcher_binary,
        timeout_seconds=config.fetch_timeout_seconds,
        min_file_size=config.min_file_size,
    )
    return DownloadOrchestrator(
        fetcher,
        ArtifactRegistry(ttl_seconds=config.artifact_ttl_seconds),
        output,
        policy=FormatPolicy(max_height=config.max_resolution),
        public_prefix=config.public_prefix,
    )


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: MG_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (default: MG_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the HTTP API server."""
    import uvicorn

    config = GatewayConfig.from_env()
    host = host or config.host
    port = port or config.port

    console.print(f"[bold blue]Media Gateway[/bold blue] listening on http://{host}:{port}")
    uvicorn.run(
        "media_gateway.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
    )


@app.command()
def download(
    url: str = typer.Argument(..., help="Media page URL"),
    media_type: MediaType = typer.Option(MediaType.VIDEO, "--type", "-t", help="video or audio"),
    output: Path = typer.Option(Path("."), "--output", "-o", help="Directory to save into"),
):
    """Download media to a local directory."""
    config = GatewayConfig.from_env()
    orchestrator = _build_orchestrator(config, output)

    try:
        with console.status(f"Downloading {url}..."):
            result = asyncio.run(orchestrator.download(url, media_type))
    except MediaGatewayError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)

    table = Table(title="Download complete", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("File", str(output / result.filename))
    table.add_row("Title", result.title)
    table.add_row("Channel", result.channel or "-")
    table.add_row("Length", result.length)
    if result.hashtags:
        table.add_row("Tags", ", ".join(result.hashtags))
    if result.age_restriction:
        table.add_row("Age restricted", "yes")

    console.print(table)


@app.command()
def info(
    url: str = typer.Argument(..., help="Media page URL"),
    formats: bool = typer.Option(False, "--formats", "-f", help="List available formats"),
):
    """Show media information without downloading."""
    config = GatewayConfig.from_env()
    orchestrator = _build_orchestrator(config, Path("."))

    try:
        media_info = asyncio.run(orchestrator.probe(url))
    except MediaGatewayError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]{media_info.title}[/bold]")
    console.print(f"Author: {media_info.author or '-'}")
    console.print(f"Duration: {media_info.duration}")

    if formats and media_info.formats:
        table = Table(title=f"Formats ({len(media_info.formats)})")
        table.add_column("Quality", style="cyan")
        table.add_column("Container")
        table.add_column("Audio")
        table.add_column("Video")
        table.add_column("Size", justify="right")
        for fmt in media_info.formats:
            table.add_row(
                fmt.quality or "-",
                fmt.container or "-",
                "yes" if fmt.has_audio else "no",
                "yes" if fmt.has_video else "no",
                f"{fmt.content_length:,}" if fmt.content_length else "-",
            )
        console.print(table)


@app.command("auth-url")
def auth_url(
    platform: str = typer.Argument(..., help="instagram, youtube, tiktok or twitter"),
):
    """Print the authorize URL for a platform."""

    async def build() -> str:
        coordinator = OAuthCoordinator(load_platform_configs())
        try:
            return coordinator.build_authorize_url(platform)
        finally:
            await coordinator.aclose()

    try:
        url = asyncio.run(build())
    except MediaGatewayError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)

    console.print(url, soft_wrap=True)


@app.command()
def version():
    """Show Media Gateway version."""
    from media_gateway import __version__

    console.print(f"Media Gateway v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
