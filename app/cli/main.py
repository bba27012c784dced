#!/usr/bin/env python3
"""Main CLI entry point for the render service using Typer.

Commands render in-process with a locally launched browser, or start the
HTTP service.
"""

import asyncio
import logging
from enum import IntEnum
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from ..render import (
    CaptureOptions,
    ClassifiedError,
    DocumentOptions,
    ErrorKind,
    RenderJob,
    RequestCoordinator,
    __version__,
)
from ..render.config import RenderConfigManager
from ..render.capture.coordinator import JobOutcome
from ..render.models import Margin
from ..render.models.job import ImageFormat, ResourceType


class ExitCode(IntEnum):
    """CLI exit codes for scripting."""
    SUCCESS = 0           # Artifact written
    RENDER_FAILURE = 1    # Job failed during navigation, readiness or capture
    VALIDATION_ERROR = 2  # Input rejected before rendering


# Create the main Typer app
app = typer.Typer(
    name="render-service",
    help="Render Service - HTML to PDF and web page screenshots",
    add_completion=False,
    rich_markup_mode="rich"
)


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to render.yaml")
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
):
    """
    Render Service - HTML to PDF and web page screenshots.

    Every job runs in a fresh, isolated browser context.
    """
    manager = RenderConfigManager(config)
    try:
        level = "DEBUG" if verbose else manager.config.log_level
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=ExitCode.VALIDATION_ERROR.value)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = manager


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"Render Service CLI v{__version__}")


def _run_job(manager: RenderConfigManager, job: RenderJob) -> JobOutcome:
    async def _execute() -> JobOutcome:
        coordinator = RequestCoordinator(config=manager.config.get_coordinator_config())
        async with coordinator.session():
            return await coordinator.execute(job)

    return asyncio.run(_execute())


def _finish(outcome: JobOutcome, output: Path) -> None:
    if isinstance(outcome, ClassifiedError):
        typer.echo(f"❌ {outcome.kind.value}: {outcome.message}", err=True)
        code = ExitCode.VALIDATION_ERROR if outcome.kind == ErrorKind.VALIDATION_ERROR else ExitCode.RENDER_FAILURE
        raise typer.Exit(code=code.value)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(outcome.data)

    typer.echo(f"✅ Wrote {outcome.size_bytes} bytes to {output}")
    if outcome.readiness_degraded:
        readiness = outcome.metadata.get('readiness', {})
        typer.echo(f"⚠️  Readiness degraded: {readiness}", err=True)


@app.command()
def pdf(
    ctx: typer.Context,
    input_file: Annotated[
        Path,
        typer.Argument(help="HTML file to render")
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Destination PDF path")
    ],
    page_format: Annotated[
        str,
        typer.Option("--format", help="Paper format (A4, Letter, ...)")
    ] = "A4",
    margin: Annotated[
        str,
        typer.Option("--margin", help="Margin applied to all four sides")
    ] = "20px",
    landscape: Annotated[
        bool,
        typer.Option("--landscape", help="Landscape orientation")
    ] = False,
    preset: Annotated[
        Optional[str],
        typer.Option("--preset", help="Pipeline preset (fast, standard, thorough)")
    ] = None,
):
    """
    Render an HTML file to PDF.
    """
    if not input_file.exists():
        typer.echo(f"❌ Input file not found: {input_file}", err=True)
        raise typer.Exit(code=ExitCode.VALIDATION_ERROR.value)

    try:
        options = DocumentOptions(
            page_format=page_format,
            margin=Margin(top=margin, right=margin, bottom=margin, left=margin),
            landscape=landscape,
            **({'preset': preset} if preset else {}),
        )
    except ValueError as e:
        typer.echo(f"❌ Invalid options: {e}", err=True)
        raise typer.Exit(code=ExitCode.VALIDATION_ERROR.value)

    job = RenderJob.document(input_file.read_text(encoding='utf-8'), options)
    _finish(_run_job(ctx.obj, job), output)


@app.command()
def screenshot(
    ctx: typer.Context,
    url: Annotated[
        str,
        typer.Argument(help="Absolute http(s) address to capture")
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Destination image path")
    ],
    width: Annotated[
        int,
        typer.Option("--width", help="Viewport width in CSS pixels")
    ] = 1920,
    height: Annotated[
        int,
        typer.Option("--height", help="Viewport height in CSS pixels")
    ] = 1080,
    scale: Annotated[
        float,
        typer.Option("--scale", help="Device pixel ratio")
    ] = 1.0,
    png: Annotated[
        bool,
        typer.Option("--png", help="Encode as PNG instead of JPEG")
    ] = False,
    quality: Annotated[
        int,
        typer.Option("--quality", min=0, max=100, help="JPEG quality")
    ] = 80,
    viewport_only: Annotated[
        bool,
        typer.Option("--viewport-only", help="Capture the viewport instead of the full page")
    ] = False,
    wait: Annotated[
        Optional[int],
        typer.Option("--wait", help="Settle delay before capture in milliseconds")
    ] = None,
    block: Annotated[
        Optional[List[str]],
        typer.Option("--block", help="Resource type to block (repeatable)")
    ] = None,
    preset: Annotated[
        Optional[str],
        typer.Option("--preset", help="Pipeline preset (fast, standard, thorough)")
    ] = None,
):
    """
    Capture a web page as an image.
    """
    try:
        blocked = frozenset(ResourceType(value) for value in block) if block else None
        options = CaptureOptions(
            viewport_width=width,
            viewport_height=height,
            device_pixel_ratio=scale,
            output_format=ImageFormat.PNG if png else ImageFormat.JPEG,
            quality=quality,
            full_page=not viewport_only,
            wait_time_ms=wait,
            blocked_resource_types=blocked,
            **({'preset': preset} if preset else {}),
        )
    except ValueError as e:
        typer.echo(f"❌ Invalid options: {e}", err=True)
        raise typer.Exit(code=ExitCode.VALIDATION_ERROR.value)

    job = RenderJob.capture(url, options)
    _finish(_run_job(ctx.obj, job), output)


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[
        Optional[str],
        typer.Option("--host", help="Bind address")
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Bind port")
    ] = None,
):
    """
    Start the HTTP render service.
    """
    import uvicorn

    from ..api.main import create_app

    manager: RenderConfigManager = ctx.obj
    settings = manager.config.get_service_settings()

    uvicorn.run(
        create_app(manager.config),
        host=host or settings.host,
        port=port or settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    app()
