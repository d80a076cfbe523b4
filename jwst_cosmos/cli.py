# jwst_cosmos/cli.py
"""
CLI interface for jwst-cosmos.

Thin presentation layer over RemoteSession: every command opens the tunnels
it needs, calls one client operation, and tears the tunnels down again.
Results go to stdout, progress and errors to stderr.
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from jwst_cosmos.background.lifecycle import RemoteSession
from jwst_cosmos.background.signals import setup_signal_handlers
from jwst_cosmos.comfyui.workflow import load_workflow
from jwst_cosmos.config.loader import load_config
from jwst_cosmos.errors import CancelledByUser, CosmosError
from jwst_cosmos.logging_config import configure_logging
from jwst_cosmos.sizes import aspect_ratio, parse_size

app = typer.Typer(
    name="jwst-cosmos",
    help="Generate wallpapers on a remote GPU host through SSH tunnels.",
    no_args_is_help=True,
)

err_console = Console(stderr=True)

DEFAULT_DESCRIBE_PROMPT = (
    "Describe this image in detail, focusing on colors, structures, and mood."
)


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _open_session(config_path: Path | None) -> RemoteSession:
    """Build a session from the config file (created with defaults if missing)."""
    return RemoteSession(load_config(config_path))


def _config_path(ctx: typer.Context) -> Path | None:
    return (ctx.obj or {}).get("config_path")


def _fail(error: Exception) -> None:
    err_console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


async def _connect(session: RemoteSession, ollama: bool = False, comfyui: bool = False) -> None:
    """Open tunnels and require the services this command needs."""
    status = await session.connect()
    for error in status.errors:
        err_console.print(f"[yellow]{error}[/yellow]")
    if ollama and not status.ollama:
        raise CosmosError("Ollama tunnel unavailable")
    if comfyui and not status.comfyui:
        raise CosmosError("ComfyUI tunnel unavailable")


def _coerce(raw: str) -> str | int | float:
    """Interpret --param values as int, then float, else keep the string."""
    for convert in (int, float):
        try:
            return convert(raw)
        except ValueError:
            continue
    return raw


def _parse_params(items: list[str]) -> dict[str, str | int | float]:
    params: dict[str, str | int | float] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{item}'", param_hint="--param")
        params[key.strip()] = _coerce(value)
    return params


def _make_progress() -> Progress:
    return Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=err_console,
        transient=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
    config: Path = typer.Option(None, "--config", "-c", help="Config file (default: platform config dir)"),
):
    """Remote wallpaper generation over SSH tunnels."""
    configure_logging(verbose)
    ctx.obj = {"config_path": config}


@app.command()
def status(ctx: typer.Context):
    """Open both tunnels and report service reachability."""

    async def _status():
        async with _open_session(_config_path(ctx)) as session:
            tunnels = await session.connect()
            ollama_ok = tunnels.ollama and await session.ollama.is_connected()
            comfyui_ok = tunnels.comfyui and await session.comfyui.is_connected()
            return session.config, tunnels, ollama_ok, comfyui_ok

    try:
        config, tunnels, ollama_ok, comfyui_ok = _run(_status())
    except CosmosError as e:
        _fail(e)

    remote = config.remote
    table = Table(title=f"{remote.user}@{remote.host}")
    table.add_column("Service")
    table.add_column("Remote port", justify="right")
    table.add_column("Tunnel")
    table.add_column("API")
    for name, port, tunnel_up, api_up in (
        ("Ollama", remote.ollama_port, tunnels.ollama, ollama_ok),
        ("ComfyUI", remote.comfyui_port, tunnels.comfyui, comfyui_ok),
    ):
        table.add_row(
            name,
            str(port),
            "[green]up[/green]" if tunnel_up else "[red]down[/red]",
            "[green]ok[/green]" if api_up else "[red]unreachable[/red]",
        )
    Console().print(table)

    for error in tunnels.errors:
        err_console.print(f"[red]{error}[/red]")
    if not (ollama_ok or comfyui_ok):
        raise typer.Exit(1)


@app.command()
def models(
    ctx: typer.Context,
    vision: bool = typer.Option(False, "--vision", help="Only vision-capable Ollama models"),
):
    """List Ollama models and ComfyUI checkpoints/LoRAs."""

    async def _models():
        async with _open_session(_config_path(ctx)) as session:
            await _connect(session)
            ollama_models = []
            if session.refresh_status().ollama:
                if vision:
                    ollama_models = await session.ollama.list_vision_models()
                else:
                    ollama_models = await session.ollama.list_models()
            checkpoints: list[str] = []
            loras: list[str] = []
            if session.refresh_status().comfyui:
                checkpoints = await session.comfyui.list_checkpoints()
                loras = await session.comfyui.list_loras()
            return ollama_models, checkpoints, loras

    try:
        ollama_models, checkpoints, loras = _run(_models())
    except CosmosError as e:
        _fail(e)

    table = Table(title="Ollama models")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Vision")
    for model in ollama_models:
        table.add_row(model.name, model.size_str, "yes" if model.is_vision_model else "")
    console = Console()
    console.print(table)

    if checkpoints:
        typer.echo("Checkpoints:")
        for name in checkpoints:
            typer.echo(f"  {name}")
    if loras:
        typer.echo("LoRAs:")
        for name in loras:
            typer.echo(f"  {name}")


@app.command()
def generate(
    ctx: typer.Context,
    workflow: Path = typer.Argument(..., help="Workflow template (JSON with {{placeholders}})"),
    prompt: str = typer.Option("", "--prompt", "-p", help="Positive prompt"),
    size: str = typer.Option(None, "--size", "-s", help="Preset (hd, qhd, laptop, 4k, ultrawide) or WxH"),
    model: str = typer.Option(None, "--model", "-m", help="Checkpoint name"),
    image: Path = typer.Option(None, "--image", "-i", help="Reference image to upload"),
    param: list[str] = typer.Option([], "--param", "-P", help="Extra placeholder KEY=VALUE"),
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Where to save the image"),
    upscale: bool = typer.Option(None, "--upscale/--no-upscale", help="Override generation.enable_upscaling"),
):
    """Run a workflow on the remote ComfyUI with live progress. Prints the saved path."""
    extra = _parse_params(param)

    async def _generate():
        async with _open_session(_config_path(ctx)) as session:
            setup_signal_handlers(session)
            await _connect(session, comfyui=True)

            config = session.config
            width, height = parse_size(size or config.generation.default_size)
            params = {
                "width": width,
                "height": height,
                "prompt": prompt,
                "model": model or config.generation.default_model,
                "image": "",
                "enable_upscaling": config.generation.enable_upscaling if upscale is None else upscale,
                "upscale_model": config.generation.upscale_model,
            }
            if image is not None:
                params["image"] = await session.comfyui.upload_image(image)
            params.update(extra)

            err_console.print(
                f"Generating {width}x{height} ({aspect_ratio(width, height)}) with {params['model']}"
            )
            handle = await session.comfyui.generate(
                load_workflow(workflow), params, output_dir or config.output_dir()
            )

            with _make_progress() as progress:
                task_id = progress.add_task("Queued", total=100)
                async for event in handle.progress:
                    progress.update(task_id, completed=event.percent, description=event.status)

            return await handle.result()

    try:
        result = _run(_generate())
    except CancelledByUser:
        err_console.print("Cancelled.")
        raise typer.Exit(130)
    except (CosmosError, OSError, ValueError) as e:
        _fail(e)
    except KeyboardInterrupt:
        err_console.print("\nCancelled.")
        raise typer.Exit(130)

    typer.echo(str(result.image_path))


@app.command()
def describe(
    ctx: typer.Context,
    image: Path = typer.Argument(..., help="Image to describe"),
    model: str = typer.Option(None, "--model", "-m", help="Vision model (default from config)"),
    prompt: str = typer.Option(DEFAULT_DESCRIBE_PROMPT, "--prompt", "-p", help="Instruction for the model"),
):
    """Describe an image with a vision model on the remote Ollama."""

    async def _describe():
        async with _open_session(_config_path(ctx)) as session:
            await _connect(session, ollama=True)
            vision_model = model or session.config.ollama.vision_model
            return await session.ollama.analyze_image(vision_model, image, prompt)

    try:
        text = _run(_describe())
    except (CosmosError, OSError, ValueError) as e:
        _fail(e)

    typer.echo(text)


@app.command()
def pull(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Model to pull, e.g. llava:13b"),
):
    """Pull a model onto the remote Ollama with live progress."""

    async def _pull():
        async with _open_session(_config_path(ctx)) as session:
            setup_signal_handlers(session)
            await _connect(session, ollama=True)
            last = None
            with _make_progress() as progress:
                task_id = progress.add_task(f"Pulling {model}", total=None)
                async for update in session.ollama.pull_model(model):
                    last = update
                    progress.update(
                        task_id,
                        description=update.status,
                        total=update.total,
                        completed=update.completed or 0,
                    )
            return last

    try:
        last = _run(_pull())
    except (CosmosError, ValueError) as e:
        _fail(e)
    except KeyboardInterrupt:
        err_console.print("\nCancelled.")
        raise typer.Exit(130)

    if last is not None and last.error:
        err_console.print(f"[red]{last.status}[/red]")
        raise typer.Exit(1)
    typer.echo(f"Pulled {model}")


@app.command()
def delete(
    ctx: typer.Context,
    model: str = typer.Argument(..., help="Model to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a model from the remote Ollama."""
    if not yes:
        typer.confirm(f"Delete {model}?", abort=True)

    async def _delete():
        async with _open_session(_config_path(ctx)) as session:
            await _connect(session, ollama=True)
            await session.ollama.delete_model(model)

    try:
        _run(_delete())
    except (CosmosError, ValueError) as e:
        _fail(e)

    typer.echo(f"Deleted {model}")


@app.command()
def interrupt(ctx: typer.Context):
    """Abort whatever ComfyUI is currently running."""

    async def _interrupt():
        async with _open_session(_config_path(ctx)) as session:
            await _connect(session, comfyui=True)
            await session.comfyui.interrupt()

    try:
        _run(_interrupt())
    except CosmosError as e:
        _fail(e)

    typer.echo("Interrupt sent.")


@app.command("clear-queue")
def clear_queue(ctx: typer.Context):
    """Drop every pending prompt from the ComfyUI queue."""

    async def _clear():
        async with _open_session(_config_path(ctx)) as session:
            await _connect(session, comfyui=True)
            await session.comfyui.clear_queue()

    try:
        _run(_clear())
    except CosmosError as e:
        _fail(e)

    typer.echo("Queue cleared.")


if __name__ == "__main__":
    app()
