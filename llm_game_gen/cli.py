"""Typer CLI for generating, inspecting and pruning cached games."""
import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from .cache import ArtifactCache
from .config import Settings, load_settings
from .errors import GameGenError, MissingData, NotConfigured, NotFound
from .generator import Generator
from .log import configure_logging
from .schema import GenerationRequest

# loading backend credentials from .env
load_dotenv()

app = typer.Typer(add_completion=False)

EXIT_CODES = {MissingData: 2, NotConfigured: 3, NotFound: 4}


def _fail(err: Exception) -> None:
    typer.echo(f"Error: {err}", err=True)
    raise typer.Exit(EXIT_CODES.get(type(err), 1))


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


def _cache(ctx: typer.Context) -> ArtifactCache:
    obj = ctx.obj
    if "cache" not in obj:
        s = obj["settings"]
        obj["cache"] = ArtifactCache(s.storage_dir, s.index_filename)
    return obj["cache"]


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, help="Settings YAML (default: config/settings.yaml if present)."),
):
    """Generate single-file HTML games with an LLM and keep them on disk."""
    try:
        settings = load_settings(config)
    except (OSError, ValueError) as e:
        _fail(e)
    configure_logging(settings.log_level, settings.log_format)
    ctx.obj = {"settings": settings}


@app.command()
def generate(
    ctx: typer.Context,
    design_file: Path = typer.Argument(..., help="Game design JSON document."),
    game_id: str = typer.Option(..., "--id", help="Cache id (pipeline id) for this game."),
    force: bool = typer.Option(False, help="Regenerate even if the game is cached."),
    out: Optional[Path] = typer.Option(None, help="Also write the HTML to this file."),
):
    """Generate a game (or return the cached one) and print a summary."""
    try:
        design = json.loads(design_file.read_text(encoding="utf-8"))
        request = GenerationRequest(id=game_id, design=design, force_regenerate=force)
    except (OSError, ValueError, ValidationError) as e:
        typer.echo(f"Error: invalid request: {e}", err=True)
        raise typer.Exit(2)

    gen = Generator.from_settings(_settings(ctx), cache=_cache(ctx))
    try:
        result = asyncio.run(gen.generate(request))
    except GameGenError as e:
        _fail(e)
    if out:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(result.html, encoding="utf-8")
    typer.echo(json.dumps({
        "id": result.id,
        "cached": result.cached,
        "quality": result.quality,
        "model_used": result.produced_by,
        "play_url": result.play_url,
        "latency_s": round(result.latency_s, 2),
        "stats": result.stats.model_dump(mode="json", exclude_none=True),
    }, indent=2))


@app.command()
def show(
    ctx: typer.Context,
    game_id: str,
    out: Optional[Path] = typer.Option(None, help="Write the HTML here instead of stdout."),
):
    """Print (or save) a cached game."""
    try:
        html = _cache(ctx).load(game_id)
    except GameGenError as e:
        _fail(e)
    if out:
        out.write_text(html, encoding="utf-8")
        typer.echo(f"Wrote {out}")
    else:
        typer.echo(html)


@app.command()
def save(
    ctx: typer.Context,
    game_id: str,
    html_file: Path,
    label: Optional[str] = typer.Option(None, help="Human readable game name."),
):
    """Store an externally produced HTML game under GAME_ID."""
    try:
        html = html_file.read_text(encoding="utf-8")
    except OSError as e:
        _fail(e)
    try:
        entry = _cache(ctx).save_external(game_id, html, label=label)
    except GameGenError as e:
        _fail(e)
    typer.echo(f"Saved {game_id} ({entry.size_bytes} bytes) -> /play/{game_id}")


@app.command("list")
def list_games(ctx: typer.Context):
    """List cached games as JSON."""
    entries = _cache(ctx).list_entries()
    typer.echo(json.dumps({
        "total": len(entries),
        "games": [e.model_dump(mode="json") for e in entries],
    }, indent=2))


@app.command()
def delete(ctx: typer.Context, game_id: str):
    """Delete one cached game."""
    try:
        _cache(ctx).delete_one(game_id)
    except GameGenError as e:
        _fail(e)
    typer.echo(f"Deleted {game_id}")


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Delete every cached game."""
    if not yes:
        typer.confirm("Delete all cached games?", abort=True)
    deleted = _cache(ctx).delete_all()
    typer.echo(f"Deleted {deleted} cached game{'' if deleted == 1 else 's'}")


@app.command()
def stats(ctx: typer.Context):
    """Show storage statistics."""
    s = _cache(ctx).stats()
    typer.echo(json.dumps({
        "directory": s.directory,
        "cached_games": s.cached_games,
        "total_size": s.total_size_bytes,
        "total_size_mb": s.total_size_mb,
    }, indent=2))


@app.command()
def models(ctx: typer.Context):
    """Show the model priority list."""
    s = _settings(ctx)
    info = Generator(_cache(ctx), None, s.models).models_info()
    typer.echo(json.dumps(info.model_dump(), indent=2))


@app.command()
def report(
    ctx: typer.Context,
    out: Path = typer.Option(Path("games.html"), help="Output HTML file."),
    base_url: str = typer.Option("", help="Prefix for /play/<id> links."),
):
    """Render an HTML catalog of cached games."""
    from .report import render_catalog
    render_catalog(_cache(ctx), out, base_url=base_url)
    typer.echo(f"Catalog written: {out}")


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
