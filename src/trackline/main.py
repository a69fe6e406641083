"""
trackline - CLI Entry Point.

Usage:
    trackline encode response.json            Encode a ToonResponse as TOON
    trackline registry workspace.json         Build a registry, show keys
    trackline resolve workspace.json user u0  Resolve a short key
    trackline health                          Show configuration
"""

import json
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="trackline",
    help="trackline - Short keys and TOON output for project-tracker tools.",
    add_completion=False,
)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    from trackline.config import settings

    level = logging.DEBUG if verbose else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _load_json(path: Path) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]❌ Cannot read {path}: {e}[/red]")
        raise typer.Exit(1)


def _load_registry(path: Path):
    from trackline.config import get_settings
    from trackline.core.registry_builder import RegistryBuildData, build_registry, resolve_default_team_id
    from trackline.profiles import apply_user_profiles, load_user_profiles

    settings = get_settings()
    raw = _load_json(path)
    raw["users"] = apply_user_profiles(raw.get("users") or [], load_user_profiles())
    data = RegistryBuildData.model_validate(raw)
    if data.default_team_id is None:
        data.default_team_id = resolve_default_team_id(data.teams, settings.default_team)
    return build_registry(
        data,
        transport=settings.transport,
        ttl_seconds=settings.registry_ttl_seconds,
    )


@app.command()
def encode(
    file: Path = typer.Argument(..., help="JSON file holding a ToonResponse (meta, lookups, data)"),
    strict: bool = typer.Option(False, "--strict", help="Fail if any row is missing a schema field"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Encode a JSON ToonResponse as TOON text."""
    from trackline.toon.encoder import encode_response, safe_encode
    from trackline.toon.types import EncodingOptions, ToonResponse

    setup_logging(verbose)
    raw = _load_json(file)
    response = ToonResponse.from_dict(raw)
    options = EncodingOptions.from_settings()

    if strict:
        result = safe_encode(response, options)
        if not result.success:
            console.print(f"[red]❌ {result.error}[/red]")
            raise typer.Exit(1)
        output = result.output
    else:
        output = encode_response(raw, response, options)

    # Plain print: TOON must not pick up rich markup
    print(output)


@app.command()
def registry(
    file: Path = typer.Argument(..., help="JSON workspace dump (users, states, projects, teams)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Build a registry from a workspace dump and show every key."""
    from trackline.core.kinds import EntityKind
    from trackline.core.references import ReferencedEntities
    from trackline.core.response_context import ResponseContext
    from trackline.toon.encoder import encode_toon
    from trackline.toon.types import EncodingOptions, ToonResponse

    setup_logging(verbose)
    built = _load_registry(file)

    stats = built.stats()
    table = Table(title="Registry")
    table.add_column("Kind")
    table.add_column("Keys", justify="right")
    for kind in EntityKind:
        table.add_row(kind.value, str(stats[f"{kind.value}s"]))
    console.print(table)
    console.print(f"[dim]workspace={stats['workspace_id'] or '-'} transport={stats['transport']}[/dim]\n")

    # Every registered entity counts as referenced
    referenced = ReferencedEntities()
    for kind in EntityKind:
        for uuid in built.list_uuids(kind):
            referenced.add(kind, uuid)
    ctx = ResponseContext(built, referenced)
    print(encode_toon(ToonResponse(lookups=ctx.lookups(labels=False)), EncodingOptions.from_settings()))


@app.command()
def resolve(
    file: Path = typer.Argument(..., help="JSON workspace dump"),
    kind: str = typer.Argument(..., help="user, state or project"),
    token: str = typer.Argument(..., help="Short key (u0, eng:s2, pr1) or UUID"),
) -> None:
    """Resolve a short key to its UUID against a workspace dump."""
    from trackline.core.kinds import EntityKind
    from trackline.toon.errors import ToonResolutionError

    setup_logging()
    try:
        entity_kind = EntityKind(kind.lower())
    except ValueError:
        console.print(f"[red]Invalid kind: {kind}. Use user, state or project.[/red]")
        raise typer.Exit(1)

    built = _load_registry(file)
    try:
        uuid = built.resolve_short_key(entity_kind, token)
    except ToonResolutionError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        if e.hint:
            console.print(f"[dim]{e.hint}[/dim]")
        raise typer.Exit(1)

    metadata = built.get_metadata(entity_kind, uuid)
    console.print(f"{token} → [bold]{uuid}[/bold]")
    if metadata is not None:
        console.print(f"[dim]{metadata.name}[/dim]")


@app.command()
def health() -> None:
    """Check configuration."""
    from trackline.config import settings
    from trackline.profiles import load_user_profiles

    console.print("\n[bold]trackline Health Check[/bold]\n")

    try:
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.trackline_env}")
        console.print(f"   Log level: {settings.log_level}")
        if settings.is_production and settings.log_level == "DEBUG":
            console.print("⚠️  DEBUG logging in production")
        elif settings.is_development:
            console.print("ℹ️  Development mode, settings may come from .env")
        console.print(f"   Transport: {settings.transport}")
        if settings.transport == "http":
            console.print(f"   Registry TTL: {settings.registry_ttl_seconds}s")
        else:
            console.print("   Registry TTL: never expires (stdio)")

        if settings.default_team:
            console.print(f"✅ Default team: {settings.default_team}")
        else:
            console.print("ℹ️  No default team, all states share one namespace")

        profiles = load_user_profiles()
        console.print(f"ℹ️  User profiles: {len(profiles.profiles)} loaded")

        console.print("\n[green]All checks passed![/green]")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from trackline import __version__

    console.print(f"trackline version {__version__}")


if __name__ == "__main__":
    app()
