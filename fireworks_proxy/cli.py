"""
Fireworks Proxy CLI

Command-line interface for the Fireworks Proxy server.
"""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from . import __version__
from .classifier import classify_text
from .config import ProxyConfig, load_config, create_default_config, mask_secret


console = Console()


def _load(ctx) -> ProxyConfig:
    config_path = ctx.obj.get("config_path")
    if config_path:
        return load_config(config_path)
    return ProxyConfig.from_env()


@click.group()
@click.version_option(__version__, prog_name="fireworks-proxy")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config file")
@click.pass_context
def cli(ctx, config_path: str):
    """Fireworks Proxy - Credential-hiding gateway for LLM chat completions"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# =============================================================================
# Server Commands
# =============================================================================

@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to")
@click.option("--port", "-p", default=None, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
@click.pass_context
def start(ctx, host: str, port: int, reload: bool):
    """Start the Fireworks Proxy server."""
    import uvicorn
    from .server import create_app

    config = _load(ctx)
    if ctx.obj.get("config_path"):
        console.print(f"[green]✓[/green] Loaded config from {ctx.obj['config_path']}")

    # CLI options override the file
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if reload:
        config.server.reload = reload

    if not config.has_api_key:
        console.print(f"[yellow]![/yellow] {config.upstream.api_key_env} is not set")

    console.print(Panel(
        f"[bold]Fireworks Proxy v{__version__}[/bold]\n"
        f"Starting server on [cyan]http://{config.server.host}:{config.server.port}{config.server.path}[/cyan]",
        title="🚀 Starting"
    ))

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level="info",
    )


@cli.command()
@click.pass_context
def status(ctx):
    """Show server status."""
    import httpx

    config = _load(ctx)
    port = config.server.port

    try:
        response = httpx.get(f"http://localhost:{port}/health")
        data = response.json()

        console.print(Panel(
            f"[bold green]Running[/bold green]\n\n"
            f"Version: {data.get('version', 'unknown')}\n"
            f"Upstream: {data.get('upstream', 'unknown')}\n"
            f"Timeout: {data.get('timeout_seconds', '?')}s\n"
            f"API key: {'✓' if data.get('api_key_configured') else '✗'}",
            title="📊 Fireworks Proxy Status"
        ))
    except Exception as e:
        console.print(f"[red]✗[/red] Server not running: {e}")
        sys.exit(1)


@cli.command()
def init():
    """Initialize a new configuration file."""
    config_path = Path("proxy.yaml")

    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    config_path.write_text(create_default_config())
    console.print(f"[green]✓[/green] Created {config_path}")
    console.print("\nExport your API key, then run:")
    console.print("  [cyan]fireworks-proxy -c proxy.yaml start[/cyan]")


@cli.command()
@click.pass_context
def check(ctx):
    """Show the effective configuration."""
    config = _load(ctx)

    table = Table(title="Effective Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("server", f"{config.server.host}:{config.server.port}{config.server.path}")
    table.add_row("upstream.url", config.upstream.url)
    table.add_row("upstream.timeout_seconds", f"{config.upstream.timeout_seconds:g}")
    table.add_row(config.upstream.api_key_env, mask_secret(config.api_key))
    table.add_row("telemetry.otlp_endpoint", config.telemetry.otlp_endpoint or "-")

    console.print(table)

    if not config.has_api_key:
        console.print(f"[red]✗[/red] {config.upstream.api_key_env} is not set")
        sys.exit(1)


# =============================================================================
# Utility Commands
# =============================================================================

@cli.command()
@click.argument("text")
def classify(text: str):
    """Print the reasoning method detected in TEXT."""
    console.print(classify_text(text).value)


# =============================================================================
# Main
# =============================================================================

def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
