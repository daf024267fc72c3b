"""Start command implementation"""

import os

import click
from rich.console import Console

from ..util import get_instance_path, is_initialized

console = Console()


@click.command(name="start", help="Start Agora backend server")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def start(path: str = None):
    """Start Agora backend server

    Args:
        path: Instance directory path (default: ~/.agora)
    """
    instance_path = get_instance_path(path)

    if not is_initialized(instance_path):
        console.print(
            f"[red]Error: Not initialized at {instance_path}[/red]"
        )
        console.print(
            f"[yellow]Run: agora init {path if path else ''}[/yellow]"
        )
        raise click.Abort()

    # Settings pick up <instance>/config.toml through this variable
    os.environ["AGORA_INSTANCE_PATH"] = str(instance_path)

    from ...backend.config import Settings

    try:
        settings = Settings()
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise click.Abort()

    host = settings.server_host
    port = settings.server_port

    console.print(f"[cyan]Starting Agora from {instance_path}[/cyan]")
    console.print(f"[cyan]Server: http://{host}:{port}[/cyan]")
    console.print(f"[cyan]Docs: http://{host}:{port}/docs[/cyan]")
    console.print("")

    import uvicorn
    from ...backend.app import create_app

    app = create_app(settings, instance_path=instance_path)
    uvicorn.run(app, host=host, port=port)
