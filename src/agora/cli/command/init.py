"""Init command implementation"""

import json
import secrets
from datetime import datetime

import click
from rich.console import Console

from ..util import get_instance_path, is_initialized, render_config

console = Console()


@click.command(name="init", help="Initialize a new Agora instance")
@click.argument(
    "path",
    type=click.Path(),
    required=False,
)
def init(path: str = None):
    """Initialize a new Agora instance

    Args:
        path: Instance directory path (default: ~/.agora)
    """
    instance_path = get_instance_path(path)

    if is_initialized(instance_path):
        console.print(
            f"[red]Error: Already initialized at {instance_path}[/red]"
        )
        raise click.Abort()

    if instance_path.exists() and any(instance_path.iterdir()):
        console.print(
            f"[red]Error: Directory is not empty: {instance_path}[/red]"
        )
        raise click.Abort()

    # 1. Create directory structure
    console.print(f"Initializing Agora instance at {instance_path}")
    console.print("")

    instance_path.mkdir(parents=True, exist_ok=True)
    (instance_path / "data").mkdir(exist_ok=True)
    (instance_path / "logs").mkdir(exist_ok=True)

    # 2. Generate config.toml with fresh signing secrets
    console.print("Generating configuration...")

    config_file = instance_path / "config.toml"
    config_file.write_text(render_config(instance_path, {
        "access": secrets.token_urlsafe(32),
        "refresh": secrets.token_urlsafe(32),
        "reset": secrets.token_urlsafe(32),
    }))

    # 3. Create .agora_instance flag file
    flag_data = {
        "initialized_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "instance_path": str(instance_path),
        "database_path": str(instance_path / "data" / "agora.db"),
    }
    with open(instance_path / ".agora_instance", "w") as f:
        json.dump(flag_data, f, indent=2)

    # 4. Initialize database
    console.print("Initializing database...")

    from sqlmodel import create_engine, SQLModel

    # Import all models to register them
    from ...backend.model import User, VerificationCode, Conversation, Message  # noqa: F401

    engine = create_engine(f"sqlite:///{instance_path / 'data' / 'agora.db'}", echo=False)
    SQLModel.metadata.create_all(engine)
    engine.dispose()

    console.print("")
    console.print("[green]✓ Agora instance initialized successfully![/green]")
    console.print("")
    console.print(f"Location: {instance_path}")
    console.print("")
    console.print("Next steps:")
    console.print("  1. Fill in SMTP and Google OAuth settings:")
    console.print(f"     {config_file}")
    console.print("")
    console.print("  2. Start the backend server:")
    console.print(f"     agora start {path}" if path else "     agora start")
