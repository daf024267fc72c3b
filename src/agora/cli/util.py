"""CLI utility functions"""

from pathlib import Path


def get_instance_path(path: str | None = None) -> Path:
    """Get instance path, default to ~/.agora

    Args:
        path: Custom path (relative or absolute), None for default

    Returns:
        Resolved absolute path
    """
    if path is None:
        return Path.home() / ".agora"
    return Path(path).resolve()


def is_initialized(instance_path: Path) -> bool:
    """Check if instance is initialized (marker file exists)"""
    return (instance_path / ".agora_instance").exists()


def render_config(instance_path: Path, secrets: dict[str, str]) -> str:
    """Default config.toml content for a new instance"""
    db_path = instance_path / "data" / "agora.db"
    return f"""database_url = "sqlite+aiosqlite:///{db_path}"

server_host = "0.0.0.0"
server_port = 18888

access_token_secret = "{secrets['access']}"
refresh_token_secret = "{secrets['refresh']}"
reset_token_secret = "{secrets['reset']}"
access_token_expire_minutes = 15
refresh_token_expire_days = 7
reset_token_expire_minutes = 30

frontend_origin = "http://localhost:3000"
cors_origins = ["http://localhost:3000"]
broadcast_scope = "global"

google_client_id = ""
google_client_secret = ""

smtp_host = "smtp.example.com"
smtp_port = 465
smtp_use_ssl = true
smtp_user = ""
smtp_password = ""
smtp_from = "noreply@example.com"
smtp_from_name = "Agora"
"""
