# tests/test_cli.py
import json

from click.testing import CliRunner

from agora.backend.config import Settings
from agora.cli.main import main


def test_init_creates_instance(tmp_path, monkeypatch):
    instance = tmp_path / "instance"

    result = CliRunner().invoke(main, ["init", str(instance)])

    assert result.exit_code == 0, result.output
    assert (instance / "data" / "agora.db").exists()
    assert (instance / "logs").is_dir()
    marker = json.loads((instance / ".agora_instance").read_text())
    assert marker["instance_path"] == str(instance.resolve())

    monkeypatch.setenv("AGORA_INSTANCE_PATH", str(instance))
    settings = Settings()
    assert settings.server_port == 18888
    assert settings.access_token_secret
    assert settings.access_token_secret != settings.refresh_token_secret
    assert settings.database_url.endswith("data/agora.db")


def test_init_twice_aborts(tmp_path):
    instance = tmp_path / "instance"
    runner = CliRunner()
    runner.invoke(main, ["init", str(instance)])

    result = runner.invoke(main, ["init", str(instance)])

    assert result.exit_code != 0
    assert "Already initialized" in result.output


def test_start_requires_init(tmp_path):
    result = CliRunner().invoke(main, ["start", str(tmp_path / "missing")])

    assert result.exit_code != 0
    assert "Not initialized" in result.output
