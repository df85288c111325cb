"""
Tests for configuration loading and the command-line front-end.
"""

import asyncio

import pytest

from src.vtranslate.cli import main_async, parse_args
from src.vtranslate.errors import ConfigurationError
from src.vtranslate.settings import DEFAULT_GATEWAY_URL, Settings

ENV_VARS = [
    "VTRANSLATE_GATEWAY_API_KEY",
    "LOVABLE_API_KEY",
    "ELEVENLABS_API_KEY",
    "VTRANSLATE_EXTRACTION_TIMEOUT",
    "VTRANSLATE_OUTPUT_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_env_reads_dotenv_file(tmp_path, clean_env):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "LOVABLE_API_KEY=gw\nELEVENLABS_API_KEY=xi\nVTRANSLATE_EXTRACTION_TIMEOUT=12.5\n"
    )
    settings = Settings.from_env(str(env_file))
    assert settings.gateway_api_key == "gw"
    assert settings.elevenlabs_api_key == "xi"
    assert settings.extraction_timeout == 12.5
    assert settings.gateway_url == DEFAULT_GATEWAY_URL
    settings.require_credentials()


def test_explicit_gateway_key_wins(tmp_path, clean_env):
    clean_env.setenv("VTRANSLATE_GATEWAY_API_KEY", "primary")
    clean_env.setenv("LOVABLE_API_KEY", "fallback")
    settings = Settings.from_env(str(tmp_path / "missing.env"))
    assert settings.gateway_api_key == "primary"


def test_invalid_timeout(tmp_path, clean_env):
    clean_env.setenv("VTRANSLATE_EXTRACTION_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError):
        Settings.from_env(str(tmp_path / "missing.env"))


def test_require_credentials_lists_everything_missing():
    with pytest.raises(ConfigurationError) as exc_info:
        Settings().require_credentials()
    msg = str(exc_info.value)
    assert "VTRANSLATE_GATEWAY_API_KEY" in msg
    assert "ELEVENLABS_API_KEY" in msg


def test_parse_args_defaults():
    args = parse_args(["--input_video", "clip.mp4"])
    assert args.source_language == "auto"
    assert args.target_language == "uk"
    with pytest.raises(SystemExit):
        parse_args(["--input_video", "clip.mp4", "--target-language", "ru"])


def test_cli_rejects_urls(tmp_path, clean_env):
    code = asyncio.run(main_async(["--url", "https://youtu.be/x", "--env-file", str(tmp_path / "none")]))
    assert code == 1


def test_cli_missing_credentials(tmp_path, clean_env):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"not really a video")
    code = asyncio.run(
        main_async(["--input_video", str(video), "--no-progress", "--env-file", str(tmp_path / "none")])
    )
    assert code == 1
