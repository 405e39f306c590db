"""Test configuration loading"""

from pathlib import Path

import pytest

from spot_pipeline.core.config import load_config
from spot_pipeline.core.exceptions import ConfigError

ENV_VARS = ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "AUDIO_FORMAT", "DOWNLOAD_OUTPUT_DIR")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, temp_dir):
    """Isolate tests from the caller's environment and .env file"""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(temp_dir)


def _write_config(temp_dir, content):
    path = temp_dir / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test config.yaml parsing, defaults and overrides"""

    def test_full_config(self, temp_dir):
        """Test every section is parsed"""
        path = _write_config(temp_dir, """
spotify:
  client_id: "id"
  client_secret: "secret"
  market: "it"
  cache_token: true
output:
  directory: "music"
  format: "m4a"
fetch:
  max_attempts: 5
  attempt_timeout: 2.5
  backoff_base: 1
  fail_fast_on_auth: true
youtube:
  search_filter: "videos"
  ffmpeg: "/usr/bin/ffmpeg"
""")

        config = load_config(path)

        assert config.spotify.client_id == "id"
        assert config.spotify.market == "IT"
        assert config.spotify.cache_token is True
        assert config.output.directory == (temp_dir / "music").resolve()
        assert config.output.format == "m4a"
        assert config.fetch.max_attempts == 5
        assert config.fetch.attempt_timeout == 2.5
        assert config.fetch.backoff_base == 1.0
        assert config.fetch.fail_fast_on_auth is True
        assert config.youtube.search_filter == "videos"
        assert config.youtube.cookie_file is None
        assert config.youtube.ffmpeg == "/usr/bin/ffmpeg"

    def test_defaults(self, temp_dir):
        """Test only credentials are required"""
        path = _write_config(temp_dir, "spotify:\n  client_id: id\n  client_secret: secret\n")

        config = load_config(path)

        assert config.spotify.market == "US"
        assert config.spotify.cache_token is False
        assert config.output.format == "mp3"
        assert config.fetch.max_attempts == 3
        assert config.fetch.attempt_timeout == 10.0
        assert config.fetch.backoff_base == 0.0
        assert config.fetch.fail_fast_on_auth is False
        assert config.youtube.search_filter == "songs"

    def test_environment_overrides(self, temp_dir, monkeypatch):
        """Test environment variables win over the file"""
        path = _write_config(temp_dir, "spotify:\n  client_id: file-id\n  client_secret: file-secret\n")
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env-id")
        monkeypatch.setenv("AUDIO_FORMAT", "flac")
        monkeypatch.setenv("DOWNLOAD_OUTPUT_DIR", str(temp_dir / "out"))

        config = load_config(path)

        assert config.spotify.client_id == "env-id"
        assert config.spotify.client_secret == "file-secret"
        assert config.output.format == "flac"
        assert config.output.directory == (temp_dir / "out").resolve()

    def test_environment_only(self, monkeypatch):
        """Test a missing default config.yaml is fine with credentials in the environment"""
        monkeypatch.setenv("SPOTIFY_CLIENT_ID", "env-id")
        monkeypatch.setenv("SPOTIFY_CLIENT_SECRET", "env-secret")

        config = load_config()

        assert config.spotify.client_id == "env-id"

    def test_explicit_path_must_exist(self, temp_dir):
        """Test a missing explicit config file is an error"""
        with pytest.raises(ConfigError):
            load_config(temp_dir / "missing.yaml")

    def test_missing_credentials(self, temp_dir):
        """Test client_id is required"""
        path = _write_config(temp_dir, "spotify:\n  client_secret: secret\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(path)

        assert exc_info.value.details["field"] == "spotify.client_id"

    @pytest.mark.parametrize("section", [
        "fetch:\n  max_attempts: 0\n",
        "fetch:\n  attempt_timeout: -1\n",
        "fetch:\n  backoff_base: -0.5\n",
        "fetch:\n  fail_fast_on_auth: maybe\n",
        "youtube:\n  search_filter: albums\n",
        "youtube:\n  cookie_file: /does/not/exist.txt\n",
        "output: [1, 2]\n",
    ])
    def test_invalid_values(self, temp_dir, section):
        """Test invalid values raise ConfigError"""
        path = _write_config(
            temp_dir, "spotify:\n  client_id: id\n  client_secret: secret\n" + section
        )

        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_yaml(self, temp_dir):
        """Test YAML syntax errors raise ConfigError"""
        path = _write_config(temp_dir, "spotify: [unclosed\n")

        with pytest.raises(ConfigError):
            load_config(path)

    def test_cookie_file(self, temp_dir):
        """Test an existing cookie file is resolved"""
        cookies = temp_dir / "cookies.txt"
        cookies.write_text("# Netscape HTTP Cookie File\n")
        path = _write_config(
            temp_dir,
            f"spotify:\n  client_id: id\n  client_secret: secret\n"
            f"youtube:\n  cookie_file: {cookies}\n"
        )

        config = load_config(path)

        assert config.youtube.cookie_file == Path(cookies).resolve()
