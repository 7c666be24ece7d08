"""
Unit Tests: Client Configuration

Tests:
    - Defaults and derived endpoint/addressing style
    - Validation of invalid settings
    - Loading from environment variables
"""

import pytest

from s3stream.core import constants as C
from s3stream.core.config import S3Config


class TestS3ConfigDefaults:
    """Defaults and derived values."""

    def test_aws_defaults(self):
        config = S3Config()
        assert config.region == C.DEFAULT_REGION
        assert config.resolved_endpoint == "https://s3.us-east-1.amazonaws.com"
        assert config.resolved_addressing_style == "virtual"
        assert config.chunk_size_bytes == 64 * 1024
        assert config.expect_continue
        assert not config.has_static_credentials

    def test_custom_endpoint_defaults_to_path_style(self):
        config = S3Config(endpoint_url="http://localhost:9000/")
        assert config.resolved_endpoint == "http://localhost:9000"
        assert config.resolved_addressing_style == "path"

    def test_explicit_addressing_style_wins(self):
        config = S3Config(endpoint_url="http://localhost:9000", addressing_style="virtual")
        assert config.resolved_addressing_style == "virtual"

    def test_static_credentials(self):
        config = S3Config(access_key_id="AK", secret_access_key="SK")
        assert config.has_static_credentials

    def test_immutable(self):
        config = S3Config()
        with pytest.raises(AttributeError):
            config.region = "eu-west-1"


class TestS3ConfigValidation:
    """Invalid settings fail at construction."""

    @pytest.mark.parametrize("kwargs", [
        {"region": ""},
        {"endpoint_url": "localhost:9000"},
        {"endpoint_url": "ftp://host"},
        {"addressing_style": "dns"},
        {"access_key_id": "AK"},
        {"secret_access_key": "SK"},
        {"max_connections": 0},
        {"connect_timeout_seconds": 0},
        {"read_timeout_seconds": -1},
        {"chunk_size_bytes": 0},
    ])
    def test_rejected(self, kwargs):
        with pytest.raises(ValueError):
            S3Config(**kwargs)


class TestS3ConfigFromEnv:
    """Environment loading."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "AWS_REGION", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY",
            "AWS_SESSION_TOKEN", "S3_REGION", "S3_ENDPOINT_URL",
            "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "S3_CHUNK_SIZE",
            "S3_EXPECT_CONTINUE", "S3_ADDRESSING_STYLE", "S3_MAX_CONNECTIONS",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_prefixed_values(self, monkeypatch):
        monkeypatch.setenv("S3_REGION", "eu-west-1")
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://minio:9000")
        monkeypatch.setenv("S3_ADDRESSING_STYLE", "PATH")
        monkeypatch.setenv("S3_MAX_CONNECTIONS", "32")
        monkeypatch.setenv("S3_CHUNK_SIZE", "8192")
        monkeypatch.setenv("S3_EXPECT_CONTINUE", "false")

        config = S3Config.from_env()

        assert config.region == "eu-west-1"
        assert config.endpoint_url == "http://minio:9000"
        assert config.addressing_style == "path"
        assert config.max_connections == 32
        assert config.chunk_size_bytes == 8192
        assert config.expect_continue is False

    def test_aws_fallbacks(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AK")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "SK")
        monkeypatch.setenv("AWS_SESSION_TOKEN", "TOKEN")

        config = S3Config.from_env()

        assert config.region == "ap-southeast-2"
        assert config.access_key_id == "AK"
        assert config.session_token == "TOKEN"
        assert config.has_static_credentials

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("ARCHIVE_REGION", "eu-central-1")
        assert S3Config.from_env(prefix="ARCHIVE").region == "eu-central-1"

    def test_bad_value_rejected(self, monkeypatch):
        monkeypatch.setenv("S3_ENDPOINT_URL", "not a url")
        with pytest.raises(ValueError):
            S3Config.from_env()
