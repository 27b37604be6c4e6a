"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from janitor.cli.config import Config
from janitor.errors import ConfigError

VALID = {
    "redis_host": "redis.internal",
    "aws": [
        {
            "name": "sandbox",
            "region": "us-east-1",
            "candidates": ["ec2", "ebs"],
            "not_tags": [{"key": "keep", "value": "true"}, {"key_regex": "^team-"}],
            "delete_enabled": True,
        }
    ],
    "kubernetes": [{"name": "dev", "kubeconfig": "/tmp/kubeconfig", "not_regex": ["^istio-"]}],
    "slack": {"token": "xoxb-1", "default_owner": "ops@example.com", "channel": "#janitor"},
}


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(data) -> Path:
        path = tmp_path / "config.yml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestConfigLoad:
    """Test suite for Config.load()."""

    def test_load_valid(self, write_config) -> None:
        """Test loading a valid config file."""
        config = Config.load(str(write_config(VALID)))

        assert config.redis_host == "redis.internal"
        assert config.redis_port == 6379
        assert config.key_prefix == "janitor"
        [account] = config.aws
        assert account.candidates == ["ec2", "ebs"]
        assert account.grace_period == "24h"
        assert account.max_retries == 10
        assert account.delete_enabled is True
        assert account.not_tags[0].key == "keep"
        assert account.not_tags[1].key_regex == "^team-"
        assert config.kubernetes[0].annotation_prefix == "janitor.io/"
        assert config.kubernetes[0].delete_enabled is False
        assert config.slack.channel == "#janitor"

    def test_path_from_environment(self, write_config, monkeypatch) -> None:
        """Test path from environment."""
        path = write_config(VALID)
        monkeypatch.setenv("JANITOR_CONFIG", str(path))

        assert Config.load().aws[0].name == "sandbox"

    def test_log_level_override(self, write_config, monkeypatch) -> None:
        """Test log level override."""
        monkeypatch.setenv("JANITOR_LOG_LEVEL", "debug")

        assert Config.load(str(write_config(VALID))).log_level == "DEBUG"

    def test_missing_file(self, tmp_path) -> None:
        """Test missing config file raises ConfigError."""
        with pytest.raises(ConfigError, match="Could not load config"):
            Config.load(str(tmp_path / "nope.yml"))

    def test_unparseable_file(self, tmp_path) -> None:
        """Test unparseable YAML raises ConfigError."""
        path = tmp_path / "config.yml"
        path.write_text("aws: [unclosed")

        with pytest.raises(ConfigError, match="Could not parse config"):
            Config.load(str(path))

    def test_empty_file_is_valid(self, tmp_path) -> None:
        """Test empty file is valid."""
        path = tmp_path / "config.yml"
        path.write_text("")

        config = Config.load(str(path))

        assert config.aws == []
        assert config.kubernetes == []

    def test_kubeconfig_defaults_to_home(self) -> None:
        """Test kubeconfig defaults to home."""
        config = Config.from_dict({"kubernetes": [{"name": "dev"}]})

        assert config.kubernetes[0].kubeconfig.endswith(".kube/config")


class TestConfigValidate:
    def test_collects_every_error(self) -> None:
        """Test collects every error."""
        config = Config.from_dict(
            {
                "aws": [{"name": "", "region": "", "candidates": ["ec2", "rds"], "grace_period": "soon"}],
                "kubernetes": [{"name": "dev", "not_regex": ["("]}],
            }
        )

        with pytest.raises(ConfigError) as exc:
            config.validate()

        message = str(exc.value)
        assert "name is required" in message
        assert "region is required" in message
        assert "rds" in message
        assert "invalid grace_period" in message
        assert "invalid not_regex" in message

    def test_candidates_required(self) -> None:
        """Test an account must list candidate kinds."""
        config = Config.from_dict({"aws": [{"name": "sandbox", "region": "us-east-1"}]})

        with pytest.raises(ConfigError, match="must select an aws object"):
            config.validate()

    @pytest.mark.parametrize("grace_period", ["-1h", "500ms"])
    def test_grace_period_below_one_second_rejected(self, grace_period) -> None:
        """Test negative and sub-second grace periods fail validation."""
        config = Config.from_dict(
            {"aws": [{"name": "sandbox", "region": "us-east-1", "candidates": ["ec2"], "grace_period": grace_period}]}
        )

        with pytest.raises(ConfigError, match="invalid grace_period"):
            config.validate()

    def test_unlimited_grace_period_accepted(self) -> None:
        """Test grace period "0" is valid and means leases never expire."""
        config = Config.from_dict({"kubernetes": [{"name": "dev", "grace_period": "0"}]})

        assert config.validate() is True

    def test_slack_needs_default_owner(self) -> None:
        """Test slack needs default owner."""
        config = Config.from_dict({"slack": {"token": "xoxb-1"}})

        with pytest.raises(ConfigError, match="default_owner"):
            config.validate()

    def test_bad_tag_regex(self) -> None:
        """Test bad tag regex."""
        with pytest.raises(ConfigError):
            Config.from_dict(
                {"aws": [{"name": "a", "region": "r", "candidates": ["ec2"], "not_tags": [{"key_regex": "["}]}]}
            )

    def test_root_must_be_mapping(self) -> None:
        """Test root must be mapping."""
        with pytest.raises(ConfigError):
            Config.from_dict(["not", "a", "mapping"])

    def test_valid_config(self) -> None:
        """Test a valid config produces no errors."""
        assert Config.from_dict(VALID).validate() is True
