"""Tests for YAML configuration loading."""
import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from profagent.core.config import AppConfig, BackoffPolicy, deep_merge
from profagent.core.errors import ConfigError


def _write(tmp_path, text):
    path = tmp_path / "agent.yaml"
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


class TestFromYaml:

    def test_sectioned_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_PROJECT", "proj-9")
        monkeypatch.delenv("PROFAGENT_SERVICE", raising=False)
        monkeypatch.delenv("PROFAGENT_PROJECT_ID", raising=False)
        path = _write(
            tmp_path,
            """\
            agent:
              service: my-service
              project_id: ${TEST_PROJECT}
              zone: us-east1-c
            sampling:
              wall_interval: 20000
            backoff:
              min_backoff: 2
              max_backoff: 60
            """,
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.agent.service == "my-service"
        assert cfg.agent.project_id == "proj-9"
        assert cfg.agent.zone == "us-east1-c"
        assert cfg.sampling.wall_interval == 20000
        assert cfg.sampling.cpu_interval == 10000
        assert cfg.backoff.min_backoff == 2
        assert cfg.backoff.max_backoff == 60

    def test_flat_keys_and_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PROFAGENT_SERVICE", "from-env")
        monkeypatch.delenv("PROFAGENT_PROJECT_ID", raising=False)
        path = _write(
            tmp_path,
            """\
            service: from-file
            project_id: p
            debug_logging: true
            """,
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.agent.service == "from-env"
        assert cfg.agent.project_id == "p"
        assert cfg.agent.debug_logging is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            AppConfig.from_yaml(tmp_path / "nope.yaml")

    def test_access_token_from_env(self, monkeypatch):
        monkeypatch.setenv("PROFAGENT_ACCESS_TOKEN", "tok-1")
        cfg = AppConfig(agent={"service": "s", "project_id": "p"})
        assert cfg.api.access_token == "tok-1"

    def test_unset_variable_falls_back_to_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNSET_TEST_TOKEN", raising=False)
        monkeypatch.delenv("UNSET_TEST_ZONE", raising=False)
        monkeypatch.delenv("PROFAGENT_ACCESS_TOKEN", raising=False)
        monkeypatch.delenv("PROFAGENT_SERVICE", raising=False)
        monkeypatch.delenv("PROFAGENT_PROJECT_ID", raising=False)
        path = _write(
            tmp_path,
            """\
            agent:
              service: s
              project_id: p
              zone: ${UNSET_TEST_ZONE}
            api:
              access_token: ${UNSET_TEST_TOKEN}
            """,
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.agent.zone is None
        assert cfg.api.access_token is None

    def test_unset_required_variable_rejected(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNSET_TEST_PROJECT", raising=False)
        monkeypatch.delenv("PROFAGENT_PROJECT_ID", raising=False)
        path = _write(
            tmp_path,
            """\
            agent:
              service: s
              project_id: ${UNSET_TEST_PROJECT}
            """,
        )
        with pytest.raises(ConfigError, match="project_id"):
            AppConfig.from_yaml(path)


class TestSampleConfig:
    """The shipped configs/agent.yaml must load without leaking ${VAR} literals."""

    SAMPLE = Path(__file__).parent.parent / "configs" / "agent.yaml"

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for var in ("PROFAGENT_SERVICE", "PROFAGENT_PROJECT_ID", "PROFAGENT_ACCESS_TOKEN"):
            monkeypatch.delenv(var, raising=False)

    def test_without_project_env(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        with pytest.raises(ConfigError):
            AppConfig.from_yaml(self.SAMPLE)

    def test_with_project_env(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "proj-42")
        cfg = AppConfig.from_yaml(self.SAMPLE)
        assert cfg.agent.project_id == "proj-42"
        assert cfg.api.access_token is None

    def test_access_token_from_env(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "proj-42")
        monkeypatch.setenv("PROFAGENT_ACCESS_TOKEN", "tok-7")
        cfg = AppConfig.from_yaml(self.SAMPLE)
        assert cfg.api.access_token == "tok-7"


class TestBackoffPolicy:

    def test_defaults_valid(self):
        policy = BackoffPolicy()
        assert policy.multiplier >= 1 + policy.jitter

    def test_jitter_larger_than_growth_rejected(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(multiplier=1.2, jitter=0.5)

    def test_max_below_min_rejected(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(min_backoff=10, max_backoff=1)


def test_deep_merge():
    assert deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}, "d": 4}) == {"a": {"b": 1, "c": 3}, "d": 4}
