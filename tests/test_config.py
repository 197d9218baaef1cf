"""
Tests for environment-driven configuration.
"""

from unittest.mock import patch

import pytest

from insight_actions.config import Config, _env_flag


class TestEnvFlag:
    @pytest.mark.parametrize('raw', ['1', 'true', 'TRUE', ' yes ', 'on'])
    def test_truthy(self, monkeypatch, raw):
        monkeypatch.setenv('SOME_FLAG', raw)
        assert _env_flag('SOME_FLAG', 'false') is True

    @pytest.mark.parametrize('raw', ['0', 'false', 'no', ''])
    def test_falsy(self, monkeypatch, raw):
        monkeypatch.setenv('SOME_FLAG', raw)
        assert _env_flag('SOME_FLAG', 'true') is False

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv('SOME_FLAG', raising=False)
        assert _env_flag('SOME_FLAG', 'true') is True


class TestValidate:
    def test_reports_missing_keys(self):
        with patch.object(Config, 'LLM_API_KEY', ''), patch.object(Config, 'DATABASE_URL', ''):
            assert Config.validate() == ['LLM_API_KEY', 'DATABASE_URL']

    def test_complete_configuration(self):
        with patch.object(Config, 'LLM_API_KEY', 'key'), patch.object(
            Config, 'DATABASE_URL', 'postgresql://u:p@localhost/db'
        ):
            assert Config.validate() == []
