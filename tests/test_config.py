# tests/test_config.py
"""Unit tests for environment-driven settings."""
import logging

import pytest

from tasknotes.config import LENIENT, STRICT, credentials_status, load_settings, log_level
from tasknotes.errors import ConfigurationError

BASE = {"SUPABASE_URL": "https://project.supabase.co", "SUPABASE_ANON_KEY": "anon"}


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(BASE)

        assert settings.supabase_url == "https://project.supabase.co"
        assert settings.schema == "public"
        assert settings.load_policy == LENIENT
        assert settings.save_policy == STRICT
        assert settings.load_limit == 100
        assert settings.bot_token is None
        assert settings.replace_rpc is None

    @pytest.mark.parametrize("env", [{}, {"SUPABASE_URL": "https://x"}, {"SUPABASE_ANON_KEY": "k"}])
    def test_missing_credentials(self, env):
        with pytest.raises(ConfigurationError, match="not configured"):
            load_settings(env)

    def test_supabase_key_fallback(self):
        settings = load_settings({"SUPABASE_URL": "https://x", "SUPABASE_KEY": "service"})
        assert settings.supabase_key == "service"

    def test_policies_case_insensitive(self):
        settings = load_settings({**BASE, "LOAD_POLICY": "STRICT", "SAVE_POLICY": "lenient"})
        assert settings.load_policy == STRICT
        assert settings.save_policy == LENIENT

    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError, match="SAVE_POLICY"):
            load_settings({**BASE, "SAVE_POLICY": "yolo"})

    def test_zero_limit_disables_cap(self):
        assert load_settings({**BASE, "LOAD_LIMIT": "0"}).load_limit is None

    @pytest.mark.parametrize("value", ["ten", "-1"])
    def test_bad_integer(self, value):
        with pytest.raises(ConfigurationError, match="LOAD_LIMIT"):
            load_settings({**BASE, "LOAD_LIMIT": value})

    def test_reads_process_environment(self):
        # supabase_env fixture sets the process environment
        assert load_settings().supabase_key == "anon-test-key"


class TestCredentialsStatus:
    def test_reports_presence_only(self):
        assert credentials_status({"SUPABASE_URL": "https://x"}) == {"hasUrl": True, "hasKey": False}
        assert credentials_status({"SUPABASE_KEY": "k"}) == {"hasUrl": False, "hasKey": True}


class TestLogLevel:
    def test_default_info(self):
        assert log_level({}) == logging.INFO

    def test_named_level(self):
        assert log_level({"LOG_LEVEL": "debug"}) == logging.DEBUG

    def test_unknown_name_falls_back_to_info(self):
        assert log_level({"LOG_LEVEL": "verbose"}) == logging.INFO
