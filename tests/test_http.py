# tests/test_http.py
"""Unit tests for the Lambda proxy response helpers."""
import importlib
import json
import sys
from unittest.mock import patch

import pytest

from tasknotes.http import debug_block, error_response, json_body, method_of


class TestImports:
    def test_no_store_or_client_dependency(self):
        # a None entry in sys.modules makes that import fail
        with patch.dict(sys.modules, {"tasknotes.store": None, "tasknotes.gateway": None, "supabase": None}):
            sys.modules.pop("tasknotes.http", None)
            module = importlib.import_module("tasknotes.http")

        assert module.debug_block(mode="x")["timestamp"].endswith("Z")


class TestHelpers:
    def test_method_defaults_to_get(self):
        assert method_of({}) == "GET"

    def test_body_must_be_object(self):
        with pytest.raises(ValueError, match="invalid_json"):
            json_body({"body": "[1, 2]"})

    def test_error_response_with_debug(self):
        result = error_response(500, "boom", "GET, OPTIONS", mode="error")
        body = json.loads(result["body"])

        assert result["headers"]["Content-Type"] == "application/json"
        assert body["error"] == "boom"
        assert body["debug"]["mode"] == "error"
        assert "timestamp" in body["debug"]

    def test_debug_block_keeps_given_timestamp(self):
        assert debug_block(timestamp="t")["timestamp"] == "t"
