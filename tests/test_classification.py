# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for the per-origin classification entry points."""

import pytest

from error_aggregator import Severity


class TestStorageErrors:
    """Tests for report_storage_error()."""

    def test_context_tags_and_severity(self, aggregator):
        """Test the storage classification."""
        record = aggregator.report_storage_error(RuntimeError("denied"), operation="upload_file")

        assert record.context == "Firebase: upload_file"
        assert dict(record.tags) == {"service": "firebase", "operation": "upload_file"}
        assert record.severity is Severity.HIGH

    def test_missing_operation(self, aggregator):
        """Test the fallback label."""
        record = aggregator.report_storage_error("x")

        assert record.context == "Firebase: Unknown operation"
        assert record.tags["operation"] is None


class TestNetworkErrors:
    """Tests for report_network_error()."""

    def test_server_error_is_high(self, aggregator):
        """Test that 5xx responses are promoted to high."""
        record = aggregator.report_network_error("unavailable", endpoint="/api/sync", status_code=503)

        assert record.severity is Severity.HIGH
        assert dict(record.tags) == {"service": "network", "endpoint": "/api/sync", "statusCode": 503}
        assert record.context == "Network: /api/sync"

    @pytest.mark.parametrize("status_code", [None, 200, 404, 499])
    def test_other_status_is_medium(self, aggregator, status_code):
        """Test that anything below 500 stays medium."""
        record = aggregator.report_network_error("x", endpoint="/a", status_code=status_code)
        assert record.severity is Severity.MEDIUM

    def test_boundary_500(self, aggregator):
        """Test that exactly 500 counts as a server error."""
        assert aggregator.report_network_error("x", status_code=500).severity is Severity.HIGH

    def test_explicit_severity_wins(self, aggregator):
        """Test overriding the derived severity."""
        record = aggregator.report_network_error("x", status_code=503, severity=Severity.CRITICAL)
        assert record.severity is Severity.CRITICAL

    def test_missing_endpoint(self, aggregator):
        """Test the fallback label."""
        assert aggregator.report_network_error("x").context == "Network: Unknown endpoint"


class TestGameErrors:
    """Tests for report_game_error()."""

    def test_context_tags_and_severity(self, aggregator):
        """Test the game classification."""
        record = aggregator.report_game_error("bad answer key", game_type="multiplication", session_id="s-1")

        assert record.context == "Game: multiplication"
        assert dict(record.tags) == {"service": "game", "gameType": "multiplication", "sessionId": "s-1"}
        assert record.severity is Severity.MEDIUM

    def test_missing_game_type(self, aggregator):
        """Test the fallback label."""
        assert aggregator.report_game_error("x").context == "Game: Unknown game"


class TestUserErrors:
    """Tests for report_user_error()."""

    def test_context_tags_and_severity(self, aggregator):
        """Test the user management classification."""
        record = aggregator.report_user_error("expired", operation="delete_account", user_id="u-42")

        assert record.context == "User Management: delete_account"
        assert dict(record.tags) == {
            "service": "user_management",
            "operation": "delete_account",
            "userId": "u-42",
        }
        assert record.severity is Severity.HIGH


class TestMetadataMerge:
    """Tests for merging caller metadata with fixed tags."""

    def test_caller_keys_survive(self, aggregator):
        """Test that extra caller metadata is kept."""
        record = aggregator.report_storage_error("x", operation="sign_out", metadata={"retry": 3})

        assert record.tags["retry"] == 3
        assert record.tags["service"] == "firebase"

    def test_fixed_keys_take_precedence(self, aggregator):
        """Test that fixed tags overwrite same-named caller keys."""
        record = aggregator.report_network_error(
            "x",
            endpoint="/real",
            status_code=502,
            metadata={"service": "spoofed", "endpoint": "/fake", "region": "eu"},
        )

        assert record.tags["service"] == "network"
        assert record.tags["endpoint"] == "/real"
        assert record.tags["region"] == "eu"

    def test_caller_order_first(self, aggregator):
        """Test that caller metadata keys come before fixed keys."""
        record = aggregator.report_game_error("x", game_type="quiz", metadata={"level": 3})
        assert list(record.tags) == ["level", "service", "gameType", "sessionId"]

    def test_trace_and_flags_forwarded(self, aggregator, logger):
        """Test that trace, log and notify reach report()."""
        subscription = aggregator.subscribe()

        record = aggregator.report_user_error("x", trace="given", log=False, notify=False)

        assert record.trace == "given"
        assert not logger.has_log("ERROR [")
        assert subscription.get(timeout=0.05) is None
        subscription.cancel()

    def test_default_trace_skips_wrapper_frames(self, aggregator):
        """Test that the captured stack ends at the caller."""
        record = aggregator.report_game_error("x")

        assert "test_default_trace_skips_wrapper_frames" in record.trace
        assert "error_aggregator/aggregator.py" not in record.trace.replace("\\", "/")
