"""Tests for seq-mcp exception hierarchy."""

import pytest

from seq_mcp.exceptions import (
    AUTH_FAILED_MESSAGE,
    AuthenticationError,
    ConfigurationError,
    SeqApiError,
    SeqMCPError,
    TransportError,
)


class TestSeqMCPError:
    """Tests for base SeqMCPError."""

    def test_basic_error(self):
        """Test creating a basic error."""
        err = SeqMCPError("Something went wrong")
        assert str(err) == "Something went wrong"
        assert err.cause is None

    def test_error_with_cause(self):
        """Test error with underlying cause."""
        cause = ValueError("inner error")
        err = SeqMCPError("Outer error", cause=cause)
        assert "Outer error" in str(err)
        assert "inner error" in str(err)
        assert err.cause is cause

    def test_catch_all(self):
        """Every library error is a SeqMCPError."""
        for error_type in (ConfigurationError, AuthenticationError, TransportError):
            with pytest.raises(SeqMCPError):
                raise error_type("boom")


class TestSeqApiError:
    """Tests for SeqApiError."""

    def test_is_transport_error(self):
        """SeqApiError is a TransportError carrying the status."""
        err = SeqApiError("Seq returned 500", status=500)
        assert isinstance(err, TransportError)
        assert err.status == 500

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_statuses(self, status):
        """401 and 403 are authentication failures."""
        assert SeqApiError("denied", status=status).is_auth_failure is True

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_other_statuses(self, status):
        """Other statuses are not authentication failures."""
        assert SeqApiError("failed", status=status).is_auth_failure is False


def test_auth_message_has_no_detail():
    """The fixed message names the problem without leaking anything."""
    assert AUTH_FAILED_MESSAGE.startswith("Authentication failed")
    assert "invalid or under-permissioned API key" in AUTH_FAILED_MESSAGE
