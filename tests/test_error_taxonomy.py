"""
Unit tests for error classification.
"""
import requests

from budget_explorer.core.error_taxonomy import (
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    LedgerSourceError,
    classify_error,
)


class TestClassifyError:
    """Tests for classify_error."""

    def test_explorer_error(self):
        error = LedgerSourceError("download failed", context={"url": "https://example.org"})
        classified = classify_error(error, pipeline_phase="element", context={"year": 2017})

        assert classified.category == ErrorCategory.LEDGER_SOURCE_UNAVAILABLE
        assert classified.recoverable
        assert classified.pipeline_phase == "element"
        assert classified.context == {"url": "https://example.org", "year": 2017}
        assert classified.user_message == "Ledger data source is temporarily unavailable."
        assert classified.stack_trace

    def test_configuration_error_is_critical(self):
        classified = classify_error(ConfigurationError("bad rules"))
        assert classified.severity == ErrorSeverity.CRITICAL

    def test_file_not_found(self):
        classified = classify_error(FileNotFoundError("CA_2017.csv"))
        assert classified.category == ErrorCategory.LEDGER_SOURCE_UNAVAILABLE

    def test_timeout(self):
        classified = classify_error(requests.Timeout("Read timed out"))
        assert classified.recoverable

    def test_unknown(self):
        classified = classify_error(KeyError("x"))
        assert classified.category == ErrorCategory.UNKNOWN_ERROR
        assert classified.to_dict()["category"] == "UNKNOWN_ERROR"
