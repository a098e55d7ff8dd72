"""Tests for the exception hierarchy.

These tests verify:
1. Exception structure (code, message, details)
2. Inheritance hierarchy
3. String representation
4. Harness errors (ConfigError, IterationError)
"""

import pytest

from mongoload.exceptions import (
    ConfigError,
    ConfigurationError,
    DatabaseError,
    IterationError,
    LoadSimError,
    ValidationError,
)


class TestLoadSimError:
    """Tests for base LoadSimError class."""

    def test_basic_construction(self):
        error = LoadSimError("TEST_CODE", "Test message")

        assert error.code == "TEST_CODE"
        assert error.message == "Test message"
        assert error.details == {}

    def test_construction_with_details(self):
        details = {"key1": "value1", "key2": 42}
        error = LoadSimError("TEST_CODE", "Test message", details=details)

        assert error.details == details

    def test_str_without_details(self):
        assert str(LoadSimError("TEST_CODE", "Test message")) == "TEST_CODE: Test message"

    def test_str_with_details(self):
        result = str(LoadSimError("TEST_CODE", "Test message", details={"foo": "bar"}))

        assert "TEST_CODE" in result
        assert "Test message" in result
        assert "foo" in result
        assert "bar" in result

    def test_to_log_fields(self):
        error = LoadSimError("CODE", "went wrong", details={"operation": "aggregate"})

        assert error.to_log_fields() == {
            "error_code": "CODE",
            "error": "went wrong",
            "operation": "aggregate",
        }

    def test_can_be_raised(self):
        with pytest.raises(LoadSimError) as exc_info:
            raise LoadSimError("RAISED", "This was raised")

        assert exc_info.value.code == "RAISED"


class TestConfigError:
    def test_is_configuration_error(self):
        error = ConfigError("virtual_users must be >= 1", virtual_users=0)

        assert isinstance(error, ConfigurationError)
        assert isinstance(error, LoadSimError)
        assert error.code == "CONFIG_ERROR"
        assert error.details == {"virtual_users": 0}

    def test_without_details(self):
        assert ConfigError("missing").details == {}

    def test_not_a_validation_error(self):
        with pytest.raises(ConfigError):
            try:
                raise ConfigError("bad")
            except ValidationError:
                pytest.fail("Should not catch as ValidationError")


class TestIterationError:
    def test_from_exception(self):
        cause = KeyError("created_at")
        error = IterationError.from_exception(cause, vu_id=3, iteration=12)

        assert error.code == "ITERATION_ERROR"
        assert error.vu_id == 3
        assert error.iteration == 12
        assert error.error_type == "KeyError"
        assert error.cause is cause
        assert error.details == {"vu_id": 3, "iteration": 12, "error_type": "KeyError"}

    def test_empty_message_falls_back_to_type_name(self):
        error = IterationError.from_exception(RuntimeError(), vu_id=0, iteration=0)
        assert error.message == "RuntimeError"


class TestExceptionHierarchy:
    def test_all_errors_are_load_sim_errors(self):
        errors = [
            ValidationError("CODE", "message"),
            ConfigurationError("CODE", "message"),
            DatabaseError("CODE", "message"),
            ConfigError("message"),
            IterationError("message", vu_id=0, iteration=0, error_type="x"),
        ]
        for error in errors:
            assert isinstance(error, LoadSimError)
