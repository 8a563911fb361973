"""Unit tests for fieldops.result — folding engine errors into results."""
from __future__ import annotations

import pytest

from fieldops.errors import FieldOpsError, NotFoundError, SyncFailure, ValidationError
from fieldops.result import Err, Ok, capture

pytestmark = pytest.mark.unit


class TestCapture:
    def test_value(self):
        assert capture(lambda: 42) == Ok(42)

    def test_not_found_is_ok_none(self):
        def missing():
            raise NotFoundError("annotation", "ann-1")

        assert capture(missing) == Ok(None)

    def test_validation_is_err(self):
        def bad():
            raise ValidationError("label must not be empty", field="label")

        result = capture(bad)
        assert isinstance(result, Err)
        assert not result.ok
        assert result.message == "label must not be empty"
        assert result.error.field == "label"

    def test_other_errors_propagate(self):
        def boom():
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            capture(boom)


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(ValidationError, ValueError)
        assert issubclass(NotFoundError, KeyError)
        assert issubclass(SyncFailure, FieldOpsError)

    def test_not_found_message(self):
        assert str(NotFoundError("trail", "a1")) == "trail not found: a1"

    def test_sync_failure_message(self):
        assert str(SyncFailure("poll broadcasts", "timeout")) == "poll broadcasts failed: timeout"
        assert str(SyncFailure("poll broadcasts")) == "poll broadcasts failed"
