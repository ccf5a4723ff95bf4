"""Tests for the error taxonomy."""
import pytest

from guardian.shared.database import DuplicateError, NotFoundError, RepositoryError
from guardian.shared.errors import (
    DependencyFailure,
    Forbidden,
    GuardianError,
    NotFound,
    Unauthorized,
    ValidationError,
)


@pytest.mark.parametrize("error_class,status", [
    (ValidationError, 400),
    (Unauthorized, 401),
    (Forbidden, 403),
    (NotFound, 404),
    (DependencyFailure, 500),
])
def test_status_codes(error_class, status):
    error = error_class("boom")
    assert isinstance(error, GuardianError)
    assert error.status_code == status
    assert error.message == "boom"


def test_repository_errors_are_dependency_failures():
    for error_class in (RepositoryError, NotFoundError, DuplicateError):
        assert issubclass(error_class, DependencyFailure)
