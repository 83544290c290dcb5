import pytest

from r2manager.errors import (
    ACCESS_DENIED,
    NOT_FOUND,
    OTHER,
    CompletionError,
    InitiationError,
    PartUploadError,
    StoreError,
)

from conftest import client_error


@pytest.mark.parametrize(
    "code, status, kind",
    [
        ("NoSuchBucket", 404, NOT_FOUND),
        ("NoSuchKey", 404, NOT_FOUND),
        ("NoSuchUpload", 404, NOT_FOUND),
        ("Whatever", 404, NOT_FOUND),
        ("AccessDenied", 403, ACCESS_DENIED),
        ("Unknown", 403, ACCESS_DENIED),
        ("InternalError", 500, OTHER),
        ("InvalidPart", 400, OTHER),
    ],
)
def test_store_error_classification(code, status, kind):
    error = StoreError.from_client_error(client_error(code, status))
    assert error.kind == kind
    assert error.code == code


def test_phase_errors_expose_cause_kind():
    cause = StoreError("denied", kind=ACCESS_DENIED)

    assert InitiationError("b", "k", cause=cause).kind == ACCESS_DENIED
    assert CompletionError("b", "k", cause=cause).kind == ACCESS_DENIED
    assert InitiationError("b", "k").kind == OTHER


def test_part_upload_error_message_names_part():
    error = PartUploadError("b", "k", 7, cause=StoreError("timeout"))
    assert "part 7" in str(error)
    assert "b/k" in str(error)
    assert error.part_number == 7
