from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from r2manager.r2 import R2


def client_error(code: str, status: int = 400, operation: str = "Operation") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


@pytest.fixture
def boto_client():
    return MagicMock()


@pytest.fixture
def r2(boto_client):
    return R2(boto_client)


@pytest.fixture
def store():
    """A mocked R2 wrapper answering the multipart calls successfully."""
    mock = MagicMock()
    mock.create_multipart_upload.return_value = {"UploadId": "upload-1"}
    mock.upload_part.side_effect = lambda bucket, key, upload_id, part_number, body: {"ETag": f'"etag-{part_number}"'}
    mock.complete_multipart_upload.return_value = {"ETag": '"final-etag"', "Key": "key"}
    return mock
