from typing import Optional

from botocore.exceptions import ClientError

NOT_FOUND = "NotFound"
ACCESS_DENIED = "AccessDenied"
OTHER = "Other"

_NOT_FOUND_CODES = {"NoSuchBucket", "NoSuchKey", "NoSuchUpload", "NotFound", "404"}
_ACCESS_DENIED_CODES = {"AccessDenied", "Forbidden", "403"}


class R2Error(Exception):
    """Base class for every error raised by r2manager."""


class MissingCredentialsError(R2Error):
    def __init__(self, missing: list):
        self.missing = list(missing)
        super().__init__("Missing R2 credentials: " + ", ".join(self.missing))


class StoreError(R2Error):
    """
        A request to the object store failed.

        Args:
            message (str): Human readable description
            kind (str): One of NotFound, AccessDenied or Other
            code (str, optional): Error code returned by the store
    """

    def __init__(self, message: str, kind: str = OTHER, code: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.code = code

    @classmethod
    def from_client_error(cls, error: ClientError) -> "StoreError":
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        if code in _NOT_FOUND_CODES or status == 404:
            kind = NOT_FOUND
        elif code in _ACCESS_DENIED_CODES or status == 403:
            kind = ACCESS_DENIED
        else:
            kind = OTHER

        return cls(str(error), kind=kind, code=code or None)


class MultipartUploadError(R2Error):
    """Base class for the three failure phases of a multipart upload."""

    phase = "multipart"

    def __init__(self, bucket: str, key: str, cause: Optional[Exception] = None, upload_id: Optional[str] = None):
        self.bucket = bucket
        self.key = key
        self.cause = cause
        self.upload_id = upload_id
        super().__init__(self._describe())

    @property
    def kind(self) -> str:
        return getattr(self.cause, "kind", OTHER)

    def _describe(self) -> str:
        message = f"{self.phase} failed for {self.bucket}/{self.key}"
        if self.cause is not None:
            message += f": {self.cause}"
        return message


class InitiationError(MultipartUploadError):
    phase = "Initiating multipart upload"


class PartUploadError(MultipartUploadError):
    phase = "Uploading part"

    def __init__(self, bucket: str, key: str, part_number: int, cause: Optional[Exception] = None, upload_id: Optional[str] = None):
        self.part_number = part_number
        super().__init__(bucket, key, cause=cause, upload_id=upload_id)

    def _describe(self) -> str:
        message = f"Uploading part {self.part_number} failed for {self.bucket}/{self.key}"
        if self.cause is not None:
            message += f": {self.cause}"
        return message


class CompletionError(MultipartUploadError):
    phase = "Completing multipart upload"


class EmptySourceError(R2Error, ValueError):
    """Raised when a zero-byte source is handed to the multipart uploader."""
