"""
Chunked multipart upload.

A source is split into fixed-size parts which are uploaded one after the
other. Part numbers start at 1 and the ETag of every part is kept so the
upload can be completed with the full, ordered manifest.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Optional

from r2manager.config import DEFAULT_CHUNK_SIZE
from r2manager.errors import (
    CompletionError,
    EmptySourceError,
    InitiationError,
    PartUploadError,
    StoreError,
)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

ProgressSink = Callable[[int, int, float], None]


class PartRange(NamedTuple):
    part_number: int
    offset: int
    length: int


@dataclass(frozen=True)
class PartRecord:
    part_number: int
    etag: str

    def to_request(self) -> dict:
        return {"PartNumber": self.part_number, "ETag": self.etag}


@dataclass
class UploadSession:
    """State of one multipart upload, from initiation to completion or abort."""

    bucket: str
    key: str
    upload_id: str
    total_size: int
    chunk_size: int
    parts: List[PartRecord] = field(default_factory=list)

    @property
    def total_parts(self) -> int:
        return count_parts(self.total_size, self.chunk_size)

    def manifest(self) -> List[dict]:
        return [part.to_request() for part in self.parts]


class FileSource:
    """
        Random-access reads over a local file. Each read opens, seeks and reads
        a single range so only one part is held in memory at a time.
    """

    def __init__(self, path: str):
        self.path = path
        self.total_size = os.path.getsize(path)

    def read_range(self, offset: int, length: int) -> bytes:
        with open(self.path, "rb") as opened_file:
            opened_file.seek(offset)
            return opened_file.read(length)


class BytesSource:
    """In-memory source, mostly useful for small payloads and tests."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.total_size = len(self.data)

    def read_range(self, offset: int, length: int) -> bytes:
        return self.data[offset:offset + length]


def count_parts(total_size: int, chunk_size: int) -> int:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return -(-total_size // chunk_size)


def part_ranges(total_size: int, chunk_size: int) -> List[PartRange]:
    """
        Split [0, total_size) into contiguous part ranges of chunk_size bytes

        Args:
            total_size (int): size of the source in bytes
            chunk_size (int): size of every part but the last one

        Returns:
            list: PartRange entries numbered from 1; the last one holds the remainder
    """
    ranges = []
    for index in range(count_parts(total_size, chunk_size)):
        offset = index * chunk_size
        length = min(chunk_size, total_size - offset)
        ranges.append(PartRange(index + 1, offset, length))
    return ranges


class MultipartUploader:
    """
        Drive a source through the initiate, upload parts, complete sequence.

        Args:
            r2 (R2): store wrapper used for every request
            chunk_size (int, optional): part size. Defaults to 50 MiB.
            abort_on_failure (bool, optional): abort the session when a part or the
                completion fails. Defaults to False, leaving parts at the store.
    """

    def __init__(self, r2, chunk_size: int = DEFAULT_CHUNK_SIZE, abort_on_failure: bool = False):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.r2 = r2
        self.chunk_size = chunk_size
        self.abort_on_failure = abort_on_failure

    def upload(
        self,
        bucket: str,
        key: str,
        source,
        chunk_size: Optional[int] = None,
        progress: Optional[ProgressSink] = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> str:
        """
            Upload a source as a multipart object

            Args:
                bucket (str): destination bucket
                key (str): destination key
                source: object exposing total_size and read_range(offset, length)
                chunk_size (int, optional): overrides the uploader's part size
                progress (callable, optional): called as progress(part_number, total_parts, percent)
                    after every uploaded part
                content_type (str, optional): MIME type of the final object

            Returns:
                str: ETag of the assembled object (the version id when no ETag is returned)

            Raises:
                EmptySourceError: the source has no bytes
                InitiationError: the store refused to start the upload
                PartUploadError: a part failed; later parts were not attempted
                CompletionError: the store refused the part manifest
        """
        if not bucket or not key:
            raise ValueError("bucket and key must be non-empty")

        if chunk_size is None:
            chunk_size = self.chunk_size
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        total_size = source.total_size
        if total_size == 0:
            raise EmptySourceError(f"Refusing multipart upload of an empty source to {bucket}/{key}")

        session = self._initiate(bucket, key, total_size, chunk_size, content_type)
        total_parts = session.total_parts
        logging.info(
            "Uploading %s/%s in %s parts of %s bytes (upload id %s)",
            bucket, key, total_parts, chunk_size, session.upload_id,
        )

        for part in part_ranges(total_size, chunk_size):
            body = source.read_range(part.offset, part.length)
            if len(body) != part.length:
                cause = OSError(f"read {len(body)} of {part.length} bytes at offset {part.offset}")
                raise self._part_failed(session, part.part_number, cause)

            try:
                response = self.r2.upload_part(bucket, key, session.upload_id, part.part_number, body)
            except StoreError as e:
                raise self._part_failed(session, part.part_number, e) from e

            etag = response.get("ETag")
            if not etag:
                raise self._part_failed(session, part.part_number, StoreError("no ETag returned for part"))

            session.parts.append(PartRecord(part.part_number, etag))
            logging.info("✅ Uploaded part %s/%s - ETag: %s", part.part_number, total_parts, etag)

            if progress is not None:
                progress(part.part_number, total_parts, part.part_number * 100 / total_parts)

        return self._complete(session)

    def _part_failed(self, session: UploadSession, part_number: int, cause: Exception) -> PartUploadError:
        logging.error("❌ Failed to upload part %s of %s: %s", part_number, session.total_parts, str(cause))
        self._abort_if_configured(session)
        return PartUploadError(session.bucket, session.key, part_number, cause=cause, upload_id=session.upload_id)

    def _initiate(self, bucket: str, key: str, total_size: int, chunk_size: int, content_type: str) -> UploadSession:
        try:
            response = self.r2.create_multipart_upload(bucket, key, content_type=content_type)
        except StoreError as e:
            logging.error("❌ Could not create a multipart upload %s", str(e))
            raise InitiationError(bucket, key, cause=e) from e

        upload_id = response.get("UploadId")
        if not upload_id:
            logging.error("❌ Could not create a multipart upload: no upload id returned")
            raise InitiationError(bucket, key)

        return UploadSession(bucket, key, upload_id, total_size, chunk_size)

    def _complete(self, session: UploadSession) -> str:
        try:
            response = self.r2.complete_multipart_upload(
                session.bucket, session.key, session.upload_id, session.manifest()
            )
        except StoreError as e:
            logging.error("❌ Failed to complete multipart upload: %s", str(e))
            self._abort_if_configured(session)
            raise CompletionError(session.bucket, session.key, cause=e, upload_id=session.upload_id) from e

        logging.info("✅ Completed multipart upload of %s/%s", session.bucket, session.key)
        return response.get("ETag") or response.get("VersionId")

    def _abort_if_configured(self, session: UploadSession) -> None:
        if not self.abort_on_failure:
            logging.info(
                "Multipart upload %s left open with %s uploaded parts",
                session.upload_id, len(session.parts),
            )
            return

        try:
            self.r2.abort_multipart_upload(session.bucket, session.key, session.upload_id)
            logging.info("Aborted multipart upload %s", session.upload_id)
        except StoreError as e:
            # The caller still receives the error that triggered the abort.
            logging.warning("Could not abort multipart upload %s: %s", session.upload_id, str(e))
