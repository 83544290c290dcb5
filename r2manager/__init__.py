"""
r2manager - Cloudflare R2 object storage from the command line and from Python.

Usage:
    from r2manager import R2, R2Config, MultipartUploader, FileSource, create_r2_client

    r2 = R2(create_r2_client(R2Config.from_env()))
    etag = MultipartUploader(r2).upload("my-bucket", "big.iso", FileSource("big.iso"))
"""
from r2manager.config import DEFAULT_CHUNK_SIZE, MULTIPART_THRESHOLD, R2Config, create_r2_client
from r2manager.errors import (
    CompletionError,
    EmptySourceError,
    InitiationError,
    MissingCredentialsError,
    PartUploadError,
    R2Error,
    StoreError,
)
from r2manager.multipart import BytesSource, FileSource, MultipartUploader, PartRecord, part_ranges
from r2manager.r2 import R2, CorsRule, LifecycleRule, Transition
from r2manager.transfer import download_file, upload_file

__version__ = "0.1.0"
__all__ = [
    "R2",
    "R2Config",
    "create_r2_client",
    "MultipartUploader",
    "FileSource",
    "BytesSource",
    "PartRecord",
    "part_ranges",
    "upload_file",
    "download_file",
    "CorsRule",
    "LifecycleRule",
    "Transition",
    "DEFAULT_CHUNK_SIZE",
    "MULTIPART_THRESHOLD",
    "R2Error",
    "StoreError",
    "MissingCredentialsError",
    "InitiationError",
    "PartUploadError",
    "CompletionError",
    "EmptySourceError",
]
