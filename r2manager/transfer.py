import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import List, Optional

from r2manager.config import DEFAULT_CHUNK_SIZE, DEFAULT_LIST_LIMIT, DOWNLOAD_DIR, MULTIPART_THRESHOLD
from r2manager.multipart import DEFAULT_CONTENT_TYPE, FileSource, MultipartUploader, ProgressSink

STREAM_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class BucketSummary:
    name: str
    created: str


@dataclass(frozen=True)
class ObjectSummary:
    key: str
    size: int
    url: str = ""


def guess_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


def upload_file(
    r2,
    bucket: str,
    path: str,
    key: Optional[str] = None,
    threshold: int = MULTIPART_THRESHOLD,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress: Optional[ProgressSink] = None,
    abort_on_failure: bool = False,
) -> Optional[str]:
    """
        Upload a local file, switching to multipart above a size threshold

        Args:
            r2 (R2): store wrapper
            bucket (str): Bucket name
            path (str): Local file path
            key (str, optional): Object key. Defaults to the file's base name.
            threshold (int, optional): Files strictly larger than this use multipart. Defaults to 300 MiB.
            chunk_size (int, optional): Part size for multipart uploads. Defaults to 50 MiB.
            progress (callable, optional): progress sink for multipart uploads
            abort_on_failure (bool, optional): abort a failed multipart session

        Returns:
            str: ETag of the uploaded object
    """
    key = key or os.path.basename(path)
    size = os.path.getsize(path)
    content_type = guess_content_type(path)

    if size > threshold:
        logging.info("File is %s bytes, above %s, using multipart upload", size, threshold)
        uploader = MultipartUploader(r2, chunk_size=chunk_size, abort_on_failure=abort_on_failure)
        return uploader.upload(bucket, key, FileSource(path), progress=progress, content_type=content_type)

    logging.info("Uploading %s to %s/%s (%s bytes)", path, bucket, key, size)
    with open(path, "rb") as opened_file:
        response = r2.put_object(bucket, key, opened_file.read(), content_type=content_type)
    logging.info("✅ Uploaded %s", key)
    return response.get("ETag")


def download_file(r2, bucket: str, key: str, dest_dir: str = DOWNLOAD_DIR, filename: Optional[str] = None) -> str:
    """
        Download an object into a local directory

        Args:
            r2 (R2): store wrapper
            bucket (str): Bucket name
            key (str): Object key
            dest_dir (str, optional): Target directory, created if needed. Defaults to "downloads".
            filename (str, optional): Local name. Defaults to the last segment of the key.

        Returns:
            str: path of the written file
    """
    filename = filename or key.rsplit("/", 1)[-1]
    os.makedirs(dest_dir, exist_ok=True)
    target = os.path.join(dest_dir, filename)

    response = r2.get_object(bucket, key)
    body = response["Body"]
    with open(target, "wb") as opened_file:
        for chunk in body.iter_chunks(STREAM_CHUNK_SIZE):
            opened_file.write(chunk)

    logging.info("✅ Downloaded %s/%s to %s", bucket, key, target)
    return target


def list_buckets_summary(r2) -> List[BucketSummary]:
    summaries = []
    for bucket in r2.list_buckets().get("Buckets", []):
        name = bucket.get("Name")
        created = bucket.get("CreationDate")
        if name and created:
            summaries.append(BucketSummary(name, created.date().isoformat()))
    return summaries


def list_files(r2, bucket: str, limit: int = DEFAULT_LIST_LIMIT, domains: Optional[List[str]] = None) -> List[ObjectSummary]:
    """
        List up to limit objects of a bucket, with a public URL when the bucket has a custom domain
    """
    response = r2.list_objects_v2(bucket, max_keys=limit)
    base_url = f"https://{domains[0]}/" if domains else ""

    return [
        ObjectSummary(obj["Key"], obj.get("Size", 0), base_url + obj["Key"] if base_url else "")
        for obj in response.get("Contents", [])
    ]
