import datetime
import functools
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from botocore.exceptions import ClientError

from r2manager.errors import NOT_FOUND, StoreError

DELETE_BATCH_SIZE = 1000
SSE_ALGORITHMS = ("AES256", "aws:kms")


def _store_call(method):
    """Translate botocore ClientError into StoreError for a wrapper method."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ClientError as e:
            raise StoreError.from_client_error(e) from e

    return wrapper


def _params(**kwargs) -> dict:
    return {name: value for name, value in kwargs.items() if value is not None}


@dataclass
class CorsRule:
    allowed_methods: List[str]
    allowed_origins: List[str]
    allowed_headers: Optional[List[str]] = None
    expose_headers: Optional[List[str]] = None
    max_age_seconds: Optional[int] = None

    def to_request(self) -> dict:
        return _params(
            AllowedHeaders=self.allowed_headers,
            AllowedMethods=self.allowed_methods,
            AllowedOrigins=self.allowed_origins,
            ExposeHeaders=self.expose_headers,
            MaxAgeSeconds=self.max_age_seconds,
        )


@dataclass
class Transition:
    storage_class: str
    days: Optional[int] = None
    date: Optional[datetime.date] = None

    def to_request(self) -> dict:
        return _params(Days=self.days, Date=self.date, StorageClass=self.storage_class)


@dataclass
class LifecycleRule:
    """
        One lifecycle rule. filter_tag is a (key, value) pair.
    """

    status: str
    id: Optional[str] = None
    filter_prefix: Optional[str] = None
    filter_tag: Optional[tuple] = None
    expiration_days: Optional[int] = None
    expiration_date: Optional[datetime.date] = None
    transitions: List[Transition] = field(default_factory=list)

    def to_request(self) -> dict:
        rule = _params(ID=self.id, Status=self.status)

        if self.filter_prefix is not None or self.filter_tag is not None:
            rule_filter = _params(Prefix=self.filter_prefix)
            if self.filter_tag is not None:
                rule_filter["Tag"] = {"Key": self.filter_tag[0], "Value": self.filter_tag[1]}
            rule["Filter"] = rule_filter

        expiration = _params(Days=self.expiration_days, Date=self.expiration_date)
        if expiration:
            rule["Expiration"] = expiration

        if self.transitions:
            rule["Transitions"] = [t.to_request() for t in self.transitions]

        return rule


class R2:
    """
        Thin wrapper over a boto3 S3 client configured for Cloudflare R2.

        Every method sends one request (or a short sequence of them) and returns
        the raw boto3 response. Store failures surface as StoreError.
    """

    def __init__(self, client):
        self.client = client

    # Upload

    @_store_call
    def put_object(self, bucket: str, key: str, body, content_type: Optional[str] = None, metadata: Optional[Dict[str, str]] = None) -> dict:
        """
            Upload an object in a single request

            Args:
                bucket (str): Bucket name
                key (str): Object key
                body (bytes | file object): Object content
                content_type (str, optional): MIME type stored with the object
                metadata (dict, optional): User metadata

            Returns:
                dict: S3 PutObject response
        """
        logging.debug("PutObject %s/%s", bucket, key)
        return self.client.put_object(
            **_params(Bucket=bucket, Key=key, Body=body, ContentType=content_type, Metadata=metadata)
        )

    @_store_call
    def create_multipart_upload(self, bucket: str, key: str, content_type: Optional[str] = None, metadata: Optional[Dict[str, str]] = None) -> dict:
        """
            Start a multipart upload, the first step of the multipart protocol

            Returns:
                dict: response carrying the UploadId
        """
        logging.debug("CreateMultipartUpload %s/%s", bucket, key)
        return self.client.create_multipart_upload(
            **_params(Bucket=bucket, Key=key, ContentType=content_type, Metadata=metadata)
        )

    @_store_call
    def upload_part(self, bucket: str, key: str, upload_id: str, part_number: int, body) -> dict:
        """
            Upload one part of a multipart upload

            Args:
                bucket (str): Bucket name
                key (str): Object key
                upload_id (str): From the response of create_multipart_upload
                part_number (int): 1-based part number
                body (bytes): Part content

            Returns:
                dict: response carrying the part ETag
        """
        return self.client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )

    @_store_call
    def upload_part_copy(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        source_bucket: str,
        source_key: str,
        copy_source_range: Optional[str] = None,
    ) -> dict:
        """
            Use (a byte range of) an existing object as a part. copy_source_range looks like "bytes=0-1023".
        """
        return self.client.upload_part_copy(
            **_params(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                CopySource=f"{source_bucket}/{source_key}",
                CopySourceRange=copy_source_range,
            )
        )

    @_store_call
    def complete_multipart_upload(self, bucket: str, key: str, upload_id: str, parts: List[dict]) -> dict:
        """
            The last step of the multipart protocol

            Args:
                bucket (str): Bucket name
                key (str): Object key
                upload_id (str): Upload ID of the session
                parts (list): [{"PartNumber": int, "ETag": str}, ...] in ascending order

            Returns:
                dict: S3 CompleteMultipartUpload response
        """
        logging.debug("CompleteMultipartUpload %s/%s with %s parts", bucket, key, len(parts))
        return self.client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )

    @_store_call
    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> dict:
        logging.debug("AbortMultipartUpload %s/%s %s", bucket, key, upload_id)
        return self.client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)

    @_store_call
    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        metadata: Optional[Dict[str, str]] = None,
        content_type: Optional[str] = None,
    ) -> dict:
        return self.client.copy_object(
            **_params(
                Bucket=dest_bucket,
                Key=dest_key,
                CopySource=f"{source_bucket}/{source_key}",
                Metadata=metadata,
                ContentType=content_type,
            )
        )

    # Download and listing

    @_store_call
    def get_object(self, bucket: str, key: str) -> dict:
        return self.client.get_object(Bucket=bucket, Key=key)

    @_store_call
    def head_object(self, bucket: str, key: str) -> dict:
        """Object metadata without the body."""
        return self.client.head_object(Bucket=bucket, Key=key)

    @_store_call
    def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> dict:
        return self.client.list_objects(
            **_params(Bucket=bucket, Prefix=prefix, Delimiter=delimiter, Marker=marker, MaxKeys=max_keys)
        )

    @_store_call
    def list_objects_v2(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        continuation_token: Optional[str] = None,
        max_keys: Optional[int] = None,
        start_after: Optional[str] = None,
    ) -> dict:
        return self.client.list_objects_v2(
            **_params(
                Bucket=bucket,
                Prefix=prefix,
                Delimiter=delimiter,
                ContinuationToken=continuation_token,
                MaxKeys=max_keys,
                StartAfter=start_after,
            )
        )

    def list_all_objects(self, bucket: str, prefix: Optional[str] = None, delimiter: Optional[str] = None) -> List[dict]:
        """
            List every object in a bucket, following continuation tokens

            Returns:
                list: the Contents entries of all pages
        """
        objects = []
        token = None

        while True:
            response = self.list_objects_v2(bucket, prefix=prefix, delimiter=delimiter, continuation_token=token)
            objects.extend(response.get("Contents", []))
            token = response.get("NextContinuationToken")
            if not token:
                break

        return objects

    # File management

    @_store_call
    def delete_object(self, bucket: str, key: str) -> dict:
        logging.debug("DeleteObject %s/%s", bucket, key)
        return self.client.delete_object(Bucket=bucket, Key=key)

    @_store_call
    def delete_objects(self, bucket: str, keys: List[str]) -> dict:
        """
            Delete several objects in one request (at most 1000 keys)

            Returns:
                dict: response listing Deleted and Errors entries
        """
        return self.client.delete_objects(
            Bucket=bucket,
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
        )

    @_store_call
    def list_multipart_uploads(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        key_marker: Optional[str] = None,
        upload_id_marker: Optional[str] = None,
        max_uploads: Optional[int] = None,
    ) -> dict:
        return self.client.list_multipart_uploads(
            **_params(
                Bucket=bucket,
                Prefix=prefix,
                KeyMarker=key_marker,
                UploadIdMarker=upload_id_marker,
                MaxUploads=max_uploads,
            )
        )

    @_store_call
    def list_parts(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number_marker: Optional[int] = None,
        max_parts: Optional[int] = None,
    ) -> dict:
        return self.client.list_parts(
            **_params(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumberMarker=part_number_marker,
                MaxParts=max_parts,
            )
        )

    def cleanup_multipart_uploads(self, bucket: str) -> List[dict]:
        """
            Abort every in-progress multipart upload of a bucket

            Args:
                bucket (str): Bucket name

            Returns:
                list: [{"Key": str, "UploadId": str}, ...] for each aborted upload
        """
        aborted = []

        for upload in self.list_multipart_uploads(bucket).get("Uploads", []):
            key = upload.get("Key")
            upload_id = upload.get("UploadId")
            if not key or not upload_id:
                continue

            self.abort_multipart_upload(bucket, key, upload_id)
            logging.info("✅ Aborted multipart upload %s of %s", upload_id, key)
            aborted.append({"Key": key, "UploadId": upload_id})

        return aborted

    # Buckets

    @_store_call
    def list_buckets(self) -> dict:
        return self.client.list_buckets()

    @_store_call
    def create_bucket(self, bucket: str) -> dict:
        logging.info("Creating bucket %s", bucket)
        return self.client.create_bucket(Bucket=bucket)

    @_store_call
    def delete_bucket(self, bucket: str) -> dict:
        """The bucket must be empty."""
        logging.info("Deleting bucket %s", bucket)
        return self.client.delete_bucket(Bucket=bucket)

    def head_bucket(self, bucket: str) -> bool:
        """
            Check if a bucket exists

            Returns:
                bool: False when the store reports the bucket as missing

            Raises:
                StoreError: for any other failure (e.g. access denied)
        """
        try:
            self._head_bucket(bucket)
            return True
        except StoreError as e:
            if e.kind == NOT_FOUND:
                return False
            raise

    @_store_call
    def _head_bucket(self, bucket: str) -> dict:
        return self.client.head_bucket(Bucket=bucket)

    def is_bucket_empty(self, bucket: str) -> bool:
        response = self.list_objects_v2(bucket, max_keys=1)
        return not response.get("Contents")

    def delete_bucket_and_cleanup(self, bucket: str) -> dict:
        """
            Delete every object of a bucket, then the bucket itself. This is permanent.

            Args:
                bucket (str): Bucket name

            Returns:
                dict: S3 DeleteBucket response
        """
        keys = [obj["Key"] for obj in self.list_all_objects(bucket) if obj.get("Key")]

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            self.delete_objects(bucket, batch)
            logging.info("✅ Deleted %s objects from %s", len(batch), bucket)

        return self.delete_bucket(bucket)

    # Bucket configuration

    @_store_call
    def get_bucket_cors(self, bucket: str) -> dict:
        return self.client.get_bucket_cors(Bucket=bucket)

    @_store_call
    def put_bucket_cors(self, bucket: str, rules: List[CorsRule]) -> dict:
        return self.client.put_bucket_cors(
            Bucket=bucket,
            CORSConfiguration={"CORSRules": [rule.to_request() for rule in rules]},
        )

    @_store_call
    def get_bucket_lifecycle_configuration(self, bucket: str) -> dict:
        return self.client.get_bucket_lifecycle_configuration(Bucket=bucket)

    @_store_call
    def put_bucket_lifecycle_configuration(self, bucket: str, rules: List[LifecycleRule]) -> dict:
        return self.client.put_bucket_lifecycle_configuration(
            Bucket=bucket,
            LifecycleConfiguration={"Rules": [rule.to_request() for rule in rules]},
        )

    @_store_call
    def get_bucket_location(self, bucket: str) -> dict:
        return self.client.get_bucket_location(Bucket=bucket)

    @_store_call
    def get_bucket_encryption(self, bucket: str) -> dict:
        return self.client.get_bucket_encryption(Bucket=bucket)

    @_store_call
    def put_bucket_encryption(self, bucket: str, sse_algorithm: str = "AES256") -> dict:
        """
            Set default server-side encryption for a bucket

            Args:
                bucket (str): Bucket name
                sse_algorithm (str, optional): "AES256" or "aws:kms". Defaults to AES256.

            Returns:
                dict: S3 PutBucketEncryption response
        """
        if sse_algorithm not in SSE_ALGORITHMS:
            raise ValueError(f"Unsupported SSE algorithm: {sse_algorithm}")

        return self.client.put_bucket_encryption(
            Bucket=bucket,
            ServerSideEncryptionConfiguration={
                "Rules": [{"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": sse_algorithm}}]
            },
        )
