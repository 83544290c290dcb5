import pytest

from r2manager.errors import (
    ACCESS_DENIED,
    NOT_FOUND,
    CompletionError,
    EmptySourceError,
    InitiationError,
    PartUploadError,
    StoreError,
)
from r2manager.multipart import (
    BytesSource,
    FileSource,
    MultipartUploader,
    PartRange,
    UploadSession,
    count_parts,
    part_ranges,
)

MB = 1_000_000


# ── part_ranges ───────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "total_size, chunk_size",
    [(1, 1), (1, 10), (10, 3), (9, 3), (125, 50), (1000, 7), (50, 50)],
)
def test_part_ranges_cover_source_contiguously(total_size, chunk_size):
    ranges = part_ranges(total_size, chunk_size)

    assert len(ranges) == -(-total_size // chunk_size)
    assert [r.part_number for r in ranges] == list(range(1, len(ranges) + 1))

    offset = 0
    for r in ranges:
        assert r.offset == offset
        assert r.length > 0
        offset += r.length
    assert offset == total_size

    expected_last = total_size % chunk_size or chunk_size
    assert ranges[-1].length == expected_last


def test_part_ranges_exactly_one_chunk():
    assert part_ranges(50 * MB, 50 * MB) == [PartRange(1, 0, 50 * MB)]


def test_part_ranges_with_remainder():
    ranges = part_ranges(125 * MB, 50 * MB)

    assert [r.part_number for r in ranges] == [1, 2, 3]
    assert [r.length for r in ranges] == [50 * MB, 50 * MB, 25 * MB]
    assert [r.offset for r in ranges] == [0, 50 * MB, 100 * MB]


def test_count_parts_rejects_non_positive_chunk():
    with pytest.raises(ValueError):
        count_parts(10, 0)


def test_session_counts_parts():
    session = UploadSession("b", "k", "u", total_size=10, chunk_size=4)
    assert session.total_parts == 3


# ── sources ───────────────────────────────────────────────────────────────────


def test_file_source_reads_ranges(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")

    source = FileSource(str(path))

    assert source.total_size == 10
    assert source.read_range(0, 4) == b"0123"
    assert source.read_range(8, 4) == b"89"


def test_bytes_source_reads_ranges():
    source = BytesSource(b"abcdef")
    assert source.total_size == 6
    assert source.read_range(2, 3) == b"cde"


# ── MultipartUploader ─────────────────────────────────────────────────────────


def test_upload_sends_every_part_then_completes(store):
    data = bytes(range(10)) * 2  # 20 bytes -> parts of 8, 8, 4
    uploader = MultipartUploader(store, chunk_size=8)

    etag = uploader.upload("bucket", "big.bin", BytesSource(data))

    assert etag == '"final-etag"'
    store.create_multipart_upload.assert_called_once_with(
        "bucket", "big.bin", content_type="application/octet-stream"
    )

    calls = store.upload_part.call_args_list
    assert [c.args[3] for c in calls] == [1, 2, 3]
    assert [c.args[4] for c in calls] == [data[0:8], data[8:16], data[16:20]]
    assert all(c.args[2] == "upload-1" for c in calls)

    store.complete_multipart_upload.assert_called_once_with(
        "bucket",
        "big.bin",
        "upload-1",
        [
            {"PartNumber": 1, "ETag": '"etag-1"'},
            {"PartNumber": 2, "ETag": '"etag-2"'},
            {"PartNumber": 3, "ETag": '"etag-3"'},
        ],
    )
    store.abort_multipart_upload.assert_not_called()


def test_upload_per_call_chunk_size_overrides_default(store):
    MultipartUploader(store, chunk_size=100).upload("b", "k", BytesSource(b"x" * 10), chunk_size=5)
    assert store.upload_part.call_count == 2


def test_upload_returns_version_id_without_etag(store):
    store.complete_multipart_upload.return_value = {"VersionId": "v1"}
    assert MultipartUploader(store, chunk_size=4).upload("b", "k", BytesSource(b"abc")) == "v1"


def test_progress_reported_once_per_part(store):
    events = []
    MultipartUploader(store, chunk_size=3).upload(
        "b", "k", BytesSource(b"x" * 10), progress=lambda *args: events.append(args)
    )

    assert [(n, total) for n, total, _ in events] == [(1, 4), (2, 4), (3, 4), (4, 4)]
    percents = [p for _, _, p in events]
    assert percents == sorted(percents)
    assert percents[-1] == 100


def test_part_failure_stops_upload_and_skips_completion(store):
    def fail_on_second(bucket, key, upload_id, part_number, body):
        if part_number == 2:
            raise StoreError("boom", kind=ACCESS_DENIED, code="AccessDenied")
        return {"ETag": f"e{part_number}"}

    store.upload_part.side_effect = fail_on_second
    progress = []

    with pytest.raises(PartUploadError) as excinfo:
        MultipartUploader(store, chunk_size=2).upload(
            "b", "k", BytesSource(b"x" * 10), progress=lambda *a: progress.append(a)
        )

    assert excinfo.value.part_number == 2
    assert excinfo.value.kind == ACCESS_DENIED
    assert excinfo.value.upload_id == "upload-1"
    assert isinstance(excinfo.value.cause, StoreError)
    assert store.upload_part.call_count == 2
    assert len(progress) == 1
    store.complete_multipart_upload.assert_not_called()
    store.abort_multipart_upload.assert_not_called()


def test_part_failure_aborts_when_configured(store):
    store.upload_part.side_effect = StoreError("boom")

    with pytest.raises(PartUploadError):
        MultipartUploader(store, chunk_size=2, abort_on_failure=True).upload("b", "k", BytesSource(b"x" * 4))

    store.abort_multipart_upload.assert_called_once_with("b", "k", "upload-1")


def test_abort_failure_keeps_original_error(store):
    store.upload_part.side_effect = StoreError("boom")
    store.abort_multipart_upload.side_effect = StoreError("gone", kind=NOT_FOUND)

    with pytest.raises(PartUploadError) as excinfo:
        MultipartUploader(store, chunk_size=2, abort_on_failure=True).upload("b", "k", BytesSource(b"x" * 4))

    assert excinfo.value.part_number == 1


def test_initiation_rejected(store):
    store.create_multipart_upload.side_effect = StoreError("no bucket", kind=NOT_FOUND, code="NoSuchBucket")

    with pytest.raises(InitiationError) as excinfo:
        MultipartUploader(store, chunk_size=2, abort_on_failure=True).upload("missing", "k", BytesSource(b"abc"))

    assert excinfo.value.kind == NOT_FOUND
    store.upload_part.assert_not_called()
    store.abort_multipart_upload.assert_not_called()


def test_initiation_without_upload_id(store):
    store.create_multipart_upload.return_value = {}

    with pytest.raises(InitiationError):
        MultipartUploader(store).upload("b", "k", BytesSource(b"abc"))

    store.upload_part.assert_not_called()


def test_completion_rejected(store):
    store.complete_multipart_upload.side_effect = StoreError("InvalidPart", code="InvalidPart")

    with pytest.raises(CompletionError) as excinfo:
        MultipartUploader(store, chunk_size=2).upload("b", "k", BytesSource(b"abcd"))

    assert excinfo.value.upload_id == "upload-1"
    store.abort_multipart_upload.assert_not_called()


def test_completion_rejected_aborts_when_configured(store):
    store.complete_multipart_upload.side_effect = StoreError("InvalidPart")

    with pytest.raises(CompletionError):
        MultipartUploader(store, chunk_size=2, abort_on_failure=True).upload("b", "k", BytesSource(b"abcd"))

    store.abort_multipart_upload.assert_called_once_with("b", "k", "upload-1")


def test_empty_source_is_rejected_before_any_request(store):
    with pytest.raises(EmptySourceError):
        MultipartUploader(store).upload("b", "k", BytesSource(b""))

    store.create_multipart_upload.assert_not_called()


@pytest.mark.parametrize("bucket, key", [("", "k"), ("b", "")])
def test_empty_identifiers_rejected(store, bucket, key):
    with pytest.raises(ValueError):
        MultipartUploader(store).upload(bucket, key, BytesSource(b"abc"))


def test_non_positive_chunk_size_rejected(store):
    with pytest.raises(ValueError):
        MultipartUploader(store, chunk_size=0)


def test_explicit_zero_chunk_size_rejected(store):
    with pytest.raises(ValueError):
        MultipartUploader(store, chunk_size=4).upload("b", "k", BytesSource(b"abc"), chunk_size=0)

    store.create_multipart_upload.assert_not_called()


def test_truncated_file_fails_before_sending_short_part(store, tmp_path):
    path = tmp_path / "shrinking.bin"
    path.write_bytes(b"x" * 10)
    source = FileSource(str(path))
    path.write_bytes(b"x" * 3)

    with pytest.raises(PartUploadError) as excinfo:
        MultipartUploader(store, chunk_size=4).upload("b", "k", source)

    assert excinfo.value.part_number == 1
    assert isinstance(excinfo.value.cause, OSError)
    store.upload_part.assert_not_called()
    store.complete_multipart_upload.assert_not_called()


def test_short_read_on_later_part_aborts_when_configured(store, tmp_path):
    path = tmp_path / "shrinking.bin"
    path.write_bytes(b"x" * 10)
    source = FileSource(str(path))
    path.write_bytes(b"x" * 6)

    with pytest.raises(PartUploadError) as excinfo:
        MultipartUploader(store, chunk_size=4, abort_on_failure=True).upload("b", "k", source)

    assert excinfo.value.part_number == 2
    assert [c.args[4] for c in store.upload_part.call_args_list] == [b"xxxx"]
    store.abort_multipart_upload.assert_called_once_with("b", "k", "upload-1")
    store.complete_multipart_upload.assert_not_called()


def test_part_response_without_etag(store):
    store.upload_part.side_effect = None
    store.upload_part.return_value = {}

    with pytest.raises(PartUploadError) as excinfo:
        MultipartUploader(store, chunk_size=2).upload("b", "k", BytesSource(b"abcd"))

    assert excinfo.value.part_number == 1
    assert isinstance(excinfo.value.cause, StoreError)
    store.complete_multipart_upload.assert_not_called()
