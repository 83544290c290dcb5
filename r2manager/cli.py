import logging

import click

from r2manager.config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_LIST_LIMIT,
    DOWNLOAD_DIR,
    MULTIPART_THRESHOLD,
    R2Config,
    create_r2_client,
)
from r2manager.domains import get_bucket_domains
from r2manager.errors import MissingCredentialsError, R2Error, StoreError
from r2manager.menu import Menu
from r2manager.progress import part_progress
from r2manager.r2 import R2
from r2manager.transfer import download_file, list_buckets_summary, list_files, upload_file


def _fail(ctx: click.Context, message: str) -> None:
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)
    ctx.exit(1)


def _session(ctx: click.Context):
    """Return (r2, config), building them from the environment on first use."""
    obj = ctx.ensure_object(dict)
    if "r2" not in obj:
        try:
            config = R2Config.from_env()
        except MissingCredentialsError as e:
            _fail(ctx, str(e))
        obj["config"] = config
        obj["r2"] = R2(create_r2_client(config))
    return obj["r2"], obj.get("config")


def _domain_lookup(config):
    if config is None:
        return None
    return lambda bucket: get_bucket_domains(config.account_id, config.account_token, bucket)


@click.group(invoke_without_command=True)
@click.option('--verbose', '-v', is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    Manage Cloudflare R2 buckets and objects.

    Credentials are read from R2_ACCOUNT_ID, R2_ACCESS_KEY_ID and
    R2_SECRET_ACCESS_KEY (a .env file is loaded if present). Without a
    sub-command the interactive menu is started.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    ctx.ensure_object(dict)

    if ctx.invoked_subcommand is None:
        ctx.invoke(menu)


@cli.command()
@click.option('--limit', '-l', default=DEFAULT_LIST_LIMIT, show_default=True, help="Number of files to list per bucket")
@click.option('--chunk-size', '-cs', default=DEFAULT_CHUNK_SIZE, type=click.IntRange(min=1), help="Part size for multipart uploads")
@click.option('--abort-on-failure', is_flag=True, help="Abort failed multipart uploads")
@click.pass_context
def menu(ctx: click.Context, limit: int = DEFAULT_LIST_LIMIT, chunk_size: int = DEFAULT_CHUNK_SIZE, abort_on_failure: bool = False) -> None:
    """Browse buckets and files interactively."""
    r2, config = _session(ctx)
    Menu(
        r2,
        domain_lookup=_domain_lookup(config),
        list_limit=limit,
        chunk_size=chunk_size,
        abort_on_failure=abort_on_failure,
    ).run()


@cli.command()
@click.pass_context
def buckets(ctx: click.Context) -> None:
    """List buckets."""
    r2, _ = _session(ctx)
    try:
        summaries = list_buckets_summary(r2)
    except R2Error as e:
        _fail(ctx, f"Could not list buckets: {e}")

    for bucket in summaries:
        click.echo(f"{bucket.name}\t{bucket.created}")


@cli.command()
@click.argument('bucket')
@click.option('--limit', '-l', default=DEFAULT_LIST_LIMIT, show_default=True, help="Maximum number of files")
@click.pass_context
def ls(ctx: click.Context, bucket: str, limit: int) -> None:
    """List files in BUCKET."""
    r2, config = _session(ctx)
    lookup = _domain_lookup(config)
    try:
        files = list_files(r2, bucket, limit=limit, domains=lookup(bucket) if lookup else [])
    except R2Error as e:
        _fail(ctx, f"Could not list files of {bucket}: {e}")

    if not files:
        click.echo("(bucket is empty)")
    for f in files:
        click.echo("\t".join(part for part in (f.key, str(f.size), f.url) if part))


@cli.command()
@click.argument('bucket')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--key', '-k', help="Object key, defaults to the file name")
@click.option('--chunk-size', '-cs', default=DEFAULT_CHUNK_SIZE, type=click.IntRange(min=1), show_default=True, help="Part size for multipart uploads")
@click.option('--threshold', '-t', default=MULTIPART_THRESHOLD, type=click.IntRange(min=0), show_default=True, help="Files larger than this use multipart upload")
@click.option('--abort-on-failure', is_flag=True, help="Abort the multipart upload when a part or the completion fails")
@click.pass_context
def upload(ctx: click.Context, bucket: str, file: str, key: str, chunk_size: int, threshold: int, abort_on_failure: bool) -> None:
    """
    Upload FILE to BUCKET.

    Args:
        bucket (str): Bucket to upload to
        file (str): Local file
        key (str): optional object key
        chunk_size (int): part size
        threshold (int): multipart threshold
        abort_on_failure (bool): abort the session on failure
    """
    r2, _ = _session(ctx)
    try:
        with part_progress(f"Uploading {file}") as sink:
            etag = upload_file(
                r2,
                bucket,
                file,
                key=key,
                threshold=threshold,
                chunk_size=chunk_size,
                progress=sink,
                abort_on_failure=abort_on_failure,
            )
    except R2Error as e:
        _fail(ctx, f"Upload failed: {e}")

    click.echo(f"✅{file} has been uploaded! ETag: {etag}")


@cli.command()
@click.argument('bucket')
@click.argument('key')
@click.option('--output-dir', '-o', default=DOWNLOAD_DIR, show_default=True, type=click.Path(file_okay=False), help="Directory to download to")
@click.option('--name', '-n', help="Local file name, defaults to the last segment of KEY")
@click.pass_context
def download(ctx: click.Context, bucket: str, key: str, output_dir: str, name: str) -> None:
    """Download KEY from BUCKET."""
    r2, _ = _session(ctx)
    try:
        target = download_file(r2, bucket, key, dest_dir=output_dir, filename=name)
    except R2Error as e:
        _fail(ctx, f"Download failed: {e}")

    click.echo(f"✅ Saved {target}")


@cli.command()
@click.argument('bucket')
@click.argument('key')
@click.option('--yes', '-y', is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rm(ctx: click.Context, bucket: str, key: str, yes: bool) -> None:
    """Delete KEY from BUCKET."""
    if not yes and not click.confirm(f"Delete {key} from {bucket}?", default=False):
        return

    r2, _ = _session(ctx)
    try:
        r2.delete_object(bucket, key)
    except R2Error as e:
        _fail(ctx, f"Could not delete {key}: {e}")

    click.echo(f"✅ {key} deleted from {bucket}")


@cli.command()
@click.argument('bucket')
@click.pass_context
def mb(ctx: click.Context, bucket: str) -> None:
    """Create BUCKET."""
    r2, _ = _session(ctx)
    try:
        r2.create_bucket(bucket)
    except R2Error as e:
        _fail(ctx, f"Could not create {bucket}: {e}")

    click.echo(f"✅ Bucket {bucket} created")


@cli.command()
@click.argument('bucket')
@click.option('--force', '-f', is_flag=True, help="Delete every object in the bucket first")
@click.pass_context
def rb(ctx: click.Context, bucket: str, force: bool) -> None:
    """Delete BUCKET."""
    r2, _ = _session(ctx)
    try:
        if force:
            r2.delete_bucket_and_cleanup(bucket)
        else:
            r2.delete_bucket(bucket)
    except R2Error as e:
        _fail(ctx, f"Could not delete {bucket}: {e}")

    click.echo(f"✅ Bucket {bucket} deleted")


@cli.command()
@click.argument('bucket')
@click.pass_context
def cleanup(ctx: click.Context, bucket: str) -> None:
    """Abort every unfinished multipart upload in BUCKET."""
    r2, _ = _session(ctx)
    try:
        aborted = r2.cleanup_multipart_uploads(bucket)
    except R2Error as e:
        _fail(ctx, f"Cleanup failed: {e}")

    for entry in aborted:
        click.echo(f"aborted\t{entry['Key']}\t{entry['UploadId']}")
    click.echo(f"✅ {len(aborted)} multipart uploads aborted")


def _setting(ctx: click.Context, name: str, fetch, render) -> None:
    try:
        value = render(fetch())
    except StoreError as e:
        if e.code and e.code.startswith("NoSuch"):
            value = "not set"
        else:
            _fail(ctx, f"Could not read {name}: {e}")
    click.echo(f"{name}: {value}")


@cli.command()
@click.argument('bucket')
@click.pass_context
def info(ctx: click.Context, bucket: str) -> None:
    """Show location, CORS, lifecycle and encryption settings of BUCKET."""
    r2, _ = _session(ctx)

    _setting(ctx, "location", lambda: r2.get_bucket_location(bucket),
             lambda r: r.get("LocationConstraint") or "auto")
    _setting(ctx, "cors", lambda: r2.get_bucket_cors(bucket),
             lambda r: f"{len(r.get('CORSRules', []))} rules")
    _setting(ctx, "lifecycle", lambda: r2.get_bucket_lifecycle_configuration(bucket),
             lambda r: f"{len(r.get('Rules', []))} rules")
    _setting(ctx, "encryption", lambda: r2.get_bucket_encryption(bucket),
             lambda r: ", ".join(
                 rule["ApplyServerSideEncryptionByDefault"]["SSEAlgorithm"]
                 for rule in r.get("ServerSideEncryptionConfiguration", {}).get("Rules", [])
                 if "ApplyServerSideEncryptionByDefault" in rule
             ) or "none")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
