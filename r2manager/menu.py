"""
Interactive bucket -> file -> action navigation.

Three screens are chained in a loop: choosing a bucket opens its file list,
choosing a file opens the action list. Every action returns to the file
list and "back" from the file list returns to the bucket list.
"""
import logging
from typing import Callable, List, NamedTuple, Optional, Tuple

import click

from r2manager.config import DEFAULT_CHUNK_SIZE, DEFAULT_LIST_LIMIT, DOWNLOAD_DIR, MULTIPART_THRESHOLD
from r2manager.errors import R2Error
from r2manager.progress import part_progress
from r2manager.transfer import download_file, list_buckets_summary, list_files, upload_file

EXIT = "exit"
BACK = "back"
BUCKET = "bucket"
FILE = "file"
UPLOAD = "upload"
DOWNLOAD = "download"
DELETE = "delete"


class Nav(NamedTuple):
    kind: str
    bucket: Optional[str] = None
    key: Optional[str] = None


def choose(title: str, options: List[Tuple[str, str]]) -> str:
    """Print a numbered list of (label, value) options and return the chosen value."""
    click.echo(click.style(title, bold=True))
    for number, (label, _) in enumerate(options, start=1):
        click.echo(f"  {number}. {label}")

    picked = click.prompt("Select", type=click.IntRange(1, len(options)))
    return options[picked - 1][1]


def error(message: str) -> None:
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


class Menu:
    def __init__(
        self,
        r2,
        domain_lookup: Optional[Callable[[str], List[str]]] = None,
        list_limit: int = DEFAULT_LIST_LIMIT,
        download_dir: str = DOWNLOAD_DIR,
        threshold: int = MULTIPART_THRESHOLD,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        abort_on_failure: bool = False,
    ):
        self.r2 = r2
        self.domain_lookup = domain_lookup
        self.list_limit = list_limit
        self.download_dir = download_dir
        self.threshold = threshold
        self.chunk_size = chunk_size
        self.abort_on_failure = abort_on_failure

    def run(self) -> None:
        bucket = None

        while True:
            if bucket is None:
                nav = self.bucket_menu()
                if nav.kind == EXIT:
                    click.echo(click.style("✅ Bye", fg="green"))
                    return
                bucket = nav.bucket
                continue

            nav = self.file_menu(bucket)
            if nav is None:
                continue
            if nav.kind == BACK:
                bucket = None
                continue

            self.option_menu(bucket, nav.key)

    def bucket_menu(self) -> Nav:
        click.clear()
        try:
            buckets = list_buckets_summary(self.r2)
        except R2Error as e:
            error(f"Could not list buckets: {e}")
            return Nav(EXIT)

        if not buckets:
            error("No buckets found")
            return Nav(EXIT)

        options = [(f"{b.name}  (created {b.created})", b.name) for b in buckets]
        options.append(("Exit", EXIT))

        picked = choose("📦 Buckets", options)
        if picked == EXIT:
            return Nav(EXIT)
        return Nav(BUCKET, bucket=picked)

    def file_menu(self, bucket: str) -> Optional[Nav]:
        """
            Show the files of a bucket

            Returns:
                Nav: FILE with the chosen key, BACK to leave the bucket,
                or None after an upload to show the list again
        """
        click.clear()
        try:
            domains = self.domain_lookup(bucket) if self.domain_lookup else []
            files = list_files(self.r2, bucket, limit=self.list_limit, domains=domains)
        except R2Error as e:
            error(f"Could not list files of {bucket}: {e}")
            return Nav(BACK)

        if not files:
            click.echo("  (bucket is empty)")

        options = []
        for f in files:
            label = f"{f.key}  {f.size} bytes"
            if f.url:
                label += f"  {f.url}"
            options.append((label, f.key))
        options.append(("Upload a new file", UPLOAD))
        options.append(("Back", BACK))

        picked = choose(f"📄 Files in {bucket}", options)
        if picked == BACK:
            return Nav(BACK)
        if picked == UPLOAD:
            path = click.prompt("Absolute path of the file to upload", type=click.Path(exists=True, dir_okay=False))
            self.upload(bucket, path)
            return None
        return Nav(FILE, bucket=bucket, key=picked)

    def option_menu(self, bucket: str, key: str) -> Nav:
        click.clear()
        picked = choose(
            f"🔍 {key}",
            [
                (f"Download (to ./{self.download_dir})", DOWNLOAD),
                ("Delete", DELETE),
                ("Back", BACK),
            ],
        )

        if picked == DOWNLOAD:
            self.download(bucket, key)
        elif picked == DELETE:
            if click.confirm(f"Delete {key}?", default=False):
                self.delete(bucket, key)

        return Nav(BACK)

    def upload(self, bucket: str, path: str) -> None:
        try:
            with part_progress(f"Uploading {path}") as sink:
                upload_file(
                    self.r2,
                    bucket,
                    path,
                    threshold=self.threshold,
                    chunk_size=self.chunk_size,
                    progress=sink,
                    abort_on_failure=self.abort_on_failure,
                )
        except (R2Error, OSError) as e:
            logging.debug("Upload failed", exc_info=True)
            error(f"Upload failed: {e}")
        else:
            click.echo(click.style(f"✅ Uploaded {path}", fg="green"))
        click.pause()

    def download(self, bucket: str, key: str) -> None:
        try:
            target = download_file(self.r2, bucket, key, dest_dir=self.download_dir)
        except (R2Error, OSError) as e:
            error(f"Download failed: {e}")
        else:
            click.echo(click.style(f"✅ Downloaded to {target}", fg="green"))
        click.pause()

    def delete(self, bucket: str, key: str) -> None:
        try:
            self.r2.delete_object(bucket, key)
        except R2Error as e:
            error(f"Could not delete {key}: {e}")
        else:
            click.echo(click.style(f"✅ {key} deleted from {bucket}", fg="green"))
        click.pause()
