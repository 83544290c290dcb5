import logging
import os
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config
from dotenv import load_dotenv

from r2manager.errors import MissingCredentialsError

MIB = 1024 * 1024
DEFAULT_CHUNK_SIZE = 50 * MIB
MULTIPART_THRESHOLD = 300 * MIB
DEFAULT_LIST_LIMIT = 30
DOWNLOAD_DIR = "downloads"

_REQUIRED = ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY")


@dataclass(frozen=True)
class R2Config:
    """Credentials and endpoint settings for a Cloudflare R2 account."""

    account_id: str
    access_key_id: str
    secret_access_key: str
    region: str = "auto"
    account_token: Optional[str] = None

    @property
    def endpoint_url(self) -> str:
        return f"https://{self.account_id}.r2.cloudflarestorage.com"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "R2Config":
        """
            Build the configuration from environment variables, loading a .env file first

            Args:
                env_file (str, optional): Explicit .env path. Defaults to searching upwards from cwd.

            Returns:
                R2Config: the loaded configuration

            Raises:
                MissingCredentialsError: if any required variable is unset or empty
        """
        load_dotenv(env_file)

        missing = [name for name in _REQUIRED if not os.getenv(name)]
        if missing:
            raise MissingCredentialsError(missing)

        return cls(
            account_id=os.environ["R2_ACCOUNT_ID"],
            access_key_id=os.environ["R2_ACCESS_KEY_ID"],
            secret_access_key=os.environ["R2_SECRET_ACCESS_KEY"],
            region=os.getenv("R2_REGION") or "auto",
            account_token=os.getenv("R2_ACCOUNT_TOKEN") or None,
        )


def create_r2_client(config: R2Config):
    """
        Create a boto3 S3 client pointed at the R2 endpoint of the account

        Args:
            config (R2Config): account credentials

        Returns:
            botocore client: an "s3" client using path-style addressing
    """
    logging.debug("Creating R2 client for endpoint %s", config.endpoint_url)

    # R2 does not resolve virtual-hosted bucket names.
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=config.region,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )
