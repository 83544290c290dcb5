import logging
from typing import List, Optional

import requests

CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"
REQUEST_TIMEOUT = 10


def get_bucket_domains(account_id: str, account_token: Optional[str], bucket: str) -> List[str]:
    """
        List the enabled custom domains of an R2 bucket through the Cloudflare API

        Args:
            account_id (str): Cloudflare account ID
            account_token (str): API token with R2 read permission
            bucket (str): Bucket name

        Returns:
            list: enabled domain names, empty when the lookup is not possible
    """
    if not account_token:
        logging.info("R2_ACCOUNT_TOKEN is not set, skipping custom domain lookup")
        return []

    url = f"{CLOUDFLARE_API}/accounts/{account_id}/r2/buckets/{bucket}/domains/custom"

    try:
        response = requests.get(
            url,
            headers={"Authorization": f"Bearer {account_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        domains = response.json()["result"]["domains"]
    except requests.RequestException as e:
        logging.error("❌ Could not fetch custom domains of %s: %s", bucket, str(e))
        return []
    except (ValueError, KeyError, TypeError) as e:
        logging.error("❌ Unexpected custom domain payload for %s: %s", bucket, str(e))
        return []

    if not isinstance(domains, list):
        logging.error("❌ Unexpected custom domain payload for %s: domains is %r", bucket, domains)
        return []

    return [
        item["domain"]
        for item in domains
        if isinstance(item, dict) and item.get("enabled") and item.get("domain")
    ]
