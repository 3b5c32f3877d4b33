import logging
from typing import Optional

import requests
from fastapi.concurrency import run_in_threadpool

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RevalidationClient:
    """
    Tells the storefront that a rendered page is stale.

    Calls are fire-and-forget: a failure is logged and reported as False,
    never raised and never retried.
    """

    TIMEOUT = 5  # seconds

    def __init__(self, endpoint_url: Optional[str], secret: Optional[str] = None):
        self.endpoint_url = endpoint_url
        self.secret = secret

    async def revalidate_path(self, path: str) -> bool:
        """
        Mark one storefront path as stale.

        Args:
            path: Page path, e.g. "/produit/office-2021-pro-digital-key"

        Returns:
            bool: True if the storefront acknowledged the signal
        """
        if not self.endpoint_url:
            logger.debug(f"Revalidation endpoint not configured, skipping {path}")
            return False

        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Revalidate-Secret"] = self.secret

        try:
            response = await run_in_threadpool(
                requests.post,
                self.endpoint_url,
                json={"path": path},
                headers=headers,
                timeout=self.TIMEOUT,
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(f"Failed to revalidate {path}: {str(e)}")
            return False
