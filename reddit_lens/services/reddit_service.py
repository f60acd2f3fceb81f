import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..utils.config import ClientConfig
from ..utils.errors import (FetchError, MalformedPayloadError, NetworkUnreachableError,
                            NotFoundError, RateLimitedError)


def _retry_after(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


def classify_status(status: int, url: str, retry_after: Optional[str] = None) -> FetchError:
    """Map a non-success HTTP status to the matching fetch error."""
    if status == 429:
        return RateLimitedError(f"Rate limited fetching {url}", retry_after=_retry_after(retry_after))
    if status in (403, 404):
        return NotFoundError(f"No content at {url} (HTTP {status})")
    return NetworkUnreachableError(f"Failed to fetch {url}: HTTP {status}")


class RedditService:
    """Raw transport for Reddit's JSON API.

    ``fetch_json`` is the only operation the core depends on; no retries are
    made here.
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={'User-Agent': self.config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            )
        return self._session

    async def fetch_json(self, url: str) -> Any:
        """Fetch a URL and return the decoded JSON document."""
        session = self._get_session()
        logging.debug(f"Fetching: {url}")
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    error = classify_status(response.status, url, response.headers.get('Retry-After'))
                    logging.error(str(error))
                    raise error
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedPayloadError(f"Invalid JSON from {url}: {str(e)}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logging.error(f"Error fetching {url}: {str(e)}")
            raise NetworkUnreachableError(f"Error fetching {url}: {str(e)}") from e

        # Throttling and missing content are sometimes reported in a 200 body
        if isinstance(data, dict) and isinstance(data.get('error'), int):
            error = classify_status(data['error'], url)
            logging.error(str(error))
            raise error
        return data

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
