import asyncio
import logging
from typing import Dict, Optional, Tuple

from ..models.category import Category
from ..models.state import Error, Loading, Success
from ..utils.config import ClientConfig
from ..utils.errors import FetchError, MalformedPayloadError, NetworkUnreachableError
from .channel import StateChannel
from .normalizer import as_dict, normalize_category
from .orchestrator import FetchJson
from .resolver import FetchTarget, resolve_categories


class CategoryCache:
    """Sidebar category list, fetched at most once per process.

    Concurrent callers before the first completion share one in-flight
    request, keyed by the category target's cache key. Failures are not
    memoised.
    """

    def __init__(self, fetch_json: FetchJson, config: Optional[ClientConfig] = None):
        self.fetch_json = fetch_json
        self.config = config or ClientConfig()
        self.channel = StateChannel('categories')
        self._categories: Optional[Tuple[Category, ...]] = None
        self._pending: Dict[str, asyncio.Future] = {}
        self._request_id = 0

    async def get(self) -> Tuple[Category, ...]:
        """Return the cached categories, fetching them on first use."""
        if self._categories is not None:
            logging.debug("Category cache hit")
            return self._categories
        target = resolve_categories(self.config)
        pending = self._pending.get(target.cache_key)
        if pending is None:
            logging.debug("Category cache miss")
            self._request_id += 1
            self.channel.request_id = self._request_id
            self.channel.publish(Loading(self._request_id))
            pending = asyncio.ensure_future(self._fetch(target, self._request_id))
            self._pending[target.cache_key] = pending
        return await asyncio.shield(pending)

    async def _fetch(self, target: FetchTarget, request_id: int) -> Tuple[Category, ...]:
        try:
            raw = await self.fetch_json(target.target_url)
            children = as_dict(as_dict(raw).get('data')).get('children')
            if not isinstance(children, list):
                raise MalformedPayloadError(f"Expected a listing from {target.target_url}")
            categories = tuple(normalize_category(child) for child in children)
        except FetchError as e:
            logging.error(f"Error fetching categories: {e.message}")
            self.channel.publish(Error(kind=e.kind, request_id=request_id, message=e.message))
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Anything else escaping the transport counts as a network failure
            logging.error(f"Error fetching categories: {str(e)}")
            error = NetworkUnreachableError(str(e))
            self.channel.publish(Error(kind=error.kind, request_id=request_id, message=error.message))
            raise error from e
        finally:
            self._pending.pop(target.cache_key, None)

        self._categories = categories
        self.channel.publish(Success(data=categories, request_id=request_id))
        return categories
