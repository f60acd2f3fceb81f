"""Navigation-to-query resolution.

Pure functions: a Location (or an expansion request) maps to the URL the
transport should fetch. No network access happens here.
"""
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlencode

from ..models.location import Location
from ..utils.config import ClientConfig

CATEGORIES_PATH = '/subreddits'
MORE_CHILDREN_PATH = '/api/morechildren'


@dataclass(frozen=True)
class FetchTarget:
    target_url: str
    cache_key: str


def _base_path(path: str) -> str:
    path = '/' + path.strip().strip('/')
    return path.rstrip('/')


def resolve(location: Location, config: Optional[ClientConfig] = None) -> FetchTarget:
    """Derive the fetch URL and cache key for a location."""
    config = config or ClientConfig()
    path = _base_path(location.path)
    if location.listing_mode:
        mode = getattr(location.listing_mode, 'value', location.listing_mode)
        path = f"{path}/{mode}"
    # The front page has an empty base path; keep the separator before the suffix
    url = f"{config.base_host.rstrip('/')}{path or '/'}{config.listing_suffix}"

    term = (location.search_term or '').strip()
    if term:
        url = f"{url}?{urlencode({'q': term})}"
    return FetchTarget(target_url=url, cache_key=url)


def resolve_categories(config: Optional[ClientConfig] = None) -> FetchTarget:
    """Fixed target for the sidebar category list."""
    return resolve(Location(path=CATEGORIES_PATH), config)


def resolve_more_children(link_fullname: str, child_ids: Sequence[str],
                          config: Optional[ClientConfig] = None) -> FetchTarget:
    """Target for expanding a continuation stub that lists child ids."""
    config = config or ClientConfig()
    query = urlencode({
        'api_type': 'json',
        'link_id': link_fullname,
        'children': ','.join(child_ids),
    })
    url = f"{config.base_host.rstrip('/')}{MORE_CHILDREN_PATH}{config.listing_suffix}?{query}"
    return FetchTarget(target_url=url, cache_key=url)
