from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional
from urllib.parse import urlparse, parse_qs

REDDIT_DOMAINS = ('www.reddit.com', 'old.reddit.com', 'new.reddit.com', 'sh.reddit.com', 'reddit.com')


class ListingMode(str, Enum):
    """Remote sort applied to a content path."""
    HOT = "hot"
    NEW = "new"
    TOP = "top"
    RISING = "rising"
    CONTROVERSIAL = "controversial"


@dataclass(frozen=True)
class Location:
    """Navigable identifier: content path, optional search term and listing mode."""
    path: str = "/"
    search_term: Optional[str] = None
    listing_mode: Optional[ListingMode] = None

    @property
    def parts(self):
        return [p for p in self.path.split('/') if p]

    @property
    def is_thread(self) -> bool:
        """True for /r/<sub>/comments/<id>/... paths."""
        parts = self.parts
        return len(parts) >= 4 and parts[0] == 'r' and parts[2] == 'comments'

    @property
    def thread_id(self) -> Optional[str]:
        return self.parts[3] if self.is_thread else None

    def with_listing_mode(self, mode: Optional[ListingMode]) -> 'Location':
        return replace(self, listing_mode=mode)

    def with_search_term(self, term: Optional[str]) -> 'Location':
        return replace(self, search_term=term)

    @classmethod
    def from_url(cls, url: str) -> 'Location':
        """Parse a reddit URL or bare path into a Location."""
        url = url.strip()
        # Handle both full URLs and relative paths
        if '://' not in url and not url.startswith('/'):
            if url.split('/')[0] in REDDIT_DOMAINS:
                url = 'https://' + url
            else:
                url = '/' + url
        parsed = urlparse(url)
        path = parsed.path or '/'

        # Remove trailing slash and .json if present
        path = path.rstrip('/')
        if path.endswith('.json'):
            path = path[:-len('.json')]

        listing_mode = None
        parts = [p for p in path.split('/') if p]
        if parts and not (len(parts) >= 3 and parts[0] == 'r' and parts[2] == 'comments'):
            try:
                listing_mode = ListingMode(parts[-1].lower())
                parts = parts[:-1]
            except ValueError:
                pass

        terms = parse_qs(parsed.query).get('q')
        search_term = terms[0] if terms else None
        return cls(path='/' + '/'.join(parts), search_term=search_term, listing_mode=listing_mode)
