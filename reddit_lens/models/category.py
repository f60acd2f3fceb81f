from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Category:
    """Sidebar subreddit entry."""
    id: str
    display_name: str
    path: str
    icon_url: Optional[str] = None
