from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class NoMedia:
    """Post without displayable media."""
    kind = "none"


@dataclass(frozen=True)
class ImageMedia:
    """Hosted image with known dimensions."""
    url: str
    width: int
    height: int
    kind = "image"


@dataclass(frozen=True)
class VideoMedia:
    """Hosted video; at least one of the two URLs is set."""
    dash_url: Optional[str]
    fallback_url: Optional[str]
    kind = "video"


@dataclass(frozen=True)
class LinkMedia:
    """External link; the target is Post.external_url."""
    kind = "link"


Media = Union[NoMedia, ImageMedia, VideoMedia, LinkMedia]


@dataclass(frozen=True)
class Post:
    """Canonical post entity."""
    id: str
    author: str
    title: str
    subreddit: str
    permalink_url: str
    external_url: str
    created_at_epoch_seconds: int
    num_comments: int
    score: int
    media: Media = NoMedia()
    body_markdown: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @property
    def fullname(self) -> str:
        """Remote 'thing' name used by the expansion endpoint."""
        return f"t3_{self.id}"
