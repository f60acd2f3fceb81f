"""Conversion of raw post and category records into canonical entities.

Extraction is total: absent or mistyped optional fields fall back to
defaults and nothing here raises.
"""
import html
from typing import Any, Dict, Optional

from ..models.category import Category
from ..models.post import ImageMedia, LinkMedia, Media, NoMedia, Post, VideoMedia

DEFAULT_HOST = 'https://www.reddit.com'

# Values above this are milliseconds rather than seconds
EPOCH_SECONDS_LIMIT = 9_999_999_999

LINK_HINTS = ('link', 'rich:video')


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_str(value: Any, default: str = '') -> str:
    return value if isinstance(value, str) else default


def as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return default
    return default


def _optional_url(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.startswith(('http://', 'https://')):
        return html.unescape(value)
    return None


def record_data(raw: Any) -> Dict[str, Any]:
    """Unwrap a {"kind": ..., "data": {...}} thing; bare dicts pass through."""
    raw = as_dict(raw)
    if 'kind' in raw and isinstance(raw.get('data'), dict):
        return raw['data']
    return raw


def to_epoch_seconds(value: Any) -> int:
    """Normalize a seconds-or-milliseconds timestamp to epoch seconds."""
    timestamp = as_int(value)
    if timestamp > EPOCH_SECONDS_LIMIT:
        timestamp //= 1000
    return timestamp


def absolute_url(permalink: Any, host: str = DEFAULT_HOST) -> str:
    permalink = as_str(permalink)
    if not permalink or permalink.startswith(('http://', 'https://')):
        return permalink
    return f"{host.rstrip('/')}/{permalink.lstrip('/')}"


def _video_media(data: Dict[str, Any]) -> Optional[VideoMedia]:
    # media and secure_media carry the same descriptor; either may be present
    for key in ('media', 'secure_media'):
        video = as_dict(as_dict(data.get(key)).get('reddit_video'))
        dash_url = _optional_url(video.get('dash_url'))
        fallback_url = _optional_url(video.get('fallback_url'))
        if dash_url or fallback_url:
            return VideoMedia(dash_url=dash_url, fallback_url=fallback_url)
    return None


def _image_media(data: Dict[str, Any]) -> Optional[ImageMedia]:
    if data.get('post_hint') != 'image':
        return None
    images = as_dict(data.get('preview')).get('images')
    if not isinstance(images, list) or not images:
        return None
    source = as_dict(as_dict(images[0]).get('source'))
    width, height = as_int(source.get('width')), as_int(source.get('height'))
    url = _optional_url(data.get('url')) or _optional_url(source.get('url'))
    if not url or width <= 0 or height <= 0:
        return None
    return ImageMedia(url=url, width=width, height=height)


def _is_external_link(data: Dict[str, Any]) -> bool:
    if data.get('post_hint') in LINK_HINTS:
        return True
    # Galleries and other unhinted non-self posts are treated as links to their URL
    return data.get('is_self') is False and _optional_url(data.get('url')) is not None


def select_media(data: Dict[str, Any]) -> Media:
    """Choose the media variant: video, then image, then link, else none."""
    video = _video_media(data)
    if video:
        return video
    image = _image_media(data)
    if image:
        return image
    if _is_external_link(data):
        return LinkMedia()
    return NoMedia()


def normalize(raw_post: Any, host: str = DEFAULT_HOST) -> Post:
    """Convert one raw post record into a Post."""
    data = record_data(raw_post)
    subreddit = as_str(data.get('subreddit_name_prefixed'))
    if not subreddit and as_str(data.get('subreddit')):
        subreddit = f"r/{data['subreddit']}"
    created = data.get('created_utc', data.get('created'))

    return Post(
        id=as_str(data.get('id')) or as_str(data.get('name')),
        author=as_str(data.get('author'), '[deleted]'),
        title=as_str(data.get('title')),
        subreddit=subreddit,
        permalink_url=absolute_url(data.get('permalink'), host),
        external_url=as_str(data.get('url')),
        body_markdown=as_str(data.get('selftext')) or None,
        created_at_epoch_seconds=to_epoch_seconds(created),
        num_comments=max(as_int(data.get('num_comments')), 0),
        score=max(as_int(data.get('ups')) - as_int(data.get('downs')), 0),
        media=select_media(data),
        thumbnail_url=_optional_url(data.get('thumbnail')),
    )


def normalize_category(raw_category: Any) -> Category:
    """Convert one raw subreddit record into a Category."""
    data = record_data(raw_category)
    name = as_str(data.get('display_name'))
    path = '/' + (as_str(data.get('url')) or f"/r/{name}").strip('/')
    icon_url = _optional_url(data.get('icon_img')) or _optional_url(data.get('community_icon'))
    return Category(
        id=as_str(data.get('id')) or name,
        display_name=name,
        path=path,
        icon_url=icon_url,
    )
