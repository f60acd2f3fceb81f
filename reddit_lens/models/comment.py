from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from .post import Post


@dataclass(frozen=True)
class MoreStub:
    """Unexpanded continuation point in a comment tree. Never rendered as a comment."""
    id: str
    parent_id: str
    child_ids: Tuple[str, ...] = ()
    count: int = 0
    depth: int = 0


@dataclass(frozen=True)
class Comment:
    """Comment tree node."""
    id: str
    author: str
    body_markdown: str
    created_at_epoch_seconds: int
    score: int
    permalink_url: str
    edited_at_epoch_seconds: Optional[int] = None
    depth: int = 0
    children: Tuple['CommentNode', ...] = ()


CommentNode = Union[Comment, MoreStub]


@dataclass(frozen=True)
class CommentThread:
    """A post together with its comment forest."""
    post: Post
    comments: Tuple[CommentNode, ...] = field(default_factory=tuple)
