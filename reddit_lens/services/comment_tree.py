"""Comment tree construction.

Raw comment listings mix ordinary comments (kind ``t1``) with continuation
markers (kind ``more``). Comments become ``Comment`` nodes with their replies
built recursively; markers become ``MoreStub`` nodes and are never expanded
here. Sibling order is kept exactly as received.
"""
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..models.comment import Comment, CommentNode, MoreStub
from ..models.post import Post
from .normalizer import (DEFAULT_HOST, as_dict, as_int, as_str, absolute_url, normalize,
                         record_data, to_epoch_seconds)

COMMENT_KIND = 't1'
MORE_KIND = 'more'


def bare_id(fullname: Any) -> str:
    """Strip the type prefix from a fullname ("t1_abc" -> "abc")."""
    fullname = as_str(fullname)
    prefix, sep, rest = fullname.partition('_')
    if sep and prefix.startswith('t') and prefix[1:].isdigit():
        return rest
    return fullname


def listing_children(listing: Any) -> List[Any]:
    children = as_dict(as_dict(listing).get('data')).get('children')
    return children if isinstance(children, list) else []


def is_thread_payload(raw_response: Any) -> bool:
    """True when the response is the two-part [post listing, comment listing] array."""
    return (isinstance(raw_response, list) and len(raw_response) == 2
            and all(isinstance(as_dict(part).get('data'), dict) and
                    isinstance(part['data'].get('children'), list) for part in raw_response))


def _edited(value: Any) -> Optional[int]:
    # The remote reports `false` for never-edited comments
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return to_epoch_seconds(value)


def _build_stub(data: Dict[str, Any], depth: int) -> MoreStub:
    parent_id = bare_id(data.get('parent_id'))
    stub_id = as_str(data.get('id'))
    if stub_id in ('', '_'):
        stub_id = f"more_{parent_id}"
    children = data.get('children')
    child_ids = tuple(c for c in children if isinstance(c, str)) if isinstance(children, list) else ()
    return MoreStub(
        id=stub_id,
        parent_id=parent_id,
        child_ids=child_ids,
        count=max(as_int(data.get('count')), 0),
        depth=depth,
    )


def _build_comment(data: Dict[str, Any], host: str, depth: int) -> Comment:
    return Comment(
        id=as_str(data.get('id')),
        author=as_str(data.get('author'), '[deleted]'),
        body_markdown=as_str(data.get('body')),
        created_at_epoch_seconds=to_epoch_seconds(data.get('created_utc', data.get('created'))),
        edited_at_epoch_seconds=_edited(data.get('edited')),
        score=as_int(data.get('score')),
        permalink_url=absolute_url(data.get('permalink'), host),
        depth=depth,
        # Absent replies arrive as an empty string
        children=build_nodes(listing_children(data.get('replies')), host, depth + 1),
    )


def build_node(raw_node: Any, host: str = DEFAULT_HOST, depth: int = 0) -> Optional[CommentNode]:
    kind = as_dict(raw_node).get('kind')
    data = record_data(raw_node)
    if kind == MORE_KIND:
        return _build_stub(data, depth)
    if kind == COMMENT_KIND:
        return _build_comment(data, host, depth)
    logging.debug(f"Skipping comment tree node of kind {kind!r}")
    return None


def build_nodes(raw_nodes: Sequence[Any], host: str = DEFAULT_HOST, depth: int = 0) -> Tuple[CommentNode, ...]:
    nodes = (build_node(raw, host, depth) for raw in raw_nodes)
    return tuple(node for node in nodes if node is not None)


def build(raw_response: Any, host: str = DEFAULT_HOST) -> Tuple[Optional[Post], Tuple[CommentNode, ...]]:
    """Build (post meta, comment forest) from a thread response.

    The post is None when the first part holds no post record.
    """
    if not isinstance(raw_response, list) or not raw_response:
        return None, ()
    posts = listing_children(raw_response[0])
    post = normalize(posts[0], host) if posts else None
    comments = listing_children(raw_response[1]) if len(raw_response) > 1 else []
    return post, build_nodes(comments, host)


def build_from_things(things: Sequence[Any], host: str = DEFAULT_HOST, depth: int = 0) -> Tuple[CommentNode, ...]:
    """Build a forest from a flat list of things linked by parent_id.

    Things whose parent is not in the list are roots.
    """
    things = [thing for thing in things if isinstance(thing, dict)]
    comment_ids = {as_str(record_data(t).get('id')) for t in things if t.get('kind') == COMMENT_KIND}
    by_parent: Dict[str, List[Dict[str, Any]]] = {}
    for thing in things:
        by_parent.setdefault(bare_id(record_data(thing).get('parent_id')), []).append(thing)

    def nest(thing):
        data = record_data(thing)
        if thing.get('kind') != COMMENT_KIND:
            return thing
        replies = [nest(child) for child in by_parent.get(as_str(data.get('id')), [])]
        return {'kind': COMMENT_KIND, 'data': dict(data, replies={'data': {'children': replies}})}

    roots = [nest(t) for t in things if bare_id(record_data(t).get('parent_id')) not in comment_ids]
    return build_nodes(roots, host, depth)


def replies_of(raw_response: Any, comment_id: str, host: str = DEFAULT_HOST,
               depth: int = 0) -> Optional[Tuple[CommentNode, ...]]:
    """Children of one comment in a thread response, or None if it is absent."""
    if not isinstance(raw_response, list) or len(raw_response) < 2:
        return None
    pending = list(listing_children(raw_response[1]))
    while pending:
        raw = pending.pop(0)
        data = record_data(raw)
        if as_dict(raw).get('kind') != COMMENT_KIND:
            continue
        replies = listing_children(data.get('replies'))
        if as_str(data.get('id')) == comment_id:
            return build_nodes(replies, host, depth)
        pending.extend(replies)
    return None


def find_stub(nodes: Sequence[CommentNode], stub_id: str) -> Optional[MoreStub]:
    for node in nodes:
        if isinstance(node, MoreStub):
            if node.id == stub_id:
                return node
        else:
            found = find_stub(node.children, stub_id)
            if found:
                return found
    return None


def splice(nodes: Sequence[CommentNode], stub_id: str,
           replacement: Sequence[CommentNode]) -> Tuple[CommentNode, ...]:
    """Return a new forest with the stub replaced in place by `replacement`."""
    result: List[CommentNode] = []
    for node in nodes:
        if isinstance(node, MoreStub):
            if node.id == stub_id:
                result.extend(replacement)
            else:
                result.append(node)
        else:
            result.append(replace(node, children=splice(node.children, stub_id, replacement)))
    return tuple(result)
