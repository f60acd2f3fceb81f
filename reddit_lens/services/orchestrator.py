"""Fetch orchestration.

Each trigger allocates a new request id, publishes ``Loading`` on the
affected channel at once and schedules the fetch as an asyncio task. The
result of a task is published only if its request id is still the
channel's current one, so the last trigger wins regardless of completion
order. Superseded tasks are also cancelled. A trigger whose target is
already in flight on the same channel reuses that request.
"""
import asyncio
import itertools
import logging
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from ..models.comment import CommentThread, MoreStub
from ..models.location import Location
from ..models.post import Post
from ..models.state import Error, ErrorKind, Loading, Success
from ..utils.config import ClientConfig
from ..utils.errors import FetchError, MalformedPayloadError, NotFoundError
from . import comment_tree
from .channel import StateChannel
from .normalizer import as_dict, normalize
from .resolver import FetchTarget, resolve, resolve_more_children

FetchJson = Callable[[str], Awaitable[Any]]
Loader = Callable[[], Awaitable[Any]]


def _listing_children(raw: Any, url: str) -> List[Any]:
    if not isinstance(raw, dict) or not isinstance(raw.get('data'), dict) or \
            not isinstance(raw['data'].get('children'), list):
        raise MalformedPayloadError(f"Expected a listing from {url}")
    return raw['data']['children']


class FetchOrchestrator:
    """Turns location changes and expansion requests into published view state."""

    def __init__(self, fetch_json: FetchJson, config: Optional[ClientConfig] = None):
        self.fetch_json = fetch_json
        self.config = config or ClientConfig()
        self.posts = StateChannel('posts')
        self.comments = StateChannel('comments')
        self.location: Optional[Location] = None
        self._active: Optional[StateChannel] = None
        self._request_ids = itertools.count(1)

    @property
    def host(self) -> str:
        return self.config.base_host

    # Triggers

    def set_location(self, location: Location) -> None:
        """Navigate to a location; thread locations load the comment tree."""
        self.location = location
        channel = self.comments if location.is_thread else self.posts
        # Search input is debounced; plain navigation fetches at once
        delay = self.config.debounce_seconds if (location.search_term or '').strip() else 0
        loader = self._load_thread if location.is_thread else self._load_posts
        target = resolve(location, self.config)
        self._trigger(channel, partial(loader, location), delay, cache_key=target.cache_key)

    def retry(self) -> None:
        """Re-issue the most recent trigger of the last active channel."""
        channel = self._active
        if channel is None or channel.last_trigger is None:
            logging.debug("Nothing to retry")
            return
        self._trigger(channel, channel.last_trigger)

    def expand(self, stub_id: str) -> None:
        """Fetch the replies behind a continuation stub and splice them in."""
        if isinstance(self.comments.state, Loading):
            logging.debug(f"Ignoring expansion of {stub_id} while comments are loading")
            return
        base = self.comments.last_success
        if base is None:
            logging.warning(f"No thread loaded to expand {stub_id} in")
            return
        if self.location is not None and self.location.is_thread and \
                self.location.thread_id != base.data.post.id:
            logging.debug(f"Ignoring expansion of {stub_id} from thread {base.data.post.id}")
            return
        stub = comment_tree.find_stub(base.data.comments, stub_id)
        if stub is None:
            logging.warning(f"No continuation stub {stub_id} in the current thread")
            return
        target = self._expansion_target(base.data, stub)
        self._trigger(self.comments, partial(self._load_expansion, base.data, stub),
                      cache_key=target.cache_key)

    # State machine

    def _trigger(self, channel: StateChannel, loader: Loader, delay: float = 0,
                 cache_key: Optional[str] = None) -> int:
        if cache_key is not None and channel.in_flight() and channel.cache_key == cache_key:
            logging.debug(f"[{channel.name}] Reusing request {channel.request_id} for {cache_key}")
            return channel.request_id
        request_id = next(self._request_ids)
        channel.cancel_pending()
        channel.request_id = request_id
        channel.cache_key = cache_key
        channel.last_trigger = loader
        self._active = channel
        channel.publish(Loading(request_id))
        channel.task = asyncio.ensure_future(self._run(channel, request_id, loader, delay))
        return request_id

    async def _run(self, channel: StateChannel, request_id: int, loader: Loader, delay: float) -> None:
        try:
            if delay:
                await asyncio.sleep(delay)
            data = await loader()
        except asyncio.CancelledError:
            logging.debug(f"[{channel.name}] Request {request_id} cancelled")
            raise
        except FetchError as e:
            logging.error(f"[{channel.name}] Request {request_id} failed: {e.message}")
            outcome = Error(kind=e.kind, request_id=request_id, message=e.message)
        except Exception as e:
            # Anything else escaping the transport counts as a network failure
            logging.error(f"[{channel.name}] Request {request_id} failed: {str(e)}")
            outcome = Error(kind=ErrorKind.NETWORK_UNREACHABLE, request_id=request_id, message=str(e))
        else:
            outcome = Success(data=data, request_id=request_id)

        if not channel.is_current(request_id):
            logging.debug(f"[{channel.name}] Discarding superseded request {request_id}")
            return
        channel.publish(outcome)

    # Loaders

    async def _load_posts(self, location: Location) -> Tuple[Post, ...]:
        target = resolve(location, self.config)
        raw = await self.fetch_json(target.target_url)
        posts = []
        seen = set()
        for child in _listing_children(raw, target.target_url):
            post = normalize(child, self.host)
            if post.id in seen:
                continue
            seen.add(post.id)
            posts.append(post)
        logging.info(f"Loaded {len(posts)} posts from {target.target_url}")
        return tuple(posts)

    async def _load_thread(self, location: Location) -> CommentThread:
        target = resolve(location, self.config)
        raw = await self.fetch_json(target.target_url)
        if not comment_tree.is_thread_payload(raw):
            raise MalformedPayloadError(f"Expected a [post, comments] pair from {target.target_url}")
        post, comments = comment_tree.build(raw, self.host)
        if post is None:
            raise NotFoundError(f"No post at {target.target_url}")
        return CommentThread(post=post, comments=comments)

    def _expansion_target(self, thread: CommentThread, stub: MoreStub) -> FetchTarget:
        if stub.child_ids:
            return resolve_more_children(thread.post.fullname, stub.child_ids, self.config)
        # "Continue this thread": load the parent comment's own thread
        path = Location.from_url(thread.post.permalink_url).path
        return resolve(Location(path=f"{path}/{stub.parent_id}"), self.config)

    async def _load_expansion(self, thread: CommentThread, stub: MoreStub) -> CommentThread:
        target = self._expansion_target(thread, stub)
        if stub.child_ids:
            raw = await self.fetch_json(target.target_url)
            things = as_dict(as_dict(as_dict(raw).get('json')).get('data')).get('things')
            if not isinstance(things, list):
                raise MalformedPayloadError(f"Expected json.data.things from {target.target_url}")
            replacement = comment_tree.build_from_things(things, self.host, stub.depth)
        else:
            raw = await self.fetch_json(target.target_url)
            if not comment_tree.is_thread_payload(raw):
                raise MalformedPayloadError(f"Expected a [post, comments] pair from {target.target_url}")
            replacement = comment_tree.replies_of(raw, stub.parent_id, self.host, stub.depth)
            if replacement is None:
                raise NotFoundError(f"Comment {stub.parent_id} missing from {target.target_url}")
        comments = comment_tree.splice(thread.comments, stub.id, replacement)
        return CommentThread(post=thread.post, comments=comments)

    # Lifecycle

    async def settle(self) -> None:
        """Wait until no request is in flight on any channel."""
        while True:
            pending = [c.task for c in (self.posts, self.comments) if c.in_flight()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight requests and wait for them to unwind."""
        pending = [c.task for c in (self.posts, self.comments) if c.in_flight()]
        for channel in (self.posts, self.comments):
            channel.cancel_pending()
        await asyncio.gather(*pending, return_exceptions=True)
