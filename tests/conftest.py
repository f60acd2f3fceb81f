import asyncio

import pytest

from reddit_lens.utils.errors import NotFoundError


def listing(children):
    return {"kind": "Listing", "data": {"children": list(children)}}


def post_record(post_id, **overrides):
    data = {
        "id": post_id,
        "author": "gyrozepp2",
        "title": f"Post {post_id}",
        "subreddit": "test",
        "subreddit_name_prefixed": "r/test",
        "permalink": f"/r/test/comments/{post_id}/post_{post_id}/",
        "url": f"https://www.reddit.com/r/test/comments/{post_id}/post_{post_id}/",
        "selftext": "",
        "created_utc": 1652215458.0,
        "num_comments": 3,
        "ups": 10,
        "downs": 0,
        "is_self": True,
        "thumbnail": "self",
    }
    data.update(overrides)
    return {"kind": "t3", "data": data}


def comment_record(comment_id, parent="t3_p1", replies=(), **overrides):
    data = {
        "id": comment_id,
        "author": f"author_{comment_id}",
        "body": f"body of {comment_id}",
        "created_utc": 1652215500.0,
        "edited": False,
        "score": 5,
        "permalink": f"/r/test/comments/p1/post_p1/{comment_id}/",
        "parent_id": parent,
        "replies": listing(replies) if replies else "",
    }
    data.update(overrides)
    return {"kind": "t1", "data": data}


def more_record(more_id, parent, children=(), count=None):
    return {"kind": "more", "data": {
        "id": more_id,
        "name": f"t1_{more_id}",
        "parent_id": parent,
        "children": list(children),
        "count": len(children) if count is None else count,
    }}


def thread_payload(post, comments):
    return [listing([post]), listing(comments)]


class FakeTransport:
    """Async fetch_json stand-in keyed by URL.

    URLs with a gate block until the gate is set. With ``stubborn`` the fake
    ignores cancellation, like a transport that cannot abort.
    """

    def __init__(self, responses=None, stubborn=False):
        self.responses = dict(responses or {})
        self.calls = []
        self.gates = {}
        self.stubborn = stubborn
        self.closed = False

    def gate(self, url):
        self.gates[url] = asyncio.Event()
        return self.gates[url]

    async def fetch_json(self, url):
        self.calls.append(url)
        gate = self.gates.get(url)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                if not self.stubborn:
                    raise
                await gate.wait()
        response = self.responses.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise NotFoundError(f"No fake response for {url}")
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def transport():
    return FakeTransport()
