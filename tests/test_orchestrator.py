"""Tests for the fetch orchestrator state machine."""

import asyncio

import pytest

from conftest import FakeTransport, comment_record, listing, more_record, post_record, thread_payload

from reddit_lens.models.comment import Comment, CommentThread, MoreStub
from reddit_lens.models.location import ListingMode, Location
from reddit_lens.models.state import Error, ErrorKind, Idle, Loading, Success
from reddit_lens.services.orchestrator import FetchOrchestrator
from reddit_lens.services.resolver import resolve, resolve_more_children
from reddit_lens.utils.config import ClientConfig
from reddit_lens.utils.errors import NetworkUnreachableError, NotFoundError, RateLimitedError

TEST = Location(path="/r/test")
OTHER = Location(path="/r/other")
THREAD = Location.from_url("/r/test/comments/p1/post_p1/")


def url(location):
    return resolve(location).target_url


def make(transport, debounce_ms=0):
    return FetchOrchestrator(transport.fetch_json, ClientConfig(debounce_ms=debounce_ms))


def record_states(channel):
    states = []
    channel.subscribe(states.append)
    return states


@pytest.mark.asyncio
async def test_location_change_loads_posts():
    transport = FakeTransport({url(TEST): listing([post_record("p1"), post_record("p2")])})
    orchestrator = make(transport)
    states = record_states(orchestrator.posts)

    orchestrator.set_location(TEST)
    assert isinstance(orchestrator.posts.state, Loading)
    await orchestrator.settle()

    assert isinstance(states[0], Idle)
    assert isinstance(states[1], Loading)
    final = states[-1]
    assert isinstance(final, Success)
    assert final.request_id == states[1].request_id
    assert [p.id for p in final.data] == ["p1", "p2"]
    assert transport.calls == [url(TEST)]


@pytest.mark.asyncio
async def test_duplicate_post_ids_keep_first():
    transport = FakeTransport({url(TEST): listing([
        post_record("p1", title="first"), post_record("p1", title="second"), post_record("p2")])})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    posts = orchestrator.posts.state.data
    assert [(p.id, p.title) for p in posts] == [("p1", "first"), ("p2", "Post p2")]


@pytest.mark.asyncio
async def test_superseded_response_never_overwrites_later_state():
    transport = FakeTransport({
        url(TEST): listing([post_record("a1")]),
        url(OTHER): listing([post_record("b1")]),
    }, stubborn=True)
    gate_a = transport.gate(url(TEST))
    gate_b = transport.gate(url(OTHER))
    orchestrator = make(transport)
    states = record_states(orchestrator.posts)

    orchestrator.set_location(TEST)
    task_a = orchestrator.posts.task
    # Let A reach the transport before it is superseded
    await asyncio.sleep(0)
    orchestrator.set_location(OTHER)
    # B completes first, then A
    gate_b.set()
    await orchestrator.settle()
    assert [p.id for p in orchestrator.posts.state.data] == ["b1"]
    gate_a.set()
    await task_a
    assert transport.calls == [url(TEST), url(OTHER)]

    final = orchestrator.posts.state
    assert isinstance(final, Success)
    assert [p.id for p in final.data] == ["b1"]
    assert all(not (isinstance(s, Success) and s.data[0].id == "a1") for s in states)


@pytest.mark.asyncio
async def test_superseded_request_is_cancelled():
    transport = FakeTransport({url(TEST): listing([]), url(OTHER): listing([post_record("b1")])})
    transport.gate(url(TEST))
    orchestrator = make(transport)

    orchestrator.set_location(TEST)
    first_task = orchestrator.posts.task
    orchestrator.set_location(OTHER)
    await orchestrator.settle()

    assert first_task.cancelled()
    assert [p.id for p in orchestrator.posts.state.data] == ["b1"]


@pytest.mark.asyncio
async def test_request_ids_are_monotonic():
    transport = FakeTransport({url(TEST): listing([]), url(OTHER): listing([])})
    orchestrator = make(transport)
    states = record_states(orchestrator.posts)
    for location in (TEST, OTHER, TEST):
        orchestrator.set_location(location)
    await orchestrator.settle()
    loading_ids = [s.request_id for s in states if isinstance(s, Loading)]
    assert loading_ids == sorted(loading_ids)
    assert len(set(loading_ids)) == 3


@pytest.mark.asyncio
async def test_search_is_debounced():
    searched = TEST.with_search_term("pie")
    transport = FakeTransport({url(searched): listing([post_record("p1")])})
    orchestrator = make(transport, debounce_ms=50)

    for _ in range(3):
        orchestrator.set_location(searched)
    await orchestrator.settle()

    assert transport.calls == [url(searched)]
    assert isinstance(orchestrator.posts.state, Success)


@pytest.mark.asyncio
async def test_debounce_uses_last_term():
    final = TEST.with_search_term("pie")
    transport = FakeTransport({url(final): listing([post_record("p1")])})
    orchestrator = make(transport, debounce_ms=50)

    for term in ("p", "pi", "pie"):
        orchestrator.set_location(TEST.with_search_term(term))
    await orchestrator.settle()

    assert transport.calls == [url(final)]


@pytest.mark.asyncio
async def test_plain_navigation_is_not_debounced():
    transport = FakeTransport({url(TEST): listing([]), url(OTHER): listing([])})
    orchestrator = make(transport, debounce_ms=10_000)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    assert transport.calls == [url(TEST)]


@pytest.mark.asyncio
@pytest.mark.parametrize("error, kind", [
    (NetworkUnreachableError("down"), ErrorKind.NETWORK_UNREACHABLE),
    (RateLimitedError("slow down", retry_after=2), ErrorKind.RATE_LIMITED),
    (NotFoundError("gone"), ErrorKind.NOT_FOUND),
    (RuntimeError("transport bug"), ErrorKind.NETWORK_UNREACHABLE),
])
async def test_transport_errors_are_classified(error, kind):
    transport = FakeTransport({url(TEST): error})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    state = orchestrator.posts.state
    assert isinstance(state, Error)
    assert state.kind == kind


@pytest.mark.asyncio
async def test_malformed_listing():
    transport = FakeTransport({url(TEST): {"unexpected": True}})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    assert orchestrator.posts.state.kind == ErrorKind.MALFORMED_PAYLOAD


@pytest.mark.asyncio
async def test_error_keeps_previous_success():
    transport = FakeTransport({url(TEST): listing([post_record("p1")]), url(OTHER): RateLimitedError("429")})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    orchestrator.set_location(OTHER)
    await orchestrator.settle()

    assert isinstance(orchestrator.posts.state, Error)
    assert [p.id for p in orchestrator.posts.last_success.data] == ["p1"]


@pytest.mark.asyncio
async def test_retry_reissues_last_trigger():
    transport = FakeTransport({url(TEST): NetworkUnreachableError("down")})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    assert isinstance(orchestrator.posts.state, Error)

    transport.responses[url(TEST)] = listing([post_record("p1")])
    orchestrator.retry()
    await orchestrator.settle()

    assert isinstance(orchestrator.posts.state, Success)
    assert transport.calls == [url(TEST), url(TEST)]


def test_retry_without_trigger_is_noop():
    orchestrator = make(FakeTransport())
    orchestrator.retry()
    assert isinstance(orchestrator.posts.state, Idle)


@pytest.mark.asyncio
async def test_subscriber_gets_current_state_immediately():
    transport = FakeTransport({url(TEST): listing([post_record("p1")])})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()

    received = []
    unsubscribe = orchestrator.posts.subscribe(received.append)
    assert len(received) == 1 and isinstance(received[0], Success)

    unsubscribe()
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    assert len(received) == 1


# Comment threads

def thread_responses():
    return {url(THREAD): thread_payload(post_record("p1"), [
        comment_record("c1", replies=[
            comment_record("c2", parent="t1_c1"),
            more_record("m1", parent="t1_c1", children=["c3", "c4"]),
        ]),
        comment_record("c5", replies=[more_record("_", parent="t1_c5", children=[], count=0)]),
    ])}


async def load_thread(transport):
    orchestrator = make(transport)
    orchestrator.set_location(THREAD)
    await orchestrator.settle()
    return orchestrator


@pytest.mark.asyncio
async def test_thread_location_uses_comment_channel():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)

    assert isinstance(orchestrator.posts.state, Idle)
    state = orchestrator.comments.state
    assert isinstance(state, Success)
    assert isinstance(state.data, CommentThread)
    assert state.data.post.id == "p1"
    assert [n.id for n in state.data.comments] == ["c1", "c5"]
    assert state.data.comments[1].children[0].id == "more_c5"


@pytest.mark.asyncio
async def test_thread_requires_two_part_payload():
    transport = FakeTransport({url(THREAD): listing([post_record("p1")])})
    orchestrator = await load_thread(transport)
    assert orchestrator.comments.state.kind == ErrorKind.MALFORMED_PAYLOAD


@pytest.mark.asyncio
async def test_thread_without_post_is_not_found():
    transport = FakeTransport({url(THREAD): [listing([]), listing([])]})
    orchestrator = await load_thread(transport)
    assert orchestrator.comments.state.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_expand_splices_more_children():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    more_url = resolve_more_children("t3_p1", ["c3", "c4"]).target_url
    transport.responses[more_url] = {"json": {"errors": [], "data": {"things": [
        comment_record("c3", parent="t1_c1"),
        comment_record("c4", parent="t1_c3"),
    ]}}}
    before = orchestrator.comments.state.data

    orchestrator.expand("m1")
    assert isinstance(orchestrator.comments.state, Loading)
    await orchestrator.settle()

    thread = orchestrator.comments.state.data
    c1 = thread.comments[0]
    assert [child.id for child in c1.children] == ["c2", "c3"]
    assert [child.id for child in c1.children[1].children] == ["c4"]
    assert c1.children[1].depth == 1
    assert thread.comments[1:] == before.comments[1:]
    assert transport.calls[-1] == more_url


@pytest.mark.asyncio
async def test_expand_continue_thread_stub():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    continue_url = "https://www.reddit.com/r/test/comments/p1/post_p1/c5.json"
    transport.responses[continue_url] = thread_payload(post_record("p1"), [
        comment_record("c5", replies=[comment_record("c9", parent="t1_c5")]),
    ])

    orchestrator.expand("more_c5")
    await orchestrator.settle()

    c5 = orchestrator.comments.state.data.comments[1]
    assert [n.id for n in c5.children] == ["c9"]
    assert isinstance(c5.children[0], Comment)
    assert c5.children[0].depth == 1


@pytest.mark.asyncio
async def test_expand_malformed_response():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    transport.responses[resolve_more_children("t3_p1", ["c3", "c4"]).target_url] = {"json": {}}

    orchestrator.expand("m1")
    await orchestrator.settle()

    assert orchestrator.comments.state.kind == ErrorKind.MALFORMED_PAYLOAD
    # The unexpanded tree is still available
    stub = orchestrator.comments.last_success.data.comments[0].children[1]
    assert isinstance(stub, MoreStub)


@pytest.mark.asyncio
async def test_expand_unknown_stub_is_ignored():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    state = orchestrator.comments.state
    orchestrator.expand("missing")
    assert orchestrator.comments.state is state


@pytest.mark.asyncio
async def test_navigation_supersedes_expansion():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    more_url = resolve_more_children("t3_p1", ["c3", "c4"]).target_url
    transport.responses[more_url] = {"json": {"data": {"things": []}}}
    transport.gate(more_url)

    orchestrator.expand("m1")
    orchestrator.set_location(THREAD)
    await orchestrator.settle()

    comments = orchestrator.comments.state.data.comments
    assert isinstance(comments[0].children[1], MoreStub)


@pytest.mark.asyncio
async def test_close_cancels_in_flight():
    transport = FakeTransport({url(TEST): listing([])})
    transport.gate(url(TEST))
    orchestrator = make(transport)
    orchestrator.set_location(TEST.with_listing_mode(ListingMode.NEW))
    orchestrator.set_location(TEST)
    task = orchestrator.posts.task
    await orchestrator.close()
    assert task.cancelled()
    assert orchestrator.posts.task is None
    assert isinstance(orchestrator.posts.state, Loading)


# In-flight de-duplication

@pytest.mark.asyncio
async def test_identical_in_flight_location_is_reused():
    transport = FakeTransport({url(TEST): listing([post_record("a1")])})
    gate = transport.gate(url(TEST))
    orchestrator = make(transport)
    states = record_states(orchestrator.posts)

    orchestrator.set_location(TEST)
    first_task = orchestrator.posts.task
    orchestrator.set_location(Location(path="/r/test/"))
    assert orchestrator.posts.task is first_task
    await asyncio.sleep(0)
    gate.set()
    await orchestrator.settle()

    assert transport.calls == [url(TEST)]
    assert len([s for s in states if isinstance(s, Loading)]) == 1
    assert [p.id for p in orchestrator.posts.state.data] == ["a1"]


@pytest.mark.asyncio
async def test_finished_location_is_fetched_again():
    transport = FakeTransport({url(TEST): listing([])})
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    orchestrator.set_location(TEST)
    await orchestrator.settle()
    assert transport.calls == [url(TEST), url(TEST)]


@pytest.mark.asyncio
async def test_retry_reissues_even_while_in_flight():
    transport = FakeTransport({url(TEST): listing([])})
    transport.gate(url(TEST))
    orchestrator = make(transport)
    orchestrator.set_location(TEST)
    first_task = orchestrator.posts.task
    await asyncio.sleep(0)

    orchestrator.retry()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert first_task.cancelled()
    assert transport.calls == [url(TEST), url(TEST)]
    await orchestrator.close()


# Expansion guards

@pytest.mark.asyncio
async def test_expand_ignored_while_another_thread_loads():
    second = Location.from_url("/r/test/comments/p2/post_p2/")
    responses = thread_responses()
    responses[url(second)] = thread_payload(post_record("p2"), [comment_record("d1", parent="t3_p2")])
    transport = FakeTransport(responses)
    orchestrator = await load_thread(transport)
    gate = transport.gate(url(second))

    orchestrator.set_location(second)
    loading = orchestrator.comments.state
    orchestrator.expand("m1")

    assert orchestrator.comments.state is loading
    gate.set()
    await orchestrator.settle()

    assert orchestrator.comments.state.data.post.id == "p2"
    assert resolve_more_children("t3_p1", ["c3", "c4"]).target_url not in transport.calls


@pytest.mark.asyncio
async def test_expand_ignored_after_failed_navigation_to_another_thread():
    second = Location.from_url("/r/test/comments/p2/post_p2/")
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)

    orchestrator.set_location(second)
    await orchestrator.settle()
    assert orchestrator.comments.state.kind == ErrorKind.NOT_FOUND
    failed = orchestrator.comments.state

    orchestrator.expand("m1")
    assert orchestrator.comments.state is failed


@pytest.mark.asyncio
async def test_expand_can_follow_a_failed_expansion():
    transport = FakeTransport(thread_responses())
    orchestrator = await load_thread(transport)
    more_url = resolve_more_children("t3_p1", ["c3", "c4"]).target_url
    transport.responses[more_url] = NetworkUnreachableError("down")

    orchestrator.expand("m1")
    await orchestrator.settle()
    assert isinstance(orchestrator.comments.state, Error)

    transport.responses[more_url] = {"json": {"data": {"things": [comment_record("c3", parent="t1_c1")]}}}
    orchestrator.expand("m1")
    await orchestrator.settle()
    assert [n.id for n in orchestrator.comments.state.data.comments[0].children] == ["c2", "c3"]
