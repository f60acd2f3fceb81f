from textual.app import ComposeResult
from textual.containers import ScrollableContainer
from textual.widgets import Static, Label, Button
from rich.text import Text
from datetime import datetime
from typing import Iterator, Sequence

from ..models.comment import Comment, CommentNode, CommentThread, MoreStub
from ..models.state import Error, FetchState, Loading, Success


def format_timestamp(timestamp: int) -> str:
    """Convert Unix timestamp to human readable format."""
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def walk(nodes: Sequence[CommentNode]) -> Iterator[CommentNode]:
    """Yield nodes in display order (each comment before its replies)."""
    for node in nodes:
        yield node
        if isinstance(node, Comment):
            yield from walk(node.children)


def more_label(stub: MoreStub) -> str:
    indent = "  " * stub.depth
    if stub.count:
        return f"{indent}↓ load {stub.count} more"
    return f"{indent}→ continue this thread"


class CommentWidget(Static):
    """A widget to display a single comment."""

    def __init__(self, comment: Comment):
        super().__init__()
        self.comment = comment

    def compose(self) -> ComposeResult:
        """Create child widgets for the comment."""
        comment = self.comment
        indent = "  " * comment.depth
        arrow = ("→ ", "#DEAA79") if comment.depth > 0 else ""

        header = Text.assemble(
            indent, arrow,
            (comment.author, "#FFE6A9"), " • ",
            (f"{comment.score} points", "#B1C29E"), " • ",
            (format_timestamp(comment.created_at_epoch_seconds), "#659287"),
        )
        if comment.edited_at_epoch_seconds:
            header.append(" • edited", "#659287")
        yield Label(header, classes="comment-header")
        yield Label(Text(f"{indent}{comment.body_markdown}"), classes="comment-body")


class MoreButton(Button):
    """Expands a continuation stub when pressed."""

    def __init__(self, stub: MoreStub):
        super().__init__(Text(more_label(stub)), id=f"more-{stub.id}", classes="more-button")
        self.stub = stub


class CommentContainer(ScrollableContainer):
    """The post header followed by its comment tree."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.thread = None

    async def show_state(self, state: FetchState) -> None:
        """Render the comment channel state."""
        await self.remove_children()
        if isinstance(state, Loading):
            # Keep showing the previous thread while an expansion loads
            if self.thread is not None:
                await self.mount_all(self._thread_widgets(self.thread))
            await self.mount(Label("Loading comments...", classes="status"))
        elif isinstance(state, Error):
            if self.thread is not None:
                await self.mount_all(self._thread_widgets(self.thread))
            await self.mount(Label(f"Error loading comments: {state.kind.value}", classes="status error"))
            await self.mount(Button("Retry", id="retry-comments", classes="retry-button"))
        elif isinstance(state, Success):
            self.thread = state.data
            await self.mount_all(self._thread_widgets(self.thread))
            self.scroll_home(animate=False)

    def _thread_widgets(self, thread: CommentThread):
        post = thread.post
        widgets = [
            Label(Text(post.title, "#FFE6A9"), classes="thread-title"),
            Label(Text.assemble((f"{post.score} points", "#B1C29E"), f" • {post.author} • {post.subreddit}"),
                  classes="comment-header"),
        ]
        if post.body_markdown:
            widgets.append(Label(Text(post.body_markdown), classes="comment-body"))
        for node in walk(thread.comments):
            if isinstance(node, MoreStub):
                widgets.append(MoreButton(node))
            else:
                widgets.append(CommentWidget(node))
        return widgets
