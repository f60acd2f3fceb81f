from textual.containers import ScrollableContainer
from textual.widgets import Label, Button
from rich.text import Text

from ..models.post import Post
from ..models.state import Error, FetchState, Loading, Success

MEDIA_TAGS = {"image": "[img]", "video": "[video]", "link": "[link]", "none": ""}


def post_label(post: Post) -> Text:
    tag = MEDIA_TAGS.get(post.media.kind, "")
    title = f"{tag} {post.title}" if tag else post.title
    return Text(f"{post.score:>6} • {title} ({post.subreddit}, {post.num_comments} comments)")


class PostButton(Button):
    """Opens a post's comment thread when pressed."""

    def __init__(self, post: Post):
        super().__init__(post_label(post), id=f"post-{post.id}", classes="thread-button")
        self.post = post


class PostList(ScrollableContainer):
    """Posts for the current location."""

    async def show_state(self, state: FetchState) -> None:
        """Render the post channel state."""
        await self.remove_children()
        if isinstance(state, Loading):
            await self.mount(Label("Loading posts...", classes="status"))
        elif isinstance(state, Error):
            await self.mount(Label(f"Error loading posts: {state.kind.value}", classes="status error"))
            await self.mount(Button("Retry", id="retry-posts", classes="retry-button"))
        elif isinstance(state, Success):
            if not state.data:
                await self.mount(Label("No posts found", classes="status"))
            await self.mount_all([PostButton(post) for post in state.data if post.id])
            self.scroll_home(animate=False)
