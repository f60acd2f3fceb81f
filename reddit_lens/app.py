from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import Header, Footer, Button
import logging
from typing import Optional

from .components.comment_viewer import CommentContainer
from .components.post_list import PostList
from .components.search_bar import SearchBar, is_location_text
from .components.sidebar import CategorySidebar
from .models.comment import CommentThread
from .models.location import ListingMode, Location
from .models.state import FetchState, Success
from .services.category_cache import CategoryCache
from .services.orchestrator import FetchOrchestrator
from .services.reddit_service import RedditService
from .utils.config import ClientConfig, load_app_config
from .utils.errors import FetchError


class StateChanged(Message):
    """A channel published a new state."""
    def __init__(self, channel: str, state: FetchState):
        self.channel = channel
        self.state = state
        super().__init__()


class RedditLensApp(App):
    """A terminal browser for reddit listings and comment threads."""

    TITLE = "Reddit Lens"
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "retry", "Retry"),
        ("escape", "back", "Back"),
        ("/", "focus_search", "Search"),
    ]

    CSS = """
    Screen {
        background: #1a1a1a;
    }

    Header {
        background: #659287;
        color: #FFE6A9;
        text-style: bold;
    }

    Footer {
        background: #659287;
        color: #FFE6A9;
    }

    CategorySidebar {
        width: 28;
        border: solid #659287;
        padding: 0 1;
        overflow-y: auto;
    }

    .menu-title, .thread-title {
        color: #FFE6A9;
        text-style: bold;
    }

    Button {
        margin: 0;
        min-width: 16;
        border: none;
        background: transparent;
        color: #DEAA79;
    }

    Button:hover, Button:focus {
        color: #FFE6A9;
        background: transparent;
    }

    .menu-button, .thread-button, .more-button {
        width: 100%;
        height: auto;
        content-align: left middle;
    }

    .hotbar {
        height: 1;
    }

    .url-input-field {
        background: #2a2a2a;
        color: #FFE6A9;
        border: solid #659287;
    }

    PostList, CommentContainer {
        background: #1a1a1a;
        height: 1fr;
        border: solid #659287;
        scrollbar-background: #1a1a1a;
        scrollbar-color: #659287;
        padding: 0 1;
    }

    CommentContainer {
        display: none;
    }

    CommentContainer.show {
        display: block;
    }

    PostList.hidden {
        display: none;
    }

    .comment-header {
        height: 1;
    }

    .comment-body {
        padding: 0 0 1 1;
        height: auto;
        color: #ffffff;
    }

    .status {
        color: #B1C29E;
    }

    .status.error {
        color: #FF6B6B;
    }
    """

    def __init__(self, config: Optional[ClientConfig] = None, service: Optional[RedditService] = None):
        super().__init__()
        self.client_config = config or load_app_config()
        self.reddit_service = service or RedditService(self.client_config)
        self.orchestrator = FetchOrchestrator(self.reddit_service.fetch_json, self.client_config)
        self.category_cache = CategoryCache(self.reddit_service.fetch_json, self.client_config)
        self.listing_location = Location(path=self.client_config.start_path)
        self._unsubscribers = []

    def compose(self) -> ComposeResult:
        """Create child widgets for the app."""
        yield Header()
        with Horizontal():
            yield CategorySidebar(id="sidebar")
            with Vertical(id="main"):
                yield SearchBar(self.client_config.listing_modes, id="search-bar")
                yield PostList(id="posts-container")
                yield CommentContainer(id="comments-container")
        yield Footer()

    async def on_mount(self) -> None:
        """Subscribe to the published state and load the start location."""
        channels = [
            ("posts", self.orchestrator.posts),
            ("comments", self.orchestrator.comments),
            ("categories", self.category_cache.channel),
        ]
        for name, channel in channels:
            self._unsubscribers.append(
                channel.subscribe(lambda state, name=name: self.post_message(StateChanged(name, state)))
            )
        self.run_worker(self.load_categories(), exclusive=True)
        self.navigate(self.listing_location)

    async def load_categories(self) -> None:
        try:
            await self.category_cache.get()
        except FetchError as e:
            # Already published on the category channel
            logging.debug(f"Category load failed: {e.message}")

    def navigate(self, location: Location) -> None:
        """Switch the visible view and hand the location to the orchestrator."""
        comments_container = self.query_one(CommentContainer)
        posts_container = self.query_one(PostList)
        if location.is_thread:
            comments_container.thread = None
            comments_container.add_class("show")
            posts_container.add_class("hidden")
        else:
            self.listing_location = location
            comments_container.remove_class("show")
            posts_container.remove_class("hidden")
            self.update_header()
        logging.debug(f"Navigating to {location}")
        self.orchestrator.set_location(location)

    def update_header(self, title: str = None):
        """Update the app title."""
        self.title = title if title else self.TITLE

    async def on_state_changed(self, message: StateChanged) -> None:
        if message.channel == "posts":
            await self.query_one(PostList).show_state(message.state)
        elif message.channel == "comments":
            state = message.state
            if isinstance(state, Success) and isinstance(state.data, CommentThread):
                self.update_header(state.data.post.title)
            await self.query_one(CommentContainer).show_state(state)
        else:
            await self.query_one(CategorySidebar).show_state(message.state)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Dispatch button presses by id prefix."""
        button = event.button
        button_id = button.id or ""
        if button_id.startswith("category-"):
            self.navigate(Location(path=button.category.path))
        elif button_id.startswith("post-"):
            self.navigate(Location.from_url(button.post.permalink_url))
        elif button_id.startswith("more-"):
            self.orchestrator.expand(button.stub.id)
        elif button_id.startswith("mode-"):
            mode = ListingMode(button_id[5:])  # Remove "mode-" prefix
            self.navigate(self.listing_location.with_listing_mode(mode))
        elif button_id.startswith("retry-"):
            self.orchestrator.retry()

    def on_search_bar_search_changed(self, message: SearchBar.SearchChanged) -> None:
        term = message.term.strip() or None
        if term != self.listing_location.search_term:
            self.navigate(self.listing_location.with_search_term(term))

    def on_search_bar_submitted(self, message: SearchBar.Submitted) -> None:
        if is_location_text(message.text):
            self.navigate(Location.from_url(message.text))
        else:
            self.navigate(self.listing_location.with_search_term(message.text.strip()))

    def action_retry(self) -> None:
        self.orchestrator.retry()

    def action_back(self) -> None:
        """Return from a thread to the listing it was opened from."""
        comments_container = self.query_one(CommentContainer)
        if comments_container.has_class("show"):
            comments_container.remove_class("show")
            self.query_one(PostList).remove_class("hidden")
            self.update_header()

    def action_focus_search(self) -> None:
        self.query_one("#search-input").focus()

    async def on_unmount(self) -> None:
        """Clean up when app is unmounted."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        await self.orchestrator.close()
        await self.reddit_service.close()


def main() -> None:
    config = load_app_config()
    logging.basicConfig(
        filename='reddit_lens_debug.log',
        level=logging.DEBUG if config.debug_logging else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    RedditLensApp(config).run()


if __name__ == "__main__":
    main()
