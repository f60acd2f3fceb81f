from textual.app import ComposeResult
from textual.message import Message
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input
from textual.binding import Binding


def is_location_text(text: str) -> bool:
    """True when the input names a path or reddit URL rather than a search term."""
    text = text.strip()
    return text.startswith('/') or 'reddit.com' in text


class SearchBar(Vertical):
    """Search/location input with the listing-mode hot-bar."""

    BINDINGS = [
        Binding("escape", "clear", "Clear", show=False)
    ]

    def __init__(self, listing_modes, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.listing_modes = listing_modes

    def compose(self) -> ComposeResult:
        """Create the input field and mode buttons."""
        yield Input(placeholder="Search, or enter /r/... or a reddit URL", id="search-input",
                    classes="url-input-field")
        with Horizontal(classes="hotbar"):
            for mode in self.listing_modes:
                yield Button(mode.capitalize(), id=f"mode-{mode}", classes="mode-button")

    def action_clear(self) -> None:
        self.query_one("#search-input", Input).value = ""

    def on_input_changed(self, event: Input.Changed) -> None:
        """Live search; the orchestrator debounces these."""
        event.stop()
        if not is_location_text(event.value):
            self.post_message(self.SearchChanged(event.value))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if event.value.strip():
            self.post_message(self.Submitted(event.value))

    class SearchChanged(Message):
        """Message sent while a search term is typed."""
        def __init__(self, term: str):
            self.term = term
            super().__init__()

    class Submitted(Message):
        """Message sent when a search term or location is committed."""
        def __init__(self, text: str):
            self.text = text
            super().__init__()
