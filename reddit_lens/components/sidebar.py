from textual.containers import Vertical
from textual.widgets import Button, Label
from textual.binding import Binding
from rich.text import Text

from ..models.category import Category
from ..models.state import Error, FetchState, Loading, Success


class CategoryButton(Button):
    def __init__(self, category: Category):
        super().__init__(Text(category.display_name), id=f"category-{category.id}", classes="menu-button")
        self.category = category


class CategorySidebar(Vertical):
    """Popular subreddits, loaded once from the category cache."""

    BINDINGS = [
        Binding("up", "focus_previous", "Previous", show=False),
        Binding("down", "focus_next", "Next", show=False),
    ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.buttons = []
        self.current_focus = -1

    async def show_state(self, state: FetchState) -> None:
        """Render the category channel state."""
        await self.remove_children()
        self.buttons = []
        await self.mount(Label("Subreddits", classes="menu-title"))
        if isinstance(state, Loading):
            await self.mount(Label("Loading...", classes="status"))
        elif isinstance(state, Error):
            await self.mount(Label(f"Unavailable: {state.kind.value}", classes="status error"))
        elif isinstance(state, Success):
            self.buttons = [CategoryButton(category) for category in state.data]
            await self.mount_all(self.buttons)

    def action_focus_next(self) -> None:
        """Focus the next button in the list."""
        if not self.buttons:
            return

        self.current_focus = (self.current_focus + 1) % len(self.buttons)
        self.buttons[self.current_focus].focus()

    def action_focus_previous(self) -> None:
        """Focus the previous button in the list."""
        if not self.buttons:
            return

        self.current_focus = (self.current_focus - 1) % len(self.buttons)
        self.buttons[self.current_focus].focus()
