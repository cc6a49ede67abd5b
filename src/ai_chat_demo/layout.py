"""
Layout shell: header, drawer toggle and a navigation list built from the
menu metadata that views register with the ``menu`` decorator.

Pages are Jinja2 templates extending ``layout.html``.
"""

from pathlib import Path
from typing import Callable, List, NamedTuple

from fastapi.templating import Jinja2Templates

APP_TITLE = "Python AI Demo App"

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


class MenuEntry(NamedTuple):
    title: str
    path: str
    order: float


_menu_entries: List[MenuEntry] = []


def menu(title: str, path: str, order: float = float("inf")) -> Callable:
    """Register the decorated view in the navigation drawer."""

    def decorator(view: Callable) -> Callable:
        _menu_entries.append(MenuEntry(title, path, order))
        return view

    return decorator


def menu_entries() -> List[MenuEntry]:
    """Registered menu entries, ordered by (order, title)."""
    return sorted(_menu_entries, key=lambda entry: (entry.order, entry.title))


def layout_context(page_title: str, active_path: str = "") -> dict:
    """Template context shared by every page rendered inside the layout."""
    return {
        "page_title": page_title,
        "app_title": APP_TITLE,
        "menu_entries": menu_entries(),
        "active_path": active_path,
    }
