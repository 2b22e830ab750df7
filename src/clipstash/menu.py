from collections.abc import Callable
from dataclasses import dataclass

from clipstash import __version__
from clipstash.config import PREVIEW_LENGTH
from clipstash.models import ClipboardEntry, ItemType, Tag, display_title
from clipstash.utils import truncate_text, uri_to_path

ENTRY_KEY_PREFIX = "clipstash_entry_"
ICON_SIZE = (32, 32)

TAG_MARKERS = {
    Tag.BLUE: "🔵",
    Tag.TEAL: "🩵",
    Tag.GREEN: "🟢",
    Tag.YELLOW: "🟡",
    Tag.ORANGE: "🟠",
    Tag.RED: "🔴",
    Tag.PINK: "🩷",
    Tag.PURPLE: "🟣",
    Tag.SLATE: "⚫",
}


@dataclass
class MenuItemSpec:
    """Specification for a menu item, separating logic from rumps rendering."""

    title: str
    callback: Callable | None = None
    icon: str | None = None
    dimensions: tuple[int, int] | None = None
    template: bool | None = None
    entry_id: int | None = None
    is_submenu: bool = False
    children: list["MenuItemSpec | None"] | None = None


@dataclass
class MenuActions:
    on_entry: Callable
    on_search: Callable
    on_clear: Callable
    on_unpin_all: Callable
    on_show_all: Callable
    on_quit: Callable


def entry_key(entry_id: int) -> str:
    return f"{ENTRY_KEY_PREFIX}{entry_id}"


def entry_preview(entry: ClipboardEntry, max_len: int = PREVIEW_LENGTH) -> str:
    if entry.title:
        return truncate_text(entry.title, max_len)

    if entry.type == ItemType.IMAGE:
        return f"[Image: {uri_to_path(entry.content).name}]"
    if entry.type == ItemType.FILE:
        return truncate_text(uri_to_path(entry.content).name, max_len)
    if entry.type == ItemType.FILES:
        paths = entry.content.split("\n")
        return truncate_text(f"{len(paths)} files: {uri_to_path(paths[0]).name}, ...", max_len)
    if entry.type == ItemType.CODE:
        return truncate_text(f"[{display_title(entry)}] {entry.content}", max_len)
    return truncate_text(entry.content, max_len)


def entry_label(entry: ClipboardEntry, max_len: int = PREVIEW_LENGTH) -> str:
    label = entry_preview(entry, max_len)
    if entry.tag is not None:
        label = f"{TAG_MARKERS[entry.tag]} {label}"
    return label


def entry_spec(entry: ClipboardEntry, on_entry: Callable) -> MenuItemSpec:
    spec = MenuItemSpec(title=entry_label(entry), callback=on_entry, entry_id=entry.id)
    if entry.type == ItemType.IMAGE:
        path = uri_to_path(entry.content)
        if path.exists():
            spec.icon = str(path)
            spec.dimensions = ICON_SIZE
            spec.template = False
    return spec


def history_specs(entries: list[ClipboardEntry], actions: MenuActions, display_count: int) -> list[MenuItemSpec | None]:
    """Menu for the full history: pinned submenu first, then the most recent entries."""
    specs: list[MenuItemSpec | None] = [
        MenuItemSpec(f"clipstash v{__version__} - Clipboard History"),
        None,  # separator
        MenuItemSpec("Search...", callback=actions.on_search),
        None,  # separator
    ]

    pinned = [e for e in entries if e.pinned]
    if pinned:
        children: list[MenuItemSpec | None] = [entry_spec(e, actions.on_entry) for e in pinned]
        children.append(None)  # separator
        children.append(MenuItemSpec("Unpin All", callback=actions.on_unpin_all))
        specs.append(MenuItemSpec("📌 Pinned", is_submenu=True, children=children))
        specs.append(None)  # separator

    recent = [e for e in entries if not e.pinned][:display_count]
    if not recent and not pinned:
        specs.append(MenuItemSpec("(No clipboard history)"))
    else:
        specs.extend(entry_spec(e, actions.on_entry) for e in recent)

    specs.extend([
        None,  # separator
        MenuItemSpec("Clear History", callback=actions.on_clear),
        None,  # separator
        MenuItemSpec("Quit clipstash", callback=actions.on_quit),
    ])
    return specs


def search_specs(query: str, results: list[ClipboardEntry], actions: MenuActions) -> list[MenuItemSpec | None]:
    specs: list[MenuItemSpec | None] = [
        MenuItemSpec(f'Search: "{query}" ({len(results)} results)'),
        None,
        MenuItemSpec("Show All", callback=actions.on_show_all),
        None,
    ]
    specs.extend(entry_spec(e, actions.on_entry) for e in results)
    specs.extend([
        None,
        MenuItemSpec("Quit clipstash", callback=actions.on_quit),
    ])
    return specs
