import asyncio
import logging

import rumps

from clipstash.config import HISTORY_CHECK_INTERVAL, MENU_DISPLAY_COUNT, POLL_INTERVAL, Settings
from clipstash.menu import MenuActions, MenuItemSpec, entry_key, history_specs, search_specs
from clipstash.models import ClipboardEntry, ClipboardHistory, SearchQuery
from clipstash.monitor import ClipboardMonitor
from clipstash.pasteboard import PasteboardSource
from clipstash.tracker import EntryTracker
from clipstash.utils import ensure_dirs

logger = logging.getLogger(__name__)


class ClipstashApp(rumps.App):
    def __init__(self, settings: Settings | None = None):
        super().__init__("clipstash", title="📋", quit_button=None)
        self._settings = settings or Settings.from_env()
        self._init_app()

    def _init_app(self) -> None:
        """Initialize app components. Separated for testability."""
        ensure_dirs()
        # rumps owns the main thread; each tick drives async work to completion on this loop
        self._loop = asyncio.new_event_loop()
        self._tracker = EntryTracker(self._settings, on_warning=self._on_warning)
        self._source = PasteboardSource()
        self._monitor = ClipboardMonitor(self._tracker, self._source, self._settings, on_change=self._refresh_menu)
        self._entry_ids: dict[str, int] = {}
        self._actions = MenuActions(
            on_entry=self._on_entry_click,
            on_search=self._on_search,
            on_clear=self._on_clear,
            on_unpin_all=self._on_unpin_all,
            on_show_all=lambda _: self._refresh_menu(),
            on_quit=self._on_quit,
        )
        self._run(self._tracker.init())
        self._history_timer = rumps.Timer(self._check_history, HISTORY_CHECK_INTERVAL)
        self._history_timer.start()
        self._build_menu()

    def _run(self, coro):
        return self._loop.run_until_complete(coro)

    def _build_menu(self) -> None:
        specs = history_specs(self._tracker.entries(), self._actions, MENU_DISPLAY_COUNT)
        self._render_menu_specs(specs)

    def _render_menu_specs(self, specs: list[MenuItemSpec | None]) -> None:
        """Render menu item specifications to actual rumps MenuItems."""
        self.menu.clear()
        self._entry_ids.clear()
        self.menu = [self._render_single_spec(spec) for spec in specs]

    def _render_single_spec(self, spec: MenuItemSpec | None) -> rumps.MenuItem | None:
        if spec is None:
            return None

        if spec.is_submenu and spec.children:
            submenu = rumps.MenuItem(spec.title)
            for child in spec.children:
                submenu.add(self._render_single_spec(child))
            return submenu

        kwargs = {"callback": spec.callback}
        if spec.icon:
            kwargs["icon"] = spec.icon
        if spec.dimensions:
            kwargs["dimensions"] = spec.dimensions
        if spec.template is not None:
            kwargs["template"] = spec.template

        item = rumps.MenuItem(spec.title, **kwargs)

        if spec.entry_id is not None:
            key = entry_key(spec.entry_id)
            item._id = key
            self._entry_ids[key] = spec.entry_id

        return item

    def _refresh_menu(self) -> None:
        self._build_menu()

    @rumps.timer(POLL_INTERVAL)
    def _poll_clipboard(self, _sender) -> None:
        self._run(self._source.poll())

    def _check_history(self, _sender) -> None:
        if self._tracker.check_oldest():
            self._run(self._tracker.delete_oldest())
            self._refresh_menu()

    def _on_warning(self, title: str, body: str) -> None:
        rumps.notification("clipstash", title, body, sound=False)

    def _entry_for(self, sender) -> ClipboardEntry | None:
        entry_id = self._entry_ids.get(getattr(sender, "_id", ""))
        if entry_id is None:
            return None
        return self._tracker.get(entry_id)

    def _on_entry_click(self, sender) -> None:
        entry = self._entry_for(sender)
        if entry is None:
            return

        # Option-click toggles the pin instead of copying
        try:
            from AppKit import NSAlternateKeyMask, NSEvent

            if NSEvent.modifierFlags() & NSAlternateKeyMask:
                self._on_pin_toggle(entry)
                return
        except ImportError:
            logger.warning("Cannot read keyboard modifiers")

        if self._run(self._monitor.paste_entry(entry)):
            self._refresh_menu()
            rumps.notification("clipstash", "", "Copied to clipboard", sound=False)
        else:
            rumps.notification("clipstash", "", "Content is no longer available", sound=False)

    def _on_pin_toggle(self, entry: ClipboardEntry) -> None:
        self._run(self._tracker.set_pinned(entry, not entry.pinned))
        rumps.notification("clipstash", "", "Pinned" if entry.pinned else "Unpinned", sound=False)
        self._refresh_menu()

    def _on_unpin_all(self, _sender) -> None:
        for entry in self._tracker.search(SearchQuery(pinned=True)):
            self._run(self._tracker.set_pinned(entry, False))
        self._refresh_menu()

    def _on_search(self, _sender) -> None:
        response = rumps.Window(
            message="Search clipboard history:",
            title="clipstash Search",
            default_text="",
            ok="Search",
            cancel="Cancel",
            dimensions=(300, 24),
        ).run()

        if response.clicked and response.text.strip():
            query = response.text.strip()
            results = self._tracker.search(SearchQuery(query=query))[:MENU_DISPLAY_COUNT]

            if not results:
                rumps.alert("clipstash Search", f'No results for "{query}"')
                return

            self._render_menu_specs(search_specs(query, results, self._actions))

    def _on_clear(self, _sender) -> None:
        if rumps.alert("clipstash", "Clear clipboard history? Pinned and tagged items are kept.", ok="Clear", cancel="Cancel"):
            self._run(self._tracker.clear(ClipboardHistory.KEEP_PINNED_AND_TAGGED))
            self._refresh_menu()

    def _on_quit(self, _sender) -> None:
        self._history_timer.stop()
        self._run(self._tracker.destroy())
        self._loop.close()
        rumps.quit_application()
