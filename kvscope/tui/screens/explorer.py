"""
Explorer Screen - expression bar, child table, suggestions and status.

Maps to: kvscope explore FILE
"""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Input, Static

from kvscope.search import Hit, SearchResults
from kvscope.session import Explorer, StatusResult

MODE_EXPR = "expr"
MODE_SEARCH = "search"
MODE_FILTER = "filter"

_PLACEHOLDERS = {
    MODE_EXPR: "path or expression, e.g. _.items[0] or _.items.size()",
    MODE_SEARCH: "search keys and values below the current path",
    MODE_FILTER: "filter keys by prefix",
}


class ExplorerScreen(Screen):
    """Single screen driving an :class:`Explorer`."""

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
        Binding("ctrl+d", "decode", "Decode", priority=True),
        Binding("ctrl+f", "search_mode", "Search", priority=True),
        Binding("ctrl+t", "filter_mode", "Filter"),
        Binding("ctrl+a", "accept", "Accept", priority=True),
        Binding("tab", "complete", "Complete", priority=True),
        Binding("ctrl+q", "quit_app", "Quit"),
    ]

    def __init__(self, explorer: Explorer):
        super().__init__()
        self.explorer = explorer
        self.mode = MODE_EXPR
        self._row_keys: list = []
        self._preview: SearchResults | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder=_PLACEHOLDERS[MODE_EXPR], id="expr")
        yield DataTable(id="nodes", cursor_type="row")
        yield Static("", id="suggestions", classes="suggestion-line")
        yield Static("", id="status", classes="status-line")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#nodes", DataTable)
        table.add_columns("Key", "Type", "Value")
        self.refresh_view()

    # -- rendering ---------------------------------------------------------

    def refresh_view(self, status: StatusResult | None = None) -> None:
        table = self.query_one("#nodes", DataTable)
        table.clear()
        self._row_keys = []
        search = self.explorer.search
        if search.active or self._preview is not None:
            hits = search.hits if search.active else self._preview.hits
            for hit in hits:
                table.add_row(Text(str(hit.full_path)), "hit", Text(str(hit.value)))
                self._row_keys.append(hit)
        else:
            allowed = None
            if self.mode == MODE_FILTER and search.filter_prefix:
                allowed = set(self.explorer.filter_keys(search.filter_prefix))
            for row in self.explorer.rows():
                if allowed is not None and row.key not in allowed:
                    continue
                table.add_row(Text(row.label), row.type_tag, Text(row.preview))
                self._row_keys.append(row.key)
        self.show_status(status)

    def show_status(self, status: StatusResult | None = None) -> None:
        widget = self.query_one("#status", Static)
        parts = [self.explorer.path_text, self.explorer.expr_state.result_type]
        badge = self.explorer.decode_badge
        if badge:
            parts.append(f"[b]{badge}[/b]")
        elif self.explorer.decode_hint:
            parts.append("ctrl+d to decode")
        if status is not None and status.message:
            parts.append(status.message)
        widget.set_class(status is not None and not status.ok, "status-error")
        widget.update("  |  ".join(p for p in parts if p))

    def show_suggestions(self, text: str) -> None:
        widget = self.query_one("#suggestions", Static)
        if self.mode != MODE_EXPR or not text:
            widget.update("")
            return
        suggestions = self.explorer.suggestions(text)
        if not suggestions:
            widget.update("")
            return
        head = "  ".join(s.label for s in suggestions[:8])
        widget.update(f"{head}\n[dim]{suggestions[0].help_text}[/dim]")

    # -- input -------------------------------------------------------------

    def _set_mode(self, mode: str) -> None:
        self.mode = mode
        self._preview = None
        expr = self.query_one("#expr", Input)
        expr.placeholder = _PLACEHOLDERS[mode]
        expr.value = ""
        expr.focus()

    def on_input_changed(self, event: Input.Changed) -> None:
        value = event.value
        if self.mode == MODE_EXPR:
            self.show_suggestions(value)
        elif self.mode == MODE_SEARCH:
            gate = self.explorer.debounce
            ticket = gate.schedule(value)
            self.set_timer(gate.delay, lambda: self._debounced_search(ticket))
        elif self.mode == MODE_FILTER:
            self.explorer.search.set_filter(value)
            self.refresh_view()

    def _debounced_search(self, ticket: int) -> None:
        current = self.query_one("#expr", Input).value
        if not self.explorer.debounce.should_fire(ticket, current):
            return
        # Typing only previews; Enter commits the search.
        self._preview = self.explorer.preview_search(current) if current.strip() else None
        if self._preview is None:
            self.refresh_view()
            return
        self.refresh_view(StatusResult.success(f"{len(self._preview)} match(es), enter to search"))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        if self.mode == MODE_SEARCH:
            self.explorer.debounce.cancel()
            self._preview = None
            status = self.explorer.run_search(value)
        elif self.mode == MODE_FILTER:
            matches = self.explorer.filter_keys(value)
            status = self.explorer.drill(matches[0]) if matches else StatusResult.failure("no matching key")
            self._set_mode(MODE_EXPR)
        else:
            status = self.explorer.goto(value) if value else StatusResult.success()
        self.refresh_view(status)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        index = event.cursor_row
        if index >= len(self._row_keys):
            return
        target = self._row_keys[index]
        if isinstance(target, Hit):
            if not self.explorer.search.active and self._preview is not None:
                self.explorer.search.commit(self._preview)
                self._preview = None
            status = self.explorer.open_hit(target)
        else:
            status = self.explorer.drill(target)
        self.refresh_view(status)

    # -- actions -----------------------------------------------------------

    def action_go_back(self) -> None:
        if self.mode != MODE_EXPR:
            self._set_mode(MODE_EXPR)
            self.explorer.search.set_filter("")
        self.refresh_view(self.explorer.back())

    def action_decode(self) -> None:
        self.refresh_view(self.explorer.decode())

    def action_search_mode(self) -> None:
        self._set_mode(MODE_SEARCH)

    def action_filter_mode(self) -> None:
        self._set_mode(MODE_FILTER)

    def action_accept(self) -> None:
        self.refresh_view(self.explorer.accept())

    def action_complete(self) -> None:
        if self.mode != MODE_EXPR:
            return
        expr = self.query_one("#expr", Input)
        suggestions = self.explorer.suggestions(expr.value)
        if not suggestions:
            return
        expr.value = self.explorer.apply_suggestion(expr.value, suggestions[0])
        expr.cursor_position = len(expr.value)

    def action_quit_app(self) -> None:
        self.app.exit()
