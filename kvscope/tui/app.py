#!/usr/bin/env python3
"""
kvscope TUI - interactive explorer for nested data.

Launch with: kvscope explore FILE
"""

from textual.app import App
from textual.binding import Binding

from kvscope.session import Explorer
from kvscope.tui.screens.explorer import ExplorerScreen
from kvscope.tui.theme import GLOBAL_CSS


class KvscopeApp(App):
    """Main kvscope TUI application: a single explorer screen."""

    TITLE = "kvscope"
    CSS = GLOBAL_CSS

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(self, explorer: Explorer, title: str | None = None):
        super().__init__()
        self.explorer = explorer
        if title:
            self.sub_title = title

    def on_mount(self) -> None:
        self.push_screen(ExplorerScreen(self.explorer))
