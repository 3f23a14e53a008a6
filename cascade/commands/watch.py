"""
cascade watch - Live planning tree.

Interactive TUI over the planning engine. Polls the plans directory and the
repository metadata on an interval; the engine decides when the tree is
redrawn.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, Static, Tree
from textual.widgets.tree import TreeNode

from cascade.commands.show import format_description, format_item_label, group_label
from cascade.lib.config import EngineConfig
from cascade.lib.types import WorkItem
from cascade.lib.watcher import ChangePoller, RepositoryWatcher
from cascade.tree.grouping import COMPLETE_TREE, ViewMode, root_keys
from cascade.tree.hierarchy import HierarchyNode, find_node
from cascade.tree.progress import ProgressInfo
from cascade.workflow.engine import PlanningEngine
from cascade.workflow.refresh import RefreshTarget
from cascade.workflow.scheduler import AsyncioScheduler

logger = logging.getLogger(__name__)


def format_node_markup(item: WorkItem, progress: Optional[ProgressInfo]) -> str:
    """Rich markup for one tree row; titles are escaped."""
    label = escape(format_item_label(item))
    description = escape(format_description(item, progress))
    return f"[bold]{label}[/bold]  [dim]{description}[/dim]"


def _action_bar(view_mode: ViewMode, show_archived: bool) -> str:
    view = "hierarchy" if view_mode == ViewMode.HIERARCHY else "status"
    archived = "shown" if show_archived else "hidden"
    actions = ["[r]efresh", f"[v]iew: {view}", f"[a]rchived: {archived}", "[q]uit"]
    return escape(" | ".join(actions))


class WatchApp(App):
    """Main watch TUI application."""

    CSS = """
    #plan-tree {
        height: 1fr;
        padding: 0 1;
    }

    #action-bar {
        dock: bottom;
        height: 1;
        background: $surface;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("r", "refresh", "Refresh", show=False),
        Binding("v", "toggle_view", "View", show=False),
        Binding("a", "toggle_archived", "Archived", show=False),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        workspace: Path,
        config: EngineConfig,
        view_mode: ViewMode = ViewMode.STATUS,
        show_archived: bool = False,
    ) -> None:
        super().__init__()
        self.workspace = workspace
        self.config = config
        self.view_mode = view_mode
        self.show_archived = show_archived

        self.engine = PlanningEngine(workspace, AsyncioScheduler(), self.on_engine_redraw, config)
        repository = RepositoryWatcher(workspace)
        if not repository.available:
            self.engine.detector.set_enabled(False)
        self.poller = ChangePoller(
            self.engine.plans_dir,
            repository,
            self.engine.debouncer,
            self.engine.handle_repository_signal,
        )

        # item id -> tree rows showing it
        self._rows: dict[str, list[TreeNode]] = {}

    def compose(self) -> ComposeResult:
        yield Header()
        tree: Tree[HierarchyNode] = Tree("Planning", id="plan-tree")
        tree.show_root = False
        yield tree
        yield Static(id="action-bar")
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"cascade watch: {self.workspace.name}"
        self.rebuild_tree()
        self.set_interval(self.config.poll_interval_ms / 1000, self.poller.poll)

    def on_unmount(self) -> None:
        self.engine.dispose()

    def on_engine_redraw(self, target: RefreshTarget) -> None:
        if target is None or not self.update_rows(target):
            self.rebuild_tree()

    def _add_nodes(self, parent: TreeNode, nodes: list[HierarchyNode]) -> None:
        for node in nodes:
            markup = format_node_markup(node.item, self.engine.get_progress(node))
            children = self.engine.get_children(node)
            if children:
                row = parent.add(markup, data=node, expand=True)
                self._add_nodes(row, children)
            else:
                row = parent.add_leaf(markup, data=node)
            self._rows.setdefault(node.item.id, []).append(row)

    def rebuild_tree(self) -> None:
        """Redraw every row from the engine."""
        tree = self.query_one("#plan-tree", Tree)
        tree.clear()
        self._rows = {}

        for key in root_keys(self.view_mode, self.show_archived):
            forest = self.engine.get_roots(key)
            if self.view_mode == ViewMode.STATUS:
                group = tree.root.add(escape(group_label(key, forest)), expand=bool(forest))
                self._add_nodes(group, forest)
            else:
                self._add_nodes(tree.root, forest)

        self.query_one("#action-bar", Static).update(_action_bar(self.view_mode, self.show_archived))
        self.sub_title = f"{len(self.engine.cache.get_items())} items"

    def update_rows(self, item_id: str) -> bool:
        """Relabel the rows showing one item. False when a full rebuild is needed."""
        rows = self._rows.get(item_id)
        node = find_node(self.engine.get_roots(COMPLETE_TREE), item_id)
        if not rows or node is None:
            return False

        markup = format_node_markup(node.item, self.engine.get_progress(node))
        for row in rows:
            row.set_label(markup)
        return True

    def action_refresh(self) -> None:
        self.engine.refresh_now()
        self.notify("Refreshed", severity="information")

    def action_toggle_view(self) -> None:
        self.view_mode = ViewMode.HIERARCHY if self.view_mode == ViewMode.STATUS else ViewMode.STATUS
        self.rebuild_tree()

    def action_toggle_archived(self) -> None:
        self.show_archived = not self.show_archived
        self.rebuild_tree()


def cmd_watch(args, workspace: Path, config: EngineConfig) -> int:
    """Watch the planning tree."""
    plans_dir = workspace / config.plans_dir
    if not plans_dir.is_dir():
        print(f"ERROR: Plans directory not found: {plans_dir}")
        return 2

    app = WatchApp(workspace, config, ViewMode(args.view), args.archived)
    app.run()
    return 0
