"""pgpeek terminal UI"""

from concurrent.futures import ThreadPoolExecutor

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import DataTable, Label, ListItem, ListView, Static, TextArea

from db import POOL_MAX_SIZE, QueryResult, Session
from executor import QueryExecutor
from navigator import CatalogNavigator
from notifications import Notifier

FOCUS_ORDER = ("schemas", "tables", "columns", "results", "query")


class NameItem(ListItem):
    """List entry that remembers the catalog name it shows."""

    def __init__(self, name: str):
        super().__init__(Label(Text(name)))
        self.catalog_name = name


class PaneView:
    """Applies navigator output to the widgets. UI loop only."""

    def __init__(self, app: "PeekApp"):
        self.app = app

    def on_schemas_loaded(self, schemas: list[str]) -> None:
        self._fill_list("#schemas", schemas)

    def on_tables_loaded(self, tables: list[str]) -> None:
        self._fill_list("#tables", tables)

    def on_columns_loaded(self, columns: QueryResult) -> None:
        self._fill_table("#columns", columns)

    def on_result(self, result: QueryResult) -> None:
        self._fill_table("#results", result)

    def on_clear(self) -> None:
        for selector in ("#columns", "#results"):
            self.app.query_one(selector, DataTable).clear(columns=True)

    def show_toast(self, message: str) -> None:
        self.app.query_one("#status", Static).update(Text(message, style="yellow"))

    def show_idle(self, message: str) -> None:
        self.app.query_one("#status", Static).update(Text(message))

    def _fill_list(self, selector: str, names: list[str]) -> None:
        view = self.app.query_one(selector, ListView)
        view.clear()
        view.extend(NameItem(name) for name in names)
        if names:
            # Old items are removed asynchronously; highlight once they are gone
            view.call_after_refresh(setattr, view, "index", 0)

    def _fill_table(self, selector: str, result: QueryResult) -> None:
        table = self.app.query_one(selector, DataTable)
        table.clear(columns=True)
        # Text cells, so values are never parsed as markup
        table.add_columns(*(Text(header) for header in result.headers))
        table.add_rows([Text(cell) for cell in row] for row in result.rows)
        table.scroll_home(animate=False)


class PeekApp(App):
    """Schemas and tables on the left; columns, results, query and status on the right."""

    TITLE = "pgpeek"

    CSS = """
    #sidebar {
        width: 35;
    }

    #schemas, #tables {
        height: 1fr;
        border: round $accent;
    }

    #columns {
        height: 1fr;
        border: round $primary;
    }

    #results {
        height: 3fr;
        border: round $primary;
    }

    #query {
        height: 5;
        border: round $secondary;
    }

    #status {
        height: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("f5", "run_query", "Run", priority=True),
        Binding("tab", "cycle_focus", "Cycle Focus", priority=True),
        Binding("q,Q", "quit", "Quit"),
        Binding("r,R", "refresh", "Refresh"),
    ]

    def __init__(self, session: Session):
        super().__init__()
        self.session = session
        self.panes = PaneView(self)
        self.runner = ThreadPoolExecutor(max_workers=POOL_MAX_SIZE * 2,
                                         thread_name_prefix="pgpeek-query")
        self.notifier = Notifier(self.panes.show_toast, self.panes.show_idle,
                                 dispatch=self.call_from_thread)
        self.executor = QueryExecutor(session, self.runner, self.call_from_thread, self.notifier)
        self.navigator = CatalogNavigator(self.executor, self.panes, session.preview_limit)

    def compose(self) -> ComposeResult:
        with Horizontal():
            with Vertical(id="sidebar"):
                yield ListView(id="schemas")
                yield ListView(id="tables")
            with Vertical():
                yield DataTable(id="columns")
                yield DataTable(id="results")
                yield TextArea(id="query")
                yield Static(id="status")

    def on_mount(self) -> None:
        titles = {
            "schemas": "Schemas",
            "tables": "Tables",
            "columns": "Columns",
            "results": "Results / Preview",
            "query": "SQL Query (F5 to run)",
        }
        for widget_id, title in titles.items():
            self.query_one(f"#{widget_id}").border_title = title
        self.query_one("#schemas").focus()
        self.notifier.show_idle()
        self.navigator.load_schemas()

    def on_unmount(self) -> None:
        self.notifier.shutdown()
        # Worker threads are joined at exit, so running queries must end now
        self.session.cancel_all()
        self.runner.shutdown(wait=False, cancel_futures=True)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if not isinstance(event.item, NameItem):
            return
        if event.list_view.id == "schemas":
            self.navigator.select_schema(event.item.catalog_name)
        elif event.list_view.id == "tables":
            self.navigator.select_table(event.item.catalog_name)

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        # Plain letter keys belong to the editor while it has focus
        if action in ("quit", "refresh") and isinstance(self.focused, TextArea):
            return False
        return True

    def action_run_query(self) -> None:
        self.navigator.run_adhoc(self.query_one("#query", TextArea).text)

    def action_refresh(self) -> None:
        self.navigator.refresh()

    def action_cycle_focus(self) -> None:
        current = self.focused.id if self.focused is not None else None
        if current in FOCUS_ORDER:
            target = FOCUS_ORDER[(FOCUS_ORDER.index(current) + 1) % len(FOCUS_ORDER)]
        else:
            target = FOCUS_ORDER[0]
        self.query_one(f"#{target}").focus()
