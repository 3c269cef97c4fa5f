"""Schema -> table -> column browsing state"""

from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Optional, Protocol

from loguru import logger

from db import (
    CATALOG_TIMEOUT,
    COLUMNS_SQL,
    QUERY_TIMEOUT,
    SCHEMAS_SQL,
    TABLES_SQL,
    QueryResult,
    is_system_schema,
    preview_query,
)
from executor import QueryExecutor

COLUMN_HEADERS = ("Column", "Type", "Nullable")


class NavState(Enum):
    NO_SCHEMA_SELECTED = "no_schema_selected"
    SCHEMA_SELECTED = "schema_selected"
    TABLE_SELECTED = "table_selected"


class CatalogView(Protocol):
    """Display slots the navigator writes to. Called on the UI loop only."""

    def on_schemas_loaded(self, schemas: list[str]) -> None: ...

    def on_tables_loaded(self, tables: list[str]) -> None: ...

    def on_columns_loaded(self, columns: QueryResult) -> None: ...

    def on_result(self, result: QueryResult) -> None: ...

    def on_clear(self) -> None: ...


@dataclass
class CatalogSelection:
    current_schema: str = ""
    current_table: str = ""
    tables: list[str] = field(default_factory=list)  # last loaded for current_schema

    @property
    def state(self) -> NavState:
        if not self.current_schema:
            return NavState.NO_SCHEMA_SELECTED
        if not self.current_table:
            return NavState.SCHEMA_SELECTED
        return NavState.TABLE_SELECTED


class CatalogNavigator:
    """
    Drives catalog queries from user selections.

    The selection is only changed here and only on the UI loop: either
    directly by a select_* call, or by a completion the executor dispatched
    back. Completions issued for a schema or table that is no longer
    selected are dropped.
    """

    def __init__(self, executor: QueryExecutor, view: CatalogView, preview_limit: int,
                 selection: Optional[CatalogSelection] = None):
        self.executor = executor
        self.view = view
        self.preview_limit = preview_limit
        self.selection = selection if selection is not None else CatalogSelection()
        self.schemas: list[str] = []

    @property
    def state(self) -> NavState:
        return self.selection.state

    def load_schemas(self, refreshing: bool = False) -> Future:
        """
        Load the schema list and select the first schema. With `refreshing`
        the reload confirms itself once the list is in, and the preview it
        leads to stays quiet so the confirmation is what remains on screen.
        """
        return self.executor.run(
            SCHEMAS_SQL,
            partial(self._schemas_loaded, refreshing),
            timeout=CATALOG_TIMEOUT,
            error_label="Failed to load schemas",
            announce=False,
        )

    def refresh(self) -> Future:
        """Reload everything from the schema list down."""
        return self.load_schemas(refreshing=True)

    def select_schema(self, name: str, announce: bool = True) -> Future:
        logger.debug("Schema selected: {}", name)
        self.selection.current_schema = name
        self.selection.current_table = ""
        self.selection.tables = []
        return self.load_tables(name, announce)

    def load_tables(self, schema: str, announce: bool = True) -> Future:
        return self.executor.run(
            TABLES_SQL,
            partial(self._tables_loaded, announce),
            params=(schema,),
            timeout=CATALOG_TIMEOUT,
            error_label="load tables",
            announce=False,
            is_current=partial(self._is_current, schema),
        )

    def select_table(self, name: str, announce: bool = True) -> Optional[Future]:
        if name not in self.selection.tables:
            logger.warning("Ignoring unknown table {!r} in schema {!r}", name, self.selection.current_schema)
            return None
        logger.debug("Table selected: {}", name)
        self.selection.current_table = name
        schema = self.selection.current_schema
        self.load_columns(schema, name)
        return self.preview(schema, name, announce)

    def load_columns(self, schema: str, table: str) -> Future:
        return self.executor.run(
            COLUMNS_SQL,
            self._columns_loaded,
            params=(schema, table),
            timeout=CATALOG_TIMEOUT,
            error_label="load columns",
            announce=False,
            is_current=partial(self._is_current, schema, table),
        )

    def preview(self, schema: str, table: str, announce: bool = True) -> Future:
        query = preview_query(schema, table, self.preview_limit)
        return self.executor.run(
            query,
            self.view.on_result,
            timeout=QUERY_TIMEOUT,
            announce=announce,
            is_current=partial(self._is_current, schema, table),
        )

    def run_adhoc(self, text: str) -> Optional[Future]:
        return self.executor.run_adhoc(text, self.view.on_result)

    def _is_current(self, schema: str, table: Optional[str] = None) -> bool:
        if schema != self.selection.current_schema:
            return False
        return table is None or table == self.selection.current_table

    def _schemas_loaded(self, refreshing: bool, result: QueryResult) -> None:
        schemas = sorted(name for name in result.column(0) if not is_system_schema(name))
        self.schemas = schemas
        self.view.on_schemas_loaded(schemas)
        if refreshing:
            self.executor.notify("Refreshed schemas and tables.")
        if schemas:
            self.select_schema(schemas[0], announce=not refreshing)

    def _tables_loaded(self, announce: bool, result: QueryResult) -> None:
        tables = result.column(0)
        self.selection.tables = tables
        self.view.on_tables_loaded(tables)
        if tables:
            self.select_table(tables[0], announce)
        else:
            self.view.on_clear()

    def _columns_loaded(self, result: QueryResult) -> None:
        self.view.on_columns_loaded(QueryResult(headers=COLUMN_HEADERS, rows=result.rows))
