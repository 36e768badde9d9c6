"""
Table Mapping Sources

The list of product tables to aggregate over lives in the write store and
changes whenever an admin assigns or removes a table. Aggregations ask a
TableMappingSource for the current active list on each call.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from .models import TableMapping
from .session import session_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableDescriptor:
    """A physically named lead table plus its optional display name."""
    table_name: str
    custom_table_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.custom_table_name and self.custom_table_name.strip():
            return self.custom_table_name
        return self.table_name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TableMappingSource(Protocol):
    """Anything that can list the active table descriptors."""

    async def get_active_mappings(self) -> List[TableDescriptor]:
        ...


class SqlTableMappingSource:
    """Reads active rows of the TableMapping model from the write store."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _load(self) -> List[TableDescriptor]:
        with session_scope(self.session_factory) as db:
            rows = (
                db.query(TableMapping.table_name, TableMapping.custom_table_name)
                .filter(TableMapping.is_active == "true")
                .order_by(TableMapping.table_name)
                .all()
            )
        return [
            TableDescriptor(table_name=row.table_name, custom_table_name=row.custom_table_name)
            for row in rows
        ]

    async def get_active_mappings(self) -> List[TableDescriptor]:
        descriptors = await asyncio.to_thread(self._load)
        logger.debug(f"Loaded {len(descriptors)} active table mappings")
        return descriptors


class StaticTableMappingSource:
    """Fixed list of tables, for scripts and tests."""

    def __init__(self, tables: Iterable[Any] = ()):
        self._tables = [self._coerce(t) for t in tables]

    @staticmethod
    def _coerce(item: Any) -> TableDescriptor:
        if isinstance(item, TableDescriptor):
            return item
        if isinstance(item, str):
            return TableDescriptor(table_name=item)
        return TableDescriptor(
            table_name=item["table_name"],
            custom_table_name=item.get("custom_table_name"),
        )

    def set_tables(self, tables: Iterable[Any]):
        self._tables = [self._coerce(t) for t in tables]

    async def get_active_mappings(self) -> List[TableDescriptor]:
        return list(self._tables)
