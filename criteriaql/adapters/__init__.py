from __future__ import annotations

import logging
import threading
from typing import Dict, Optional

from .base import BaseAdapter, CountStrategy, GenericAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter
from .mssql import MSSQLAdapter
from .mysql import MySQLAdapter

logger = logging.getLogger(__name__)

_ADAPTERS: Dict[str, BaseAdapter] = {}
_ADAPTERS_LOCK = threading.Lock()
_FACTORIES = {
    'sqlite': SQLiteAdapter,
    'postgres': PostgresAdapter,
    'mssql': MSSQLAdapter,
    'mysql': MySQLAdapter,
    'generic': GenericAdapter,
}


def _canonical_name(dialect_name: Optional[str]) -> str:
    dn = (dialect_name or '').lower()
    if dn.startswith('postgres'):
        return 'postgres'
    if dn.startswith('mssql') or 'pyodbc' in dn:
        return 'mssql'
    if dn.startswith('mysql') or dn.startswith('mariadb'):
        return 'mysql'
    if dn.startswith('sqlite'):
        return 'sqlite'
    return dn or 'generic'


def get_adapter(dialect_name: Optional[str]) -> BaseAdapter:
    """Return the adapter for a dialect name, creating it at most once."""
    name = _canonical_name(dialect_name)
    adapter = _ADAPTERS.get(name)
    if adapter is not None:
        return adapter
    with _ADAPTERS_LOCK:
        adapter = _ADAPTERS.get(name)
        if adapter is None:
            factory = _FACTORIES.get(name)
            if factory is None:
                logger.warning(f"Unsupported database dialect: {dialect_name}. Falling back to generic adapter.")
                adapter = _ADAPTERS.get('generic') or GenericAdapter()
                _ADAPTERS.setdefault('generic', adapter)
            else:
                logger.debug(f"Detected database dialect: {dialect_name} -> {name}")
                adapter = factory()
            _ADAPTERS[name] = adapter
        return adapter


def register_adapter(name: str, adapter: BaseAdapter) -> None:
    """Register (or replace) the adapter used for a dialect name."""
    with _ADAPTERS_LOCK:
        _ADAPTERS[_canonical_name(name)] = adapter


__all__ = [
    'BaseAdapter',
    'CountStrategy',
    'GenericAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'MSSQLAdapter',
    'MySQLAdapter',
    'get_adapter',
    'register_adapter',
]
