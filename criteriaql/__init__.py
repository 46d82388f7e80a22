"""CriteriaQL public API and lightweight lazy exports.

This __init__ avoids importing SQLAlchemy-heavy submodules at import time so
that model modules can import the page and criteria types cheaply.

Exposes:
- Page, PageBuilder, UNLIMITED, PartialResultList
- Criteria variants: Not, Between, Like, Numeric, Order, Enumerated, Bool, IgnoreCase, Equal, to_criteria
- PageQuery, CompiledPage, EntityPageService, AsyncSessionExecutor
- get_adapter, register_adapter, get_entity_metadata, matches
- Errors from criteriaql.errors
"""
from __future__ import annotations

_EXPORTS = {
    'Page': '.page',
    'PageBuilder': '.page',
    'UNLIMITED': '.page',
    'PartialResultList': '.results',
    'Criteria': '.core.criteria',
    'Not': '.core.criteria',
    'Between': '.core.criteria',
    'Like': '.core.criteria',
    'Numeric': '.core.criteria',
    'Order': '.core.criteria',
    'Enumerated': '.core.criteria',
    'Bool': '.core.criteria',
    'IgnoreCase': '.core.criteria',
    'Equal': '.core.criteria',
    'to_criteria': '.core.criteria',
    'RelationKind': '.core.metadata',
    'EntityMetadata': '.core.metadata',
    'get_entity_metadata': '.core.metadata',
    'PathResolver': '.core.paths',
    'matches': '.core.evaluation',
    'PageQuery': '.service',
    'CompiledPage': '.service',
    'EntityPageService': '.service',
    'AsyncSessionExecutor': '.execution',
    'QueryPlan': '.sql.builders',
    'get_adapter': '.adapters',
    'register_adapter': '.adapters',
    'CountStrategy': '.adapters',
    'CriteriaQLError': '.errors',
    'BuilderStateError': '.errors',
    'UnknownFieldError': '.errors',
    'UnsupportedOperationError': '.errors',
    'UnsupportedCriteriaError': '.errors',
    'IllegalMappingError': '.errors',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(name)
    import importlib as _importlib
    module = _importlib.import_module(module_name, __name__)
    return getattr(module, name)


__all__ = sorted(_EXPORTS)
