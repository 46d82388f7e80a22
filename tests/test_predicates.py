import logging

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from criteriaql.adapters import BaseAdapter, GenericAdapter, SQLiteAdapter
from criteriaql.core.criteria import Like, Not, Numeric, Order
from criteriaql.core.paths import PathResolver
from criteriaql.core.predicates import ParameterBinder, PredicateCompiler
from criteriaql.errors import UnknownFieldError, UnsupportedOperationError
from tests.models import Post, PostStatus


def _compile(required=None, optional=None, adapter=None):
    resolver = PathResolver(Post)
    restriction = PredicateCompiler(resolver, adapter or SQLiteAdapter()).compile(required or {}, optional or {})
    return resolver, restriction


def _sql(expr):
    return str(expr.compile(dialect=sqlite.dialect()))


def test_empty_criteria_produce_no_restriction():
    resolver, restriction = _compile()
    assert restriction.is_empty
    assert restriction.parameters == {}
    assert not restriction.distinct
    assert not resolver.has_joins


def test_parameter_binder_names_and_records():
    parameters = {}
    binder = ParameterBinder('author.name', parameters, SQLiteAdapter())
    first = binder.create('a')
    second = binder.create('b')
    assert first.key == 'author_name_0'
    assert second.key == 'author_name_1'
    assert parameters == {'author_name_0': 'a', 'author_name_1': 'b'}


def test_required_and_optional_structure():
    _, restriction = _compile(
        required={'status': 'PUBLISHED', 'rating': '>3'},
        optional={'title': 'a', 'content': 'b'},
    )
    sql = _sql(restriction.where)
    assert ' AND ' in sql
    assert ' OR ' in sql
    assert restriction.having is None
    # Optional predicates force distinct roots
    assert restriction.distinct
    values = list(restriction.parameters.values())
    assert len(values) == 4
    assert PostStatus.PUBLISHED in values
    assert 3 in values
    assert 'a' in values and 'b' in values


def test_identical_pages_bind_identical_parameters():
    criteria = {'title': Like.contains('Post'), 'rating': [1, 2, 3], 'author.name': 'Alice'}
    _, first = _compile(required=criteria)
    _, second = _compile(required=criteria)
    assert first.parameters == second.parameters
    assert list(first.parameters) == list(second.parameters)


def test_null_and_negated_null():
    _, restriction = _compile(required={'rating': None})
    assert 'posts.rating IS NULL' in _sql(restriction.where)
    _, restriction = _compile(required={'rating': Not(None)})
    assert 'posts.rating IS NOT NULL' in _sql(restriction.where)


def test_double_negation_cancels_out():
    _, plain = _compile(required={'rating': Numeric(Order.GT, 3)})
    _, double = _compile(required={'rating': Not(Not(Numeric(Order.GT, 3)))})
    assert _sql(plain.where) == _sql(double.where)


def test_collection_on_scalar_field_is_any_of():
    _, restriction = _compile(required={'rating': [1, 2, 2]})
    sql = _sql(restriction.where)
    # duplicates are bound once
    assert sql.count('posts.rating =') == 2
    assert ' OR ' in sql


def test_unparsable_value_is_dropped(caplog):
    with caplog.at_level(logging.WARNING, logger='criteriaql.core.predicates'):
        _, restriction = _compile(required={'rating': 'abc', 'title': 'First Post'})
    sql = _sql(restriction.where)
    assert 'rating' not in sql
    assert 'lower(posts.title)' in sql
    assert list(restriction.parameters.values()) == ['first post']
    assert any('rating' in r.getMessage() and 'abc' in r.getMessage() for r in caplog.records)


def test_collection_without_usable_values_is_dropped():
    _, restriction = _compile(required={'rating': ['x', 'y']})
    assert restriction.is_empty
    assert restriction.parameters == {}


def test_unknown_field_is_fatal():
    with pytest.raises(UnknownFieldError):
        _compile(required={'nope': 1})


def test_to_many_collection_uses_cardinality_subquery():
    resolver, restriction = _compile(required={'comments.rate': [5, 4]})
    sql = _sql(restriction.where)
    assert 'count(DISTINCT post_comments_1.rate)' in sql
    # The subquery owns its joins; the outer query stays unjoined
    assert not resolver.has_joins
    assert not restriction.distinct


def test_scalar_on_to_many_joins_and_distincts():
    resolver, restriction = _compile(required={'comments.rate': 5})
    assert resolver.has_fan_out
    assert restriction.distinct


def test_element_collection_grouped_in_promotes_having():
    adapter = SQLiteAdapter()
    resolver, restriction = _compile(required={'tags': ['INTRO', 'hello']}, adapter=adapter)
    assert 'lower(post_tags_1.name) IN' in _sql(restriction.where)
    assert sorted(restriction.parameters.values()) == ['hello', 'intro']
    assert restriction.group_by_root
    assert 'count(DISTINCT lower(post_tags_1.name))' in _sql(restriction.having)


def test_element_collection_single_value_needs_no_having():
    _, restriction = _compile(required={'tags': ['intro']})
    assert restriction.having is None
    assert not restriction.group_by_root


def test_element_collection_case_variants_count_once():
    _, restriction = _compile(required={'tags': ['intro', 'INTRO']})
    assert restriction.having is None
    assert list(restriction.parameters.values()) == ['intro']


@pytest.mark.parametrize("items", [
    [Not('intro'), 'hello'],
    [Like.starts_with('pyth'), 'hello'],
    ['hello', None],
])
def test_element_collection_items_needing_own_predicate_skip_grouping(items):
    resolver, restriction = _compile(required={'tags': items})
    assert restriction.having is None
    assert not resolver.has_joins
    assert _sql(restriction.where).count('EXISTS (SELECT') == 2


def test_element_collection_without_grouped_in_uses_subquery():
    adapter = BaseAdapter(name='sqlite', grouped_element_collection_in=False)
    resolver, restriction = _compile(required={'tags': ['intro', 'hello']}, adapter=adapter)
    assert restriction.having is None
    # Case-insensitive items are not plain equalities: one EXISTS per item
    assert _sql(restriction.where).count('EXISTS (SELECT') == 2
    assert not resolver.has_joins


def test_optional_element_collection_uses_subquery():
    _, restriction = _compile(optional={'tags': ['intro', 'hello']})
    assert restriction.having is None
    assert 'EXISTS (SELECT' in _sql(restriction.where)


def test_to_many_patterns_use_one_exists_per_item():
    _, restriction = _compile(required={'comments.rate': ['>=4', '<2']})
    sql = _sql(restriction.where)
    assert sql.count('EXISTS (SELECT') == 2
    assert 'count(DISTINCT' not in sql


def test_to_many_equalities_count_distinct_values():
    # 5 and '5' are the same value
    _, restriction = _compile(required={'comments.rate': [5, '5', 4]})
    sql = _sql(restriction.where)
    assert 'count(DISTINCT post_comments_1.rate)' in sql
    assert 'EXISTS' not in sql


def test_multi_valued_criteria_denied_by_backend():
    with pytest.raises(UnsupportedOperationError) as exc:
        _compile(required={'comments.rate': [1, 2]}, adapter=GenericAdapter())
    assert 'generic' in str(exc.value)
    assert 'comments.rate' in str(exc.value)


def test_like_on_numeric_field_casts_to_text():
    _, restriction = _compile(required={'rating': Like.starts_with('4')})
    sql = _sql(restriction.where)
    assert 'CAST(posts.rating AS VARCHAR) LIKE' in sql
    assert list(restriction.parameters.values()) == ['4%']


def test_like_on_text_field_lowercases():
    _, restriction = _compile(required={'title': Like.contains('POST')})
    assert 'lower(posts.title) LIKE' in _sql(restriction.where)
    assert list(restriction.parameters.values()) == ['%post%']


def test_entity_instance_compares_by_primary_key():
    from tests.models import User
    alice = User(id=7, name='Alice', email='a@example.com')
    resolver, restriction = _compile(required={'author': alice})
    assert list(restriction.parameters.values()) == [7]
    assert 'users_1.id' in _sql(restriction.where)
    assert resolver.has_joins and not resolver.has_fan_out


def test_restriction_renders_in_select():
    resolver, restriction = _compile(required={'author.name': 'alice'})
    stmt = resolver.apply_joins(select(Post)).where(restriction.where)
    sql = _sql(stmt)
    assert 'LEFT OUTER JOIN users AS users_1' in sql
    assert 'lower(users_1.name)' in sql
