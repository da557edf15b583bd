"""Unit tests for the SQL statement builders."""

import pytest

from dbhelper.database.query_builder import (
    Statement,
    build_delete,
    build_insert,
    build_insert_multi,
    build_update,
    find_placeholders,
    quote_char_for,
)
from dbhelper.database.exceptions import QueryBuildError
from dbhelper.security import InvalidIdentifier


def assert_params_match_sql(statement: Statement):
    """Every placeholder is bound exactly once and every binding is used."""
    placeholders = find_placeholders(statement.sql)
    assert len(placeholders) == len(set(placeholders))
    assert set(placeholders) == set(statement.params)


class TestFindPlaceholders:
    """Test placeholder extraction."""

    def test_finds_named_placeholders_in_order(self):
        sql = "UPDATE t SET `a` = :a WHERE `b` = :where_b LIMIT :limit"
        assert find_placeholders(sql) == ['a', 'where_b', 'limit']

    def test_ignores_casts_and_escaped_colons(self):
        sql = r"SELECT x::text, '10\:30' FROM t WHERE id = :id"
        assert find_placeholders(sql) == ['id']

    def test_row_index_prefixed_names(self):
        assert find_placeholders("VALUES (:0_a, :0_b), (:1_a, :1_b)") == ['0_a', '0_b', '1_a', '1_b']


class TestBuildInsert:
    """Test single-row INSERT generation."""

    def test_mysql_set_form(self):
        statement = build_insert('users', {'name': 'alice', 'age': 30})

        assert statement.sql == "INSERT INTO `users` SET `name` = :name, `age` = :age"
        assert statement.params == {'name': 'alice', 'age': 30}

    def test_on_duplicate_key_update(self):
        statement = build_insert('users', {'id': 1, 'name': 'alice'},
                                 on_duplicate={'name': 'alice2'})

        assert statement.sql.endswith("ON DUPLICATE KEY UPDATE `name` = :duplicate_name")
        assert statement.params == {'id': 1, 'name': 'alice', 'duplicate_name': 'alice2'}
        assert_params_match_sql(statement)

    def test_values_form_for_other_dialects(self):
        statement = build_insert('users', {'name': 'alice', 'age': 30}, dialect='sqlite')

        assert statement.sql == 'INSERT INTO "users" ("name", "age") VALUES (:name, :age)'
        assert statement.params == {'name': 'alice', 'age': 30}

    def test_on_conflict_for_other_dialects(self):
        statement = build_insert('users', {'id': 1}, on_duplicate={'hits': 2},
                                 dialect='postgresql', conflict_columns=['id'])

        assert statement.sql == (
            'INSERT INTO "users" ("id") VALUES (:id) '
            'ON CONFLICT ("id") DO UPDATE SET "hits" = :duplicate_hits'
        )
        assert_params_match_sql(statement)

    def test_on_conflict_composite_key(self):
        statement = build_insert('scores', {'user_id': 1, 'day': 2, 'n': 3},
                                 on_duplicate={'n': 4}, dialect='sqlite',
                                 conflict_columns=('user_id', 'day'))

        assert 'ON CONFLICT ("user_id", "day") DO UPDATE SET "n" = :duplicate_n' in statement.sql

    def test_on_conflict_single_column_string(self):
        statement = build_insert('users', {'id': 1}, on_duplicate={'hits': 2},
                                 dialect='postgresql', conflict_columns='id')

        assert 'ON CONFLICT ("id") DO UPDATE' in statement.sql

    @pytest.mark.parametrize("dialect", ['postgresql', 'sqlite'])
    def test_on_conflict_requires_target(self, dialect):
        with pytest.raises(QueryBuildError):
            build_insert('users', {'id': 1}, on_duplicate={'hits': 2}, dialect=dialect)

    def test_on_conflict_target_validated(self):
        with pytest.raises(InvalidIdentifier):
            build_insert('users', {'id': 1}, on_duplicate={'hits': 2},
                         dialect='postgresql', conflict_columns=['id) DO NOTHING; --'])

    def test_mysql_ignores_conflict_columns(self):
        statement = build_insert('users', {'id': 1}, on_duplicate={'hits': 2},
                                 conflict_columns=['id'])

        assert statement.sql == (
            "INSERT INTO `users` SET `id` = :id "
            "ON DUPLICATE KEY UPDATE `hits` = :duplicate_hits"
        )

    @pytest.mark.parametrize("fields", [
        {'a': 1},
        {'a': 1, 'b': 'x', 'c': None},
        {'col$1': 1, 'col-2': 2, 'col_2': 3},
        {'where_a': 1, 'duplicate_a': 2, 'a': 3},
    ])
    def test_params_match_placeholders(self, fields):
        statement = build_insert('t', fields, on_duplicate={'a': 9})
        assert_params_match_sql(statement)
        assert sorted(statement.params.values(), key=repr) == sorted(
            list(fields.values()) + [9], key=repr
        )

    def test_unsafe_column_characters_get_safe_placeholders(self):
        statement = build_insert('t', {'col-1': 1, 'col_1': 2})

        assert statement.sql == "INSERT INTO `t` SET `col-1` = :col_1, `col_1` = :col_1_2"
        assert statement.params == {'col_1': 1, 'col_1_2': 2}

    def test_invalid_table_name(self):
        with pytest.raises(InvalidIdentifier):
            build_insert('users; DROP TABLE users', {'a': 1})

    def test_invalid_column_name(self):
        with pytest.raises(InvalidIdentifier):
            build_insert('users', {'a` = 1, `b': 1})

    def test_empty_fields(self):
        with pytest.raises(QueryBuildError):
            build_insert('users', {})


class TestBuildInsertMulti:
    """Test multi-row INSERT generation."""

    def test_two_rows(self):
        statement = build_insert_multi('t', [{'a': 1, 'b': 2}, {'a': 3, 'b': 4}])

        assert statement.sql == "INSERT INTO `t` (`a`, `b`) VALUES (:0_a, :0_b), (:1_a, :1_b)"
        assert statement.params == {'0_a': 1, '0_b': 2, '1_a': 3, '1_b': 4}
        assert statement.sql.count('INSERT') == 1
        assert len(set(statement.params)) == 4

    def test_rows_follow_first_row_column_order(self):
        statement = build_insert_multi('t', [{'a': 1, 'b': 2}, {'b': 4, 'a': 3}])

        assert statement.sql.endswith("VALUES (:0_a, :0_b), (:1_a, :1_b)")
        assert statement.params['1_a'] == 3
        assert statement.params['1_b'] == 4

    def test_mismatched_columns_rejected(self):
        with pytest.raises(QueryBuildError, match="Row 1"):
            build_insert_multi('t', [{'a': 1, 'b': 2}, {'a': 3}])

    def test_extra_column_rejected(self):
        with pytest.raises(QueryBuildError):
            build_insert_multi('t', [{'a': 1}, {'a': 2, 'b': 3}])

    def test_no_rows_rejected(self):
        with pytest.raises(QueryBuildError):
            build_insert_multi('t', [])

    def test_invalid_table_name(self):
        with pytest.raises(InvalidIdentifier):
            build_insert_multi('t x', [{'a': 1}])


class TestBuildUpdate:
    """Test UPDATE generation."""

    def test_set_and_where_same_column_do_not_collide(self):
        statement = build_update('t', {'name': 'a'}, where={'name': 'b'})

        assert statement.sql == "UPDATE `t` SET `name` = :name WHERE `name` = :where_name"
        assert statement.params == {'name': 'a', 'where_name': 'b'}

    def test_where_joined_with_and(self):
        statement = build_update('t', {'x': 1}, where={'a': 1, 'b': 2})

        assert "WHERE `a` = :where_a AND `b` = :where_b" in statement.sql
        assert_params_match_sql(statement)

    def test_limit(self):
        statement = build_update('t', {'x': 1}, where={'id': 5}, limit=1)

        assert statement.sql.endswith("LIMIT :limit")
        assert statement.params['limit'] == 1

    def test_limit_does_not_collide_with_column(self):
        statement = build_update('t', {'limit': 10}, limit=1)

        assert statement.sql == "UPDATE `t` SET `limit` = :limit LIMIT :limit_2"
        assert statement.params == {'limit': 10, 'limit_2': 1}

    def test_prefixed_set_column_does_not_collide_with_where(self):
        statement = build_update('t', {'where_a': 1}, where={'a': 2})

        assert_params_match_sql(statement)
        assert statement.params == {'where_a': 1, 'where_a_2': 2}

    def test_without_where(self):
        statement = build_update('t', {'x': 1})
        assert statement.sql == "UPDATE `t` SET `x` = :x"

    @pytest.mark.parametrize("limit", [-1, 1.5, '1', True])
    def test_invalid_limit(self, limit):
        with pytest.raises(QueryBuildError):
            build_update('t', {'x': 1}, limit=limit)

    def test_empty_fields(self):
        with pytest.raises(QueryBuildError):
            build_update('t', {}, where={'id': 1})


class TestBuildDelete:
    """Test DELETE generation."""

    def test_where_placeholders_prefixed(self):
        statement = build_delete('t', {'id': 3, 'kind': 'x'})

        assert statement.sql == "DELETE FROM `t` WHERE `id` = :where_id AND `kind` = :where_kind"
        assert statement.params == {'where_id': 3, 'where_kind': 'x'}

    def test_limit(self):
        statement = build_delete('t', {'id': 3}, limit=2)

        assert statement.sql.endswith("LIMIT :limit")
        assert_params_match_sql(statement)

    def test_dialect_quoting(self):
        statement = build_delete('t', {'id': 3}, dialect='sqlite')
        assert statement.sql == 'DELETE FROM "t" WHERE "id" = :where_id'

    def test_empty_where_rejected(self):
        with pytest.raises(QueryBuildError):
            build_delete('t', {})

    def test_invalid_table_name(self):
        with pytest.raises(InvalidIdentifier):
            build_delete('t.x', {'id': 1})


class TestQuoteChar:
    """Test dialect quote characters."""

    def test_quote_chars(self):
        assert quote_char_for('mysql') == '`'
        assert quote_char_for('sqlite') == '"'
        assert quote_char_for('postgresql') == '"'
