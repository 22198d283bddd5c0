from __future__ import annotations

import pytest

from pgmodel.compiler import QueryCompiler, quote_identifier
from pgmodel.domain.criteria import Comparison, Criteria, Operator, QueryKind
from pgmodel.domain.fields import FieldDefinition, merge_fields
from pgmodel.errors import ValidationError

RETURNING = ' RETURNING "id", "username", "age", "created_at", "updated_at"'


@pytest.fixture
def compiler() -> QueryCompiler:
    fields = merge_fields(
        {
            "username": FieldDefinition(type="varchar(30)"),
            "age": FieldDefinition(type="integer", nullable=False),
        }
    )
    return QueryCompiler("models", fields)


class TestSelect:
    def test_defaults_order_by_primary_key_with_limit_20(self, compiler):
        query = compiler.compile(Criteria.select("models"))
        assert query.sql == 'SELECT "models".* FROM "models" ORDER BY "models"."id" ASC LIMIT $1'
        assert query.params == [20]

    def test_sort_order_and_limit(self, compiler):
        query = compiler.compile(Criteria.select("models", limit=11, order="DESC", sort="username"))
        assert query.sql == (
            'SELECT "models".* FROM "models" ORDER BY "models"."username" DESC LIMIT $1'
        )
        assert query.params == [11]

    def test_lower_case_order_is_accepted(self, compiler):
        query = compiler.compile(Criteria.select("models", order="desc"))
        assert " DESC LIMIT " in query.sql

    def test_equality_where_comes_before_order_and_limit(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"username": "phobosman"}))
        assert query.sql == (
            'SELECT "models".* FROM "models" WHERE "models"."username" = $1 '
            'ORDER BY "models"."id" ASC LIMIT $2'
        )
        assert query.params == ["phobosman", 20]

    def test_empty_where_emits_no_where_clause(self, compiler):
        query = compiler.compile(Criteria.select("models", where={}))
        assert "WHERE" not in query.sql

    def test_placeholders_follow_first_seen_order(self, compiler):
        query = compiler.compile(
            Criteria.select("models", where={"username": "bob", "age": {"gte": 18, "lt": 65}}, limit=5)
        )
        assert query.sql == (
            'SELECT "models".* FROM "models" WHERE "models"."username" = $1 '
            'AND "models"."age" >= $2 AND "models"."age" < $3 '
            'ORDER BY "models"."id" ASC LIMIT $4'
        )
        assert query.params == ["bob", 18, 65, 5]

    def test_explicit_columns(self, compiler):
        query = compiler.compile(Criteria.select("models", columns=["id", "username"]))
        assert query.sql.startswith('SELECT "models"."id", "models"."username" FROM "models"')

    def test_count_drops_order_and_limit(self, compiler):
        criteria = Criteria(kind=QueryKind.SELECT, table="models", where={"username": "phobosman"}, count=True)
        query = compiler.compile(criteria)
        assert query.sql == 'SELECT count(*) FROM "models" WHERE "models"."username" = $1'
        assert query.params == ["phobosman"]

    def test_lookup_by_id_has_no_ordering(self, compiler):
        criteria = Criteria(kind=QueryKind.SELECT, table="models", where={"id": 7}, order=None, limit=1)
        query = compiler.compile(criteria)
        assert query.sql == 'SELECT "models".* FROM "models" WHERE "models"."id" = $1 LIMIT $2'
        assert query.params == [7, 1]

    def test_unknown_where_column_is_rejected(self, compiler):
        with pytest.raises(ValidationError, match="password"):
            compiler.compile(Criteria.select("models", where={"password": "x"}))

    def test_unknown_sort_column_is_rejected(self, compiler):
        with pytest.raises(ValidationError):
            compiler.compile(Criteria.select("models", sort="username; DROP TABLE models"))

    @pytest.mark.parametrize("limit", [0, -1, "10", None, True])
    def test_limit_must_be_positive_int(self, limit):
        with pytest.raises(ValidationError):
            Criteria.select("models", limit=limit)

    def test_order_must_be_asc_or_desc(self):
        with pytest.raises(ValidationError):
            Criteria.select("models", order="sideways")


class TestComparisons:
    def test_none_means_is_null(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"username": None}))
        assert 'WHERE "models"."username" IS NULL ORDER BY' in query.sql
        assert query.params == [20]

    def test_ne_none_means_is_not_null(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"username": {"ne": None}}))
        assert '"models"."username" IS NOT NULL' in query.sql

    def test_is_null_takes_no_parameter(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"age": Comparison(op="is_null", value=False)}))
        assert '"models"."age" IS NOT NULL' in query.sql
        assert query.params == [20]

    def test_in_uses_one_placeholder_per_value(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"id": {"in": [3, 5, 8]}}))
        assert '"models"."id" IN ($1, $2, $3)' in query.sql
        assert query.params == [3, 5, 8, 20]

    def test_empty_in_matches_nothing(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"id": {"in": []}}))
        assert "WHERE FALSE ORDER BY" in query.sql

    def test_empty_not_in_matches_everything(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"id": {"not_in": []}}))
        assert "WHERE TRUE ORDER BY" in query.sql

    def test_in_rejects_a_string(self, compiler):
        with pytest.raises(ValidationError):
            compiler.compile(Criteria.select("models", where={"username": {"in": "abc"}}))

    def test_ilike(self, compiler):
        query = compiler.compile(Criteria.select("models", where={"username": Comparison(op=Operator.ILIKE, value="bo%")}))
        assert '"models"."username" ILIKE $1' in query.sql
        assert query.params[0] == "bo%"

    def test_values_are_never_interpolated(self, compiler):
        hostile = "x'; DROP TABLE models; --"
        query = compiler.compile(Criteria.select("models", where={"username": hostile}))
        assert hostile not in query.sql
        assert query.params[0] == hostile

    def test_unknown_operator_is_rejected(self, compiler):
        with pytest.raises(ValidationError, match="between"):
            compiler.compile(Criteria.select("models", where={"age": {"between": [1, 2]}}))


class TestWrites:
    def test_insert(self, compiler):
        criteria = Criteria(kind=QueryKind.INSERT, table="models", values={"username": "bill", "age": 30})
        query = compiler.compile(criteria)
        assert query.sql == 'INSERT INTO "models" ("username", "age") VALUES ($1, $2)' + RETURNING
        assert query.params == ["bill", 30]

    def test_update_keys_by_id(self, compiler):
        criteria = Criteria(
            kind=QueryKind.UPDATE,
            table="models",
            values={"username": "helen"},
            where={"id": 7},
        )
        query = compiler.compile(criteria)
        assert query.sql == 'UPDATE "models" SET "username" = $1 WHERE "id" = $2' + RETURNING
        assert query.params == ["helen", 7]

    def test_explicit_returning(self, compiler):
        criteria = Criteria(kind=QueryKind.INSERT, table="models", values={"age": 1}, returning=["id"])
        assert compiler.compile(criteria).sql.endswith(' RETURNING "id"')

    def test_delete(self, compiler):
        query = compiler.compile(Criteria(kind=QueryKind.DELETE, table="models", where={"id": 7}))
        assert query.sql == 'DELETE FROM "models" WHERE "id" = $1'
        assert query.params == [7]

    def test_delete_without_id_is_rejected(self, compiler):
        with pytest.raises(ValidationError):
            compiler.compile(Criteria(kind=QueryKind.DELETE, table="models"))

    @pytest.mark.parametrize("kind", [QueryKind.INSERT, QueryKind.UPDATE])
    def test_writes_require_values(self, compiler, kind):
        with pytest.raises(ValidationError):
            compiler.compile(Criteria(kind=kind, table="models", values={}, where={"id": 1}))

    def test_write_to_undeclared_column_is_rejected(self, compiler):
        criteria = Criteria(kind=QueryKind.INSERT, table="models", values={"nickname": "b"})
        with pytest.raises(ValidationError):
            compiler.compile(criteria)


class TestCreateTable:
    def test_create_table_from_fields(self, compiler):
        query = compiler.compile(Criteria(kind=QueryKind.CREATE_TABLE, table="models"))
        assert query.sql == (
            'CREATE TABLE IF NOT EXISTS "models" ('
            '"id" serial PRIMARY KEY, '
            '"username" varchar(30), '
            '"age" integer NOT NULL, '
            '"created_at" timestamptz DEFAULT now(), '
            '"updated_at" timestamptz DEFAULT now())'
        )
        assert query.params == []

    def test_unique_and_camel_case_primary_key(self):
        fields = {
            "code": FieldDefinition.model_validate({"type": "text", "primaryKey": True}),
            "email": FieldDefinition(type="text", unique=True),
        }
        query = QueryCompiler("things", fields).compile(Criteria(kind=QueryKind.CREATE_TABLE, table="things"))
        assert query.sql == 'CREATE TABLE IF NOT EXISTS "things" ("code" text PRIMARY KEY, "email" text UNIQUE)'

    def test_non_string_defaults_render_as_literals(self):
        fields = {
            "age": FieldDefinition.model_validate({"type": "integer", "default": 0}),
            "ratio": FieldDefinition.model_validate({"type": "real", "default": 0.5}),
            "active": FieldDefinition.model_validate({"type": "boolean", "default": False}),
            "status": FieldDefinition(type="text", default="'pending'"),
        }
        query = QueryCompiler("things", fields).compile(Criteria(kind=QueryKind.CREATE_TABLE, table="things"))
        assert query.sql == (
            'CREATE TABLE IF NOT EXISTS "things" ('
            '"age" integer DEFAULT 0, '
            '"ratio" real DEFAULT 0.5, '
            '"active" boolean DEFAULT FALSE, '
            "\"status\" text DEFAULT 'pending')"
        )

    def test_column_names_are_escaped(self):
        fields = {'we"ird': FieldDefinition(type="text")}
        query = QueryCompiler("things", fields).compile(Criteria(kind=QueryKind.CREATE_TABLE, table="things"))
        assert query.sql == 'CREATE TABLE IF NOT EXISTS "things" ("we""ird" text)'


def test_quote_identifier_escapes_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'
