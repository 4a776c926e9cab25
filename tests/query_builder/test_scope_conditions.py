"""
Tests for scope conditions, which are ANDed with all user filters.
"""

from relation_restore.query_builder import QueryBuilder


class TestScopeConditions:
    def test_raw_scope_alone(self):
        sql = QueryBuilder("comments").scope("deleted_at IS NULL").to_sql()

        assert sql == "SELECT * FROM comments WHERE deleted_at IS NULL"

    def test_scope_is_anded_with_plain_where(self):
        query, params = (
            QueryBuilder("comments")
            .where("post_id", "p1")
            .scope("deleted_at IS NULL")
            .build()
        )

        assert query == "SELECT * FROM comments WHERE post_id = $1 AND deleted_at IS NULL"
        assert params == ["p1"]

    def test_or_where_cannot_escape_scope(self):
        sql = (
            QueryBuilder("comments")
            .where("post_id", "p1")
            .or_where("body", "x")
            .scope("deleted_at IS NULL")
            .to_sql()
        )

        assert sql == (
            "SELECT * FROM comments WHERE (post_id = $1 OR body = $2) AND deleted_at IS NULL"
        )

    def test_group_scope_renumbers_placeholders(self):
        query, params = (
            QueryBuilder("comments")
            .where("post_id", "p1")
            .scope(lambda q: q.where("auto_remove", 5))
            .where("body", "x")
            .build()
        )

        assert query == (
            "SELECT * FROM comments WHERE post_id = $1 AND body = $3 AND auto_remove = $2"
        )
        assert params == ["p1", 5, "x"]

    def test_compound_group_scope_is_parenthesised(self):
        sql = (
            QueryBuilder("comments")
            .scope(lambda q: q.where_not_null("deleted_at").or_where_null("auto_remove"))
            .to_sql()
        )

        assert sql == (
            "SELECT * FROM comments WHERE (deleted_at IS NOT NULL OR auto_remove IS NULL)"
        )

    def test_has_filters_ignores_scopes(self):
        builder = QueryBuilder("comments").scope("deleted_at IS NULL")

        assert builder.has_filters() is False
        assert builder.where("body", "a").has_filters() is True

    def test_build_where_shifts_placeholders(self):
        where_clause, params = (
            QueryBuilder("comments")
            .where("post_id", "p1")
            .scope(lambda q: q.where("auto_remove", 2))
            .build_where(param_offset=2)
        )

        assert where_clause == " WHERE post_id = $3 AND auto_remove = $4"
        assert params == ["p1", 2]

    def test_build_where_without_filters(self):
        assert QueryBuilder("comments").build_where(param_offset=1) == ("", [])
