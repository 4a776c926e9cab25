"""
Immutable QueryBuilder for SELECT statements and WHERE clauses.
The builder only renders SQL with asyncpg-style $n placeholders; it never executes.
"""

import re
from collections.abc import Callable
from typing import Any

_PLACEHOLDER = re.compile(r"\$(\d+)")

GroupFunction = Callable[["QueryBuilder"], "QueryBuilder | None"]


class QueryBuilder:
    """
    Query builder for SELECT statements.

    Filters come in two layers:
    - user conditions (where / or_where / groups), combined Laravel-style
    - scope conditions (soft delete, auto-remove), always ANDed with the
      whole user expression

    Usage:
        builder = QueryBuilder("posts")
        query, params = builder.where("id", post_id).where_null("deleted_at").build()
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self.select_fields = "*"
        self.where_conditions: list[str] = []
        self.or_where_conditions: list[str] = []
        self.scope_conditions: list[str] = []
        self.params: list[Any] = []
        self.order_by_parts: list[str] = []
        self.limit_count: int | None = None
        self.offset_count: int | None = None

    def _clone(self) -> "QueryBuilder":
        new_builder = QueryBuilder(self.table_name)
        new_builder.select_fields = self.select_fields
        new_builder.where_conditions = self.where_conditions.copy()
        new_builder.or_where_conditions = self.or_where_conditions.copy()
        new_builder.scope_conditions = self.scope_conditions.copy()
        new_builder.params = self.params.copy()
        new_builder.order_by_parts = self.order_by_parts.copy()
        new_builder.limit_count = self.limit_count
        new_builder.offset_count = self.offset_count
        return new_builder

    def _append(self, condition: str, is_or: bool) -> None:
        if is_or:
            self.or_where_conditions.append(condition)
        else:
            self.where_conditions.append(condition)

    def _add_condition(
        self, field: Any, value: Any, operator: str, is_or: bool = False
    ) -> "QueryBuilder":
        """Add a comparison to either the WHERE or the OR WHERE list"""
        new_builder = self._clone()

        if value is None and operator == "=":
            condition = f"{field} IS NULL"
        elif value is None and operator in ("!=", "<>"):
            condition = f"{field} IS NOT NULL"
        else:
            new_builder.params.append(value)
            condition = f"{field} {operator} ${len(new_builder.params)}"

        new_builder._append(condition, is_or)
        return new_builder

    def _add_null_condition(
        self, field: Any, is_not: bool, is_or: bool
    ) -> "QueryBuilder":
        new_builder = self._clone()
        not_keyword = "NOT " if is_not else ""
        new_builder._append(f"{field} IS {not_keyword}NULL", is_or)
        return new_builder

    def _add_in_condition(
        self,
        field: Any,
        values: Any | list[Any],
        is_not: bool = False,
        is_or: bool = False,
    ) -> "QueryBuilder":
        new_builder = self._clone()

        if not isinstance(values, list):
            values = [values]

        start_index = len(new_builder.params) + 1
        placeholders = ", ".join(f"${i + start_index}" for i in range(len(values)))
        not_keyword = "NOT " if is_not else ""
        new_builder._append(f"{field} {not_keyword}IN ({placeholders})", is_or)
        new_builder.params.extend(values)
        return new_builder

    @staticmethod
    def _shift_placeholders(condition: str, offset: int) -> str:
        """Renumber $n placeholders by a fixed offset"""
        if not offset:
            return condition
        return _PLACEHOLDER.sub(lambda m: f"${int(m.group(1)) + offset}", condition)

    def _compose_user_filters(self, wrap_or: bool = True) -> str:
        """Combine WHERE and OR WHERE lists into one expression ('' when empty)"""
        parts = []

        if self.where_conditions:
            and_clause = " AND ".join(self.where_conditions)
            if len(self.where_conditions) > 1 and self.or_where_conditions:
                and_clause = f"({and_clause})"
            parts.append(and_clause)

        if self.or_where_conditions:
            or_clause = " OR ".join(self.or_where_conditions)
            if wrap_or and len(self.or_where_conditions) > 1:
                or_clause = f"({or_clause})"
            parts.append(or_clause)

        return " OR ".join(parts)

    def _compose_filters(self) -> str:
        """User filters ANDed with every scope condition"""
        user_filters = self._compose_user_filters()
        if not self.scope_conditions:
            return user_filters

        parts = []
        if user_filters:
            # Parenthesise when an OR could otherwise swallow the scopes
            parts.append(
                f"({user_filters})" if self.or_where_conditions else user_filters
            )
        parts.extend(self.scope_conditions)
        return " AND ".join(parts)

    def _render_group(self, group_function: GroupFunction) -> tuple[str, list[Any]]:
        """Run a group function on a fresh builder and render its filters"""
        group_builder = QueryBuilder("")
        result = group_function(group_builder)
        if result is not None:
            group_builder = result

        condition = group_builder._compose_user_filters(wrap_or=False)
        if not condition:
            return "", []

        # Group placeholders start at $1; move them behind our own params
        return (
            self._shift_placeholders(condition, len(self.params)),
            group_builder.params,
        )

    def _add_group_condition(
        self, group_function: GroupFunction, is_or: bool = False
    ) -> "QueryBuilder":
        condition, params = self._render_group(group_function)
        if not condition:
            return self

        new_builder = self._clone()
        new_builder._append(f"({condition})", is_or)
        new_builder.params.extend(params)
        return new_builder

    def select(self, *fields: str) -> "QueryBuilder":
        """Set the SELECT fields; defaults to * when none is provided."""
        new_builder = self._clone()
        new_builder.select_fields = ", ".join(fields) if fields else "*"
        return new_builder

    def where(self, field_or_function: Any, *args: Any) -> "QueryBuilder":
        """Add a WHERE condition or grouped WHERE clause.

        Supports the following call styles:
        - where(field, value) -> operator defaults to '='
        - where(field, operator, value) -> explicit operator in the second place
        - where(lambda qb: ...) -> grouped conditions in parentheses
        """
        if callable(field_or_function):
            return self.where_group(field_or_function)

        if len(args) == 2:
            operator, value = args
            return self._add_condition(field_or_function, value, operator)
        if len(args) == 1:
            return self._add_condition(field_or_function, args[0], "=")
        raise TypeError("where() expects (field, value) or (field, operator, value)")

    def or_where(self, field_or_function: Any, *args: Any) -> "QueryBuilder":
        """Add an OR WHERE condition or grouped OR WHERE clause.

        Same call styles as where().
        """
        if callable(field_or_function):
            return self.or_where_group(field_or_function)

        if len(args) == 2:
            operator, value = args
            return self._add_condition(field_or_function, value, operator, is_or=True)
        if len(args) == 1:
            return self._add_condition(field_or_function, args[0], "=", is_or=True)
        raise TypeError("or_where() expects (field, value) or (field, operator, value)")

    def where_null(self, field: Any) -> "QueryBuilder":
        """Add a WHERE field IS NULL condition"""
        return self._add_null_condition(field, is_not=False, is_or=False)

    def where_not_null(self, field: Any) -> "QueryBuilder":
        """Add a WHERE field IS NOT NULL condition"""
        return self._add_null_condition(field, is_not=True, is_or=False)

    def or_where_null(self, field: Any) -> "QueryBuilder":
        """Add an OR WHERE field IS NULL condition"""
        return self._add_null_condition(field, is_not=False, is_or=True)

    def or_where_not_null(self, field: Any) -> "QueryBuilder":
        """Add an OR WHERE field IS NOT NULL condition"""
        return self._add_null_condition(field, is_not=True, is_or=True)

    def where_in(self, field: Any, values: Any | list[Any]) -> "QueryBuilder":
        """Add a WHERE field IN (...) condition; a single value is wrapped in a list"""
        return self._add_in_condition(field, values)

    def where_not_in(self, field: Any, values: Any | list[Any]) -> "QueryBuilder":
        """Add a WHERE field NOT IN (...) condition"""
        return self._add_in_condition(field, values, is_not=True)

    def or_where_in(self, field: Any, values: Any | list[Any]) -> "QueryBuilder":
        """Add an OR WHERE field IN (...) condition"""
        return self._add_in_condition(field, values, is_or=True)

    def or_where_not_in(self, field: Any, values: Any | list[Any]) -> "QueryBuilder":
        """Add an OR WHERE field NOT IN (...) condition"""
        return self._add_in_condition(field, values, is_not=True, is_or=True)

    def where_group(self, group_function: GroupFunction) -> "QueryBuilder":
        """Add a grouped WHERE clause using a function"""
        return self._add_group_condition(group_function, is_or=False)

    def or_where_group(self, group_function: GroupFunction) -> "QueryBuilder":
        """Add a grouped OR WHERE clause using a function"""
        return self._add_group_condition(group_function, is_or=True)

    def scope(self, condition: str | GroupFunction) -> "QueryBuilder":
        """Add a scope condition, ANDed with all user filters.

        Accepts either a raw condition without placeholders
        (e.g. "deleted_at IS NULL") or a group function.
        """
        if not callable(condition):
            new_builder = self._clone()
            new_builder.scope_conditions.append(condition)
            return new_builder

        rendered, params = self._render_group(condition)
        if not rendered:
            return self

        new_builder = self._clone()
        if " AND " in rendered or " OR " in rendered:
            rendered = f"({rendered})"
        new_builder.scope_conditions.append(rendered)
        new_builder.params.extend(params)
        return new_builder

    def has_filters(self) -> bool:
        """Whether any user-supplied (non-scope) condition is present"""
        return bool(self.where_conditions or self.or_where_conditions)

    def order_by(self, field: Any) -> "QueryBuilder":
        """Add ORDER BY ascending for a field. Chain to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field}")
        return new_builder

    def order_by_desc(self, field: Any) -> "QueryBuilder":
        """Add ORDER BY ... DESC for a field. Chain to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field} DESC")
        return new_builder

    def limit(self, count: int) -> "QueryBuilder":
        """Set LIMIT"""
        new_builder = self._clone()
        new_builder.limit_count = count
        return new_builder

    def offset(self, count: int) -> "QueryBuilder":
        """Set OFFSET"""
        new_builder = self._clone()
        new_builder.offset_count = count
        return new_builder

    def paginate(self, page: int, per_page: int = 10) -> "QueryBuilder":
        """
        Set LIMIT and OFFSET for a 1-based page.

        Raises:
            ValueError: if page or per_page is smaller than 1
        """
        if page < 1:
            raise ValueError("Page number must be 1 or greater")
        if per_page < 1:
            raise ValueError("Per page count must be 1 or greater")

        return self.limit(per_page).offset((page - 1) * per_page)

    def build_where(self, param_offset: int = 0) -> tuple[str, list[Any]]:
        """Render only the WHERE clause, e.g. for UPDATE statements.

        Args:
            param_offset: number of placeholders already used by the statement
                (the SET clause); the WHERE placeholders are renumbered after them

        Returns:
            (" WHERE ..." or "", params)
        """
        filters = self._compose_filters()
        if not filters:
            return "", []
        return (
            f" WHERE {self._shift_placeholders(filters, param_offset)}",
            self.params.copy(),
        )

    def build(self) -> tuple[str, list[Any]]:
        """Build the final SQL query and parameters"""
        where_clause, params = self.build_where()
        query = f"SELECT {self.select_fields} FROM {self.table_name}{where_clause}"

        if self.order_by_parts:
            query += f" ORDER BY {', '.join(self.order_by_parts)}"
        if self.limit_count is not None:
            query += f" LIMIT {self.limit_count}"
        if self.offset_count is not None:
            query += f" OFFSET {self.offset_count}"

        return query, params

    def to_sql(self) -> str:
        """Return only the SQL query string without parameters"""
        query, _ = self.build()
        return query

    def __str__(self) -> str:
        query, params = self.build()
        return f"Query: {query}\nParams: {params}"
