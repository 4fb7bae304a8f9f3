"""
Parameterised SQL fragments built from user-supplied filters and field sets.

Values only ever travel in ``SqlFragment.params``; the clause text holds
column names from a fixed whitelist and ``:p<i>`` placeholders, nothing else.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from smartgarden.errors import ValidationFailure

PLANT_FILTER_COLUMNS = (
    "plant_id",
    "latitude",
    "longitude",
    "radius",
    "is_ready",
    "type_name",
    "section_id",
)

# SET order for plant updates; also the set of updatable columns.
PLANT_UPDATE_COLUMNS = (
    "latitude",
    "longitude",
    "radius",
    "is_ready",
    "type_name",
    "section_id",
)

GARDEN_COLUMNS = (
    "garden_id",
    "name",
    "postal_code",
    "street_name",
    "house_number",
    "owner_id",
)

CASE_INSENSITIVE_COLUMNS = {"type_name"}

CONNECTIVES = {"AND", "OR"}


@dataclass(frozen=True)
class Filter:
    column: str
    value: Any
    logic: Optional[str] = None


@dataclass
class SqlFragment:
    text: str = ""
    params: List[Any] = field(default_factory=list)

    def placeholder(self) -> str:
        return f":p{len(self.params)}"

    def bind(self, value: Any) -> str:
        name = self.placeholder()
        self.params.append(value)
        return name

    def bind_map(self) -> Dict[str, Any]:
        return {f"p{index}": value for index, value in enumerate(self.params)}

    def __bool__(self) -> bool:
        return bool(self.text)


def _normalise_logic(logic: Optional[str], position: int) -> str:
    connective = (logic or "").strip().upper()
    if connective not in CONNECTIVES:
        raise ValidationFailure(f"Filter {position + 1} must be joined with AND or OR")
    return connective


def build_filter_clause(
    filters: Sequence[Filter],
    allowed_columns: Iterable[str] = PLANT_FILTER_COLUMNS,
) -> SqlFragment:
    """Build ``WHERE``-less condition text for ``filters``.

    An empty string as the first filter's value means "match everything" and
    yields an empty fragment, whatever the remaining filters hold. The first
    filter's ``logic`` is ignored.
    """
    if not filters:
        raise ValidationFailure("At least one filter is required")

    fragment = SqlFragment()
    if filters[0].value == "":
        return fragment

    allowed = set(allowed_columns)
    parts: List[str] = []
    for index, item in enumerate(filters):
        if item.column not in allowed:
            raise ValidationFailure(f"Cannot filter on column '{item.column}'")
        if index > 0:
            parts.append(_normalise_logic(item.logic, index))

        if item.column in CASE_INSENSITIVE_COLUMNS:
            value = item.value.lower() if isinstance(item.value, str) else item.value
            parts.append(f"LOWER({item.column}) = {fragment.bind(value)}")
        else:
            parts.append(f"{item.column} = {fragment.bind(item.value)}")

    fragment.text = " ".join(parts)
    return fragment


def build_update_clause(fields: Mapping[str, Any], row_id: Any) -> SqlFragment:
    """Build ``col = :pN, ...`` for the keys present in ``fields``.

    Columns are emitted in ``PLANT_UPDATE_COLUMNS`` order. ``row_id`` is bound
    as the final parameter; ``update_statement`` uses it for the WHERE clause.
    """
    if not fields:
        raise ValidationFailure("No fields to update")

    unknown = set(fields) - set(PLANT_UPDATE_COLUMNS)
    if unknown:
        raise ValidationFailure(f"Cannot update column(s): {', '.join(sorted(unknown))}")

    fragment = SqlFragment()
    assignments = [
        f"{column} = {fragment.bind(fields[column])}"
        for column in PLANT_UPDATE_COLUMNS
        if column in fields
    ]
    fragment.text = ", ".join(assignments)
    fragment.bind(row_id)
    return fragment


def select_statement(table: str, where: SqlFragment) -> Tuple[str, Dict[str, Any]]:
    sql = f"SELECT * FROM {table}"
    if where:
        sql += f" WHERE {where.text}"
    return sql, where.bind_map()


def update_statement(table: str, key_column: str, assignments: SqlFragment) -> Tuple[str, Dict[str, Any]]:
    row_placeholder = f":p{len(assignments.params) - 1}"
    sql = f"UPDATE {table} SET {assignments.text} WHERE {key_column} = {row_placeholder}"
    return sql, assignments.bind_map()


def build_projection(columns: Sequence[str], allowed_columns: Iterable[str] = GARDEN_COLUMNS) -> List[str]:
    """Validate a select list; identifiers cannot be bound so they must be whitelisted."""
    if not columns:
        raise ValidationFailure("Please select at least one column")

    allowed = set(allowed_columns)
    selected: List[str] = []
    for column in columns:
        name = column.strip().lower()
        if name not in allowed:
            raise ValidationFailure(f"Unknown column '{column}'")
        if name not in selected:
            selected.append(name)
    return selected
