from __future__ import annotations

from dataclasses import astuple
from typing import Any, Dict, List, Optional, Sequence, Tuple

import sqlglot
from sqlglot.executor import Table, execute

from mysql_conduit.registry import describe_types
from mysql_conduit.values import TypeInfo

DATA_TYPES_SCHEMA = {
    "data_types": {
        "type_name": "TEXT",
        "provider_type": "INT",
        "column_size": "BIGINT",
        "create_format": "TEXT",
        "create_parameters": "TEXT",
        "native_data_type": "TEXT",
        "is_auto_incrementable": "BOOLEAN",
        "is_case_sensitive": "BOOLEAN",
        "is_fixed_length": "BOOLEAN",
        "is_fixed_precision_scale": "BOOLEAN",
        "is_long": "BOOLEAN",
        "is_nullable": "BOOLEAN",
        "is_searchable": "BOOLEAN",
        "is_searchable_with_like": "BOOLEAN",
        "is_unsigned": "BOOLEAN",
        "maximum_scale": "INT",
        "minimum_scale": "INT",
        "is_concurrency_type": "BOOLEAN",
        "is_literal_supported": "BOOLEAN",
        "literal_prefix": "TEXT",
        "literal_suffix": "TEXT",
    }
}


def data_types_table(rows: Sequence[TypeInfo]) -> Table:
    table = Table(tuple(DATA_TYPES_SCHEMA["data_types"]))
    for row in rows:
        values = astuple(row)
        table.append((values[0], int(values[1]), *values[2:]))
    return table


class DataTypes:
    """
    The DataTypes metadata collection.

    Rows come from each codec's `describe_type`. The collection can be
    queried with SQL through SQLGlot's executor, using the table `data_types`.
    """

    def __init__(self, rows: Optional[List[TypeInfo]] = None):
        self.rows = describe_types() if rows is None else rows
        self.tables = {"data_types": data_types_table(self.rows)}

    def find(self, type_name: str) -> Optional[TypeInfo]:
        type_name = type_name.upper()
        return next((r for r in self.rows if r.type_name == type_name), None)

    def query(self, sql: str) -> Tuple[List[Tuple[Any, ...]], List[str]]:
        expression = sqlglot.parse_one(sql, read="mysql")
        result = execute(expression, schema=DATA_TYPES_SCHEMA, tables=self.tables)
        return result.rows, list(result.columns)

    def as_dicts(self) -> List[Dict[str, Any]]:
        columns = list(DATA_TYPES_SCHEMA["data_types"])
        return [dict(zip(columns, row)) for row in self.tables["data_types"].rows]
