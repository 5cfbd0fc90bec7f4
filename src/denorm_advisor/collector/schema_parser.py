"""Schema parser module for extracting relationships from SQL DDL files."""

import logging
import re
from pathlib import Path

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from denorm_advisor.collector.models import (
    Cardinality,
    ColumnDefinition,
    ForeignKeyDefinition,
    IndexDefinition,
    SchemaDefinition,
    SchemaRelationship,
    TableDefinition,
)

logger = logging.getLogger(__name__)

# Optionally schema-qualified, optionally quoted identifier ([dbo].[Orders], "public"."orders").
_IDENT = r"(?:[\[`\"]?\w+[\]`\"]?\.)?[\[`\"]?(\w+)[\]`\"]?"

_CREATE_TABLE_RE = re.compile(
    rf"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?{_IDENT}\s*\((.*?)\)\s*(?:;|$)",
    re.IGNORECASE | re.DOTALL,
)
_CREATE_INDEX_RE = re.compile(
    rf"CREATE\s+(UNIQUE\s+)?(?:(CLUSTERED|NONCLUSTERED)\s+)?INDEX\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    rf"{_IDENT}\s+ON\s+{_IDENT}\s*\(([^)]+)\)",
    re.IGNORECASE,
)
_INLINE_REF_RE = re.compile(
    rf"^[\[`\"]?(\w+)[\]`\"]?\s+.*?REFERENCES\s+{_IDENT}\s*(?:\(([^)]+)\))?",
    re.IGNORECASE | re.DOTALL,
)
_TABLE_FK_RE = re.compile(
    rf"FOREIGN\s+KEY\s*\(([^)]+)\)\s*REFERENCES\s+{_IDENT}\s*\(([^)]+)\)",
    re.IGNORECASE,
)
_TABLE_PK_RE = re.compile(r"PRIMARY\s+KEY\s*(?:CLUSTERED\s+|NONCLUSTERED\s+)?\(([^)]+)\)", re.IGNORECASE)
_TABLE_UNIQUE_RE = re.compile(r"UNIQUE\s*(?:CLUSTERED\s+|NONCLUSTERED\s+)?\(([^)]+)\)", re.IGNORECASE)
# Bookkeeping columns that do not make a link table carry data of its own.
_AUDIT_COLUMN_RE = re.compile(
    r"^(?:(?:created|updated|modified|deleted|inserted|last_modified)(?:_?(?:at|on|by|date|time|utc))?"
    r"|row_?version|version|timestamp)$",
    re.IGNORECASE,
)


def _split_names(names: str) -> list[str]:
    """Split a comma-separated column list, dropping quotes and sort order."""
    result = []
    for part in names.split(","):
        name = part.strip().split()[0] if part.strip() else ""
        name = name.strip("`\"[]")
        if name:
            result.append(name)
    return result


class SchemaParser:
    """Parser for SQL DDL schema files."""

    def __init__(self, dialect: str = "postgres"):
        """Initialize parser with SQL dialect."""
        self.dialect = dialect

    def parse_file(self, schema_file: Path | str) -> SchemaDefinition:
        """Parse a SQL schema file."""
        schema_file = Path(schema_file)
        if not schema_file.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_file}")

        with open(schema_file, "r", encoding="utf-8") as f:
            sql_content = f.read()

        return self.parse_sql(sql_content, source_file=str(schema_file))

    def parse_sql(self, sql_content: str, source_file: str | None = None) -> SchemaDefinition:
        """Parse SQL DDL content into tables, foreign keys and relationships.

        Args:
            sql_content: DDL text
            source_file: Optional file name recorded on the result

        Returns:
            SchemaDefinition with derived relationships
        """
        schema = self._parse_with_sqlglot(sql_content, source_file)
        if schema is None:
            schema = self._parse_with_regex(sql_content, source_file)

        self._attach_indexes(schema, sql_content)
        schema.relationships = self.derive_relationships(schema)

        logger.info(
            f"Parsed schema: {len(schema.tables)} tables, "
            f"{len(schema.foreign_keys)} foreign keys, "
            f"{len(schema.relationships)} relationships"
        )
        return schema

    def _parse_with_sqlglot(
        self, sql_content: str, source_file: str | None
    ) -> SchemaDefinition | None:
        """Parse with sqlglot, returning None when the regex fallback should be used."""
        try:
            statements = sqlglot.parse(sql_content, dialect=self.dialect)
        except (ParseError, TokenError) as e:
            logger.debug(f"sqlglot could not parse schema, falling back to regex: {e}")
            return None

        tables: list[TableDefinition] = []
        foreign_keys: list[ForeignKeyDefinition] = []

        for stmt in statements:
            if not isinstance(stmt, exp.Create):
                continue
            if str(stmt.args.get("kind") or "").upper() != "TABLE":
                continue

            table_def = self._parse_create_table(stmt)
            if table_def and table_def.name:
                tables.append(table_def)
                foreign_keys.extend(self._extract_foreign_keys(stmt, table_def.name))

        if not tables:
            return None

        return SchemaDefinition(tables=tables, foreign_keys=foreign_keys, source_file=source_file)

    def _get_table_name(self, table_expr) -> str:
        """Extract table name from a Table or Schema expression."""
        if table_expr is None:
            return ""
        if isinstance(table_expr, exp.Schema):
            table_expr = table_expr.this
        if isinstance(table_expr, exp.Table):
            return table_expr.name
        name = getattr(table_expr, "name", "")
        if name:
            return name
        # Remove schema prefix and quotes ("public.users" -> "users")
        return str(table_expr).split(".")[-1].strip("`\"'[]")

    def _column_names(self, node) -> list[str]:
        """Column names from a Schema, a list of expressions or a single column."""
        if node is None:
            return []
        if isinstance(node, exp.Schema):
            items = node.expressions
        elif isinstance(node, list):
            items = node
        else:
            items = node.expressions or [node]

        names = []
        for item in items:
            if isinstance(item, exp.Ordered):
                item = item.this
            name = item.name if hasattr(item, "name") else str(item)
            if name:
                names.append(name)
        return names

    def _parse_create_table(self, stmt: exp.Create) -> TableDefinition | None:
        """Parse a CREATE TABLE statement."""
        table_name = self._get_table_name(stmt.this)
        if not table_name:
            return None

        table_expr = stmt.this if isinstance(stmt.this, exp.Schema) else stmt.find(exp.Schema)
        if not table_expr:
            return TableDefinition(name=table_name)

        columns: list[ColumnDefinition] = []
        primary_key: list[str] = []
        unique_constraints: list[list[str]] = []

        for col_expr in table_expr.expressions:
            if isinstance(col_expr, exp.ColumnDef):
                col_def = self._parse_column_def(col_expr)
                if col_def:
                    columns.append(col_def)
                    if col_def.is_primary_key:
                        primary_key.append(col_def.name)

        # Table-level constraints, named (CONSTRAINT x ...) or not
        for pk in table_expr.find_all(exp.PrimaryKey):
            for col_name in self._column_names(pk.expressions):
                if col_name not in primary_key:
                    primary_key.append(col_name)

        for unique in table_expr.find_all(exp.UniqueColumnConstraint):
            if isinstance(unique.this, exp.Schema):
                names = self._column_names(unique.this)
                if names:
                    unique_constraints.append(names)

        for col in columns:
            if col.name in primary_key:
                col.nullable = False
                if len(primary_key) == 1:
                    col.is_primary_key = True

        return TableDefinition(
            name=table_name,
            columns=columns,
            primary_key=primary_key,
            unique_constraints=unique_constraints,
        )

    def _parse_column_def(self, col_expr: exp.ColumnDef) -> ColumnDefinition | None:
        """Parse a column definition."""
        col_name = col_expr.name
        if not col_name:
            return None

        kind = col_expr.args.get("kind")
        data_type = kind.sql(dialect=self.dialect) if kind else "TEXT"

        col = ColumnDefinition(name=col_name, data_type=data_type)

        for constraint in col_expr.args.get("constraints") or []:
            if not isinstance(constraint, exp.ColumnConstraint):
                continue
            kind = constraint.kind
            if isinstance(kind, exp.NotNullColumnConstraint):
                col.nullable = bool(kind.args.get("allow_null"))
            elif isinstance(kind, exp.PrimaryKeyColumnConstraint):
                col.is_primary_key = True
                col.nullable = False
            elif isinstance(kind, exp.UniqueColumnConstraint):
                col.is_unique = True
            elif isinstance(kind, exp.DefaultColumnConstraint):
                col.default = str(kind.this) if kind.this else None

        return col

    def _extract_foreign_keys(self, stmt: exp.Create, table_name: str) -> list[ForeignKeyDefinition]:
        """Extract inline and table-level foreign keys from CREATE TABLE."""
        foreign_keys = []

        for col_def in stmt.find_all(exp.ColumnDef):
            for constraint in col_def.args.get("constraints") or []:
                if not isinstance(constraint, exp.ColumnConstraint):
                    continue
                ref = constraint.args.get("kind")
                if not isinstance(ref, exp.Reference):
                    continue
                fk = self._reference_to_fk(ref, table_name, [col_def.name])
                if fk:
                    foreign_keys.append(fk)

        for fk_expr in stmt.find_all(exp.ForeignKey):
            ref = fk_expr.args.get("reference")
            if not isinstance(ref, exp.Reference):
                continue
            fk = self._reference_to_fk(ref, table_name, self._column_names(fk_expr.expressions))
            if fk:
                foreign_keys.append(fk)

        return foreign_keys

    def _reference_to_fk(
        self, ref: exp.Reference, from_table: str, from_columns: list[str]
    ) -> ForeignKeyDefinition | None:
        """Build a foreign key from a REFERENCES clause."""
        to_table = self._get_table_name(ref.this)
        if not to_table or not from_columns:
            return None

        to_columns = self._column_names(ref.this) if isinstance(ref.this, exp.Schema) else []
        if not to_columns:
            # Assume same column names if not specified
            to_columns = list(from_columns)

        return ForeignKeyDefinition(
            constraint_name=f"fk_{from_table}_{to_table}",
            from_table=from_table,
            from_columns=from_columns,
            to_table=to_table,
            to_columns=to_columns,
        )

    def _attach_indexes(self, schema: SchemaDefinition, sql_content: str) -> None:
        """Parse CREATE INDEX statements and attach them to their tables."""
        for match in _CREATE_INDEX_RE.finditer(sql_content):
            index = IndexDefinition(
                name=match.group(3),
                table=match.group(4),
                columns=_split_names(match.group(5)),
                is_unique=bool(match.group(1)),
                is_clustered=(match.group(2) or "").upper() == "CLUSTERED",
            )
            table = schema.get_table(index.table)
            if table is None:
                logger.debug(f"Index {index.name} references unknown table {index.table}")
                continue
            table.indexes.append(index)

    def derive_relationships(self, schema: SchemaDefinition) -> list[SchemaRelationship]:
        """Derive cardinality-annotated relationships from foreign keys.

        A foreign key whose column set is unique in its table is ONE_TO_ONE,
        otherwise MANY_TO_ONE. A pure junction table additionally yields a
        synthesized MANY_TO_MANY edge between the two tables it links.

        Args:
            schema: Parsed schema

        Returns:
            List of relationships
        """
        relationships: list[SchemaRelationship] = []

        for fk in schema.foreign_keys:
            table = schema.get_table(fk.from_table)
            unique = table is not None and table.is_unique_column_set(fk.from_columns)
            relationships.append(
                SchemaRelationship(
                    from_table=fk.from_table,
                    from_column=",".join(fk.from_columns),
                    to_table=fk.to_table,
                    to_column=",".join(fk.to_columns),
                    cardinality=Cardinality.ONE_TO_ONE if unique else Cardinality.MANY_TO_ONE,
                    name=fk.constraint_name,
                )
            )

        for table in schema.tables:
            junction = self._junction_edge(table, schema)
            if junction:
                relationships.append(junction)

        return relationships

    def _junction_edge(
        self, table: TableDefinition, schema: SchemaDefinition
    ) -> SchemaRelationship | None:
        """Synthesize a MANY_TO_MANY edge if the table is a pure junction table.

        The primary key must be exactly the two single-column foreign keys;
        any other column must be an audit column such as ``created_at``.
        """
        if len(table.primary_key) != 2:
            return None

        pk = {c.lower() for c in table.primary_key}
        extra = [c.name for c in table.columns if c.name.lower() not in pk]
        if any(not _AUDIT_COLUMN_RE.match(name) for name in extra):
            return None

        fks = [
            fk for fk in schema.foreign_keys
            if fk.from_table.lower() == table.name.lower() and len(fk.from_columns) == 1
        ]
        if len(fks) != 2 or {fk.from_columns[0].lower() for fk in fks} != pk:
            return None

        left, right = fks
        return SchemaRelationship(
            from_table=left.to_table,
            from_column=left.to_columns[0],
            to_table=right.to_table,
            to_column=right.to_columns[0],
            cardinality=Cardinality.MANY_TO_MANY,
            name=table.name,
            synthesized=True,
        )

    def _parse_with_regex(
        self, sql_content: str, source_file: str | None = None
    ) -> SchemaDefinition:
        """Fallback regex-based parsing for when sqlglot fails."""
        tables: list[TableDefinition] = []
        foreign_keys: list[ForeignKeyDefinition] = []

        for match in _CREATE_TABLE_RE.finditer(sql_content):
            table_name = match.group(1)
            parts = self._split_definitions(match.group(2))

            columns = self._parse_columns_regex(parts)
            primary_key = [c.name for c in columns if c.is_primary_key]
            unique_constraints: list[list[str]] = []

            for part in parts:
                pk_match = _TABLE_PK_RE.search(part)
                if pk_match and not self._is_column_part(part):
                    for name in _split_names(pk_match.group(1)):
                        if name not in primary_key:
                            primary_key.append(name)
                unique_match = _TABLE_UNIQUE_RE.search(part)
                if unique_match and not self._is_column_part(part):
                    unique_constraints.append(_split_names(unique_match.group(1)))

                fk_match = _TABLE_FK_RE.search(part)
                if fk_match:
                    foreign_keys.append(
                        ForeignKeyDefinition(
                            constraint_name=f"fk_{table_name}_{fk_match.group(2)}",
                            from_table=table_name,
                            from_columns=_split_names(fk_match.group(1)),
                            to_table=fk_match.group(2),
                            to_columns=_split_names(fk_match.group(3)),
                        )
                    )
                elif self._is_column_part(part):
                    ref_match = _INLINE_REF_RE.match(part.strip())
                    if ref_match:
                        from_col = ref_match.group(1)
                        to_cols = _split_names(ref_match.group(3) or "") or [from_col]
                        foreign_keys.append(
                            ForeignKeyDefinition(
                                constraint_name=f"fk_{table_name}_{ref_match.group(2)}",
                                from_table=table_name,
                                from_columns=[from_col],
                                to_table=ref_match.group(2),
                                to_columns=to_cols,
                            )
                        )

            tables.append(
                TableDefinition(
                    name=table_name,
                    columns=columns,
                    primary_key=primary_key,
                    unique_constraints=unique_constraints,
                )
            )

        return SchemaDefinition(tables=tables, foreign_keys=foreign_keys, source_file=source_file)

    @staticmethod
    def _split_definitions(columns_str: str) -> list[str]:
        """Split the body of CREATE TABLE by comma, respecting parentheses."""
        parts = []
        current: list[str] = []
        depth = 0
        for char in columns_str:
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == "," and depth == 0:
                parts.append("".join(current).strip())
                current = []
                continue
            current.append(char)
        if current:
            parts.append("".join(current).strip())
        return [p for p in parts if p]

    @staticmethod
    def _is_column_part(part: str) -> bool:
        """True when a definition is a column rather than a table constraint."""
        return not part.strip().upper().startswith(
            ("PRIMARY KEY", "FOREIGN KEY", "UNIQUE", "CHECK", "CONSTRAINT", "INDEX", "KEY ")
        )

    def _parse_columns_regex(self, parts: list[str]) -> list[ColumnDefinition]:
        """Parse column definitions using regex."""
        columns = []

        for part in parts:
            if not self._is_column_part(part):
                continue

            col_match = re.match(
                r"[\[`\"]?(\w+)[\]`\"]?\s+(\w+(?:\s*\([^)]+\))?)\s*(.*)",
                part.strip(),
                re.IGNORECASE | re.DOTALL,
            )
            if not col_match:
                continue

            constraints = col_match.group(3).upper()
            is_pk = "PRIMARY KEY" in constraints
            columns.append(
                ColumnDefinition(
                    name=col_match.group(1),
                    data_type=col_match.group(2),
                    nullable="NOT NULL" not in constraints and not is_pk,
                    is_primary_key=is_pk,
                    is_unique="UNIQUE" in constraints,
                )
            )

        return columns
