"""Data dictionary queries.

Every template reads ``{scope}_*`` views so the same SQL serves the
``ALL_*`` views (objects the session can access) and the ``DBA_*``
views (everything, needs SELECT_CATALOG_ROLE). Only the scope prefix is
interpolated; names are always passed as bind variables.
"""

SCOPES = ("all", "dba")


def render(template: str, scope: str = "all") -> str:
    """Render a dictionary query for the given view scope.

    Raises:
        ValueError: If scope is not 'all' or 'dba'
    """
    scope = scope.lower()
    if scope not in SCOPES:
        raise ValueError(f"Unknown dictionary scope: {scope!r} (expected one of {SCOPES})")
    return template.format(scope=scope)


# =============================================================================
# Identifiers
# =============================================================================


def normalize_name(name: str) -> str:
    """Fold an identifier the way Oracle does.

    Unquoted identifiers are stored upper case; a name written in double
    quotes keeps its case.
    """
    name = name.strip()
    if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
        return name[1:-1]
    return name.upper()


def quote_identifier(name: str) -> str:
    """Quote a dictionary-stored identifier for use in SQL text."""
    if not name or '"' in name or "\x00" in name:
        raise ValueError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def qualified_name(schema: str | None, name: str) -> str:
    """Quoted ``"SCHEMA"."NAME"`` (or just ``"NAME"`` without a schema)."""
    if schema:
        return f"{quote_identifier(schema)}.{quote_identifier(name)}"
    return quote_identifier(name)


# =============================================================================
# Session and schemas
# =============================================================================

CURRENT_SCHEMA_SQL = "SELECT SYS_CONTEXT('USERENV', 'CURRENT_SCHEMA') AS current_schema FROM DUAL"

SCHEMAS_SQL = """
SELECT username
FROM {scope}_users
WHERE oracle_maintained = 'N'
ORDER BY username
"""

ALL_SCHEMAS_SQL = """
SELECT username
FROM {scope}_users
ORDER BY username
"""

# =============================================================================
# Tables and columns
# =============================================================================

TABLES_SQL = """
SELECT t.table_name AS name, 'table' AS kind, c.comments AS comments
FROM {scope}_tables t
LEFT JOIN {scope}_tab_comments c
  ON c.owner = t.owner AND c.table_name = t.table_name
WHERE t.owner = :owner
  AND t.nested = 'NO'
  AND t.secondary = 'N'
  AND t.dropped = 'NO'
  AND (t.iot_type IS NULL OR t.iot_type = 'IOT')
  AND NOT EXISTS (
    SELECT 1 FROM {scope}_mviews m
    WHERE m.owner = t.owner AND m.container_name = t.table_name
  )
UNION ALL
SELECT v.view_name AS name, 'view' AS kind, c.comments AS comments
FROM {scope}_views v
LEFT JOIN {scope}_tab_comments c
  ON c.owner = v.owner AND c.table_name = v.view_name
WHERE v.owner = :owner
UNION ALL
SELECT m.mview_name AS name, 'materialized_view' AS kind, c.comments AS comments
FROM {scope}_mviews m
LEFT JOIN {scope}_mview_comments c
  ON c.owner = m.owner AND c.mview_name = m.mview_name
WHERE m.owner = :owner
ORDER BY name
"""

COLUMNS_SQL = """
SELECT c.column_name,
       c.data_type,
       c.data_type_owner,
       c.data_length,
       c.char_length,
       c.char_used,
       c.data_precision,
       c.data_scale,
       c.nullable,
       c.data_default,
       c.column_id,
       c.identity_column,
       c.virtual_column,
       cm.comments
FROM {scope}_tab_cols c
LEFT JOIN {scope}_col_comments cm
  ON cm.owner = c.owner AND cm.table_name = c.table_name AND cm.column_name = c.column_name
WHERE c.owner = :owner
  AND c.table_name = :table_name
  AND c.hidden_column = 'NO'
ORDER BY c.column_id
"""

TABLE_COMMENT_SQL = """
SELECT CASE
         WHEN EXISTS (
           SELECT 1 FROM {scope}_mviews m
           WHERE m.owner = c.owner AND m.mview_name = c.table_name
         ) THEN 'materialized_view'
         WHEN c.table_type = 'VIEW' THEN 'view'
         ELSE 'table'
       END AS kind,
       COALESCE(mc.comments, c.comments) AS comments
FROM {scope}_tab_comments c
LEFT JOIN {scope}_mview_comments mc
  ON mc.owner = c.owner AND mc.mview_name = c.table_name
WHERE c.owner = :owner
  AND c.table_name = :table_name
"""

# =============================================================================
# Constraints and indexes
# =============================================================================

CONSTRAINTS_SQL = """
SELECT c.constraint_name,
       c.constraint_type,
       c.search_condition_vc AS search_condition,
       c.r_owner,
       c.delete_rule,
       c.status,
       c.deferrable,
       cc.column_name,
       cc.position,
       rc.table_name AS r_table_name,
       rc.column_name AS r_column_name
FROM {scope}_constraints c
LEFT JOIN {scope}_cons_columns cc
  ON cc.owner = c.owner AND cc.constraint_name = c.constraint_name
LEFT JOIN {scope}_cons_columns rc
  ON rc.owner = c.r_owner
 AND rc.constraint_name = c.r_constraint_name
 AND rc.position = cc.position
WHERE c.owner = :owner
  AND c.table_name = :table_name
  AND c.constraint_type IN ('P', 'U', 'R', 'C')
ORDER BY c.constraint_name, cc.position, cc.column_name
"""

INDEXES_SQL = """
SELECT i.index_name,
       i.index_type,
       i.uniqueness,
       ic.column_name,
       ic.column_position
FROM {scope}_indexes i
JOIN {scope}_ind_columns ic
  ON ic.index_owner = i.owner AND ic.index_name = i.index_name
WHERE i.table_owner = :owner
  AND i.table_name = :table_name
ORDER BY i.index_name, ic.column_position
"""

# =============================================================================
# Routines
# =============================================================================

ROUTINES_SQL = """
SELECT p.object_name,
       p.procedure_name,
       p.object_type,
       p.overload
FROM {scope}_procedures p
WHERE p.owner = :owner
  AND (
    (p.object_type IN ('PROCEDURE', 'FUNCTION') AND p.procedure_name IS NULL)
    OR (p.object_type = 'PACKAGE' AND p.procedure_name IS NOT NULL)
  )
ORDER BY p.object_name, p.procedure_name, p.overload
"""

ARGUMENTS_SQL = """
SELECT a.package_name,
       a.object_name,
       a.overload,
       a.argument_name,
       a.position,
       a.sequence,
       a.data_type,
       a.in_out,
       a.type_owner,
       a.type_name,
       a.type_subname,
       a.defaulted
FROM {scope}_arguments a
WHERE a.owner = :owner
  AND a.data_level = 0
ORDER BY a.package_name, a.object_name, a.overload, a.sequence
"""

# =============================================================================
# User-defined types and sequences
# =============================================================================

TYPES_SQL = """
SELECT t.type_name,
       t.typecode,
       ct.coll_type,
       ct.upper_bound,
       ct.elem_type_owner,
       ct.elem_type_name,
       ct.length AS elem_length,
       ct.precision AS elem_precision,
       ct.scale AS elem_scale
FROM {scope}_types t
LEFT JOIN {scope}_coll_types ct
  ON ct.owner = t.owner AND ct.type_name = t.type_name
WHERE t.owner = :owner
  AND t.typecode IN ('OBJECT', 'COLLECTION')
ORDER BY t.type_name
"""

TYPE_ATTRIBUTES_SQL = """
SELECT a.type_name,
       a.attr_name,
       a.attr_type_owner,
       a.attr_type_name,
       a.length,
       a.precision,
       a.scale,
       a.attr_no
FROM {scope}_type_attrs a
WHERE a.owner = :owner
ORDER BY a.type_name, a.attr_no
"""

SEQUENCES_SQL = """
SELECT s.sequence_name,
       s.min_value,
       s.max_value,
       s.increment_by,
       s.cycle_flag,
       s.last_number
FROM {scope}_sequences s
WHERE s.sequence_owner = :owner
ORDER BY s.sequence_name
"""

# =============================================================================
# Data
# =============================================================================

TABLE_SAMPLE_SQL = "SELECT * FROM {table} FETCH FIRST :limit ROWS ONLY"
