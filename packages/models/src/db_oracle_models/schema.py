"""Generic schema model for Oracle metadata."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class TableKind(str, Enum):
    """Kind of relation."""

    TABLE = "table"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized_view"


class ConstraintType(str, Enum):
    """Kind of table constraint."""

    PRIMARY_KEY = "primary_key"
    UNIQUE = "unique"
    FOREIGN_KEY = "foreign_key"
    CHECK = "check"


class RoutineKind(str, Enum):
    """Kind of stored routine."""

    PROCEDURE = "procedure"
    FUNCTION = "function"


class ArgumentDirection(str, Enum):
    """Parameter mode of a routine argument."""

    IN = "in"
    OUT = "out"
    IN_OUT = "in_out"


class UserTypeKind(str, Enum):
    """Kind of user-defined SQL type."""

    OBJECT = "object"
    VARRAY = "varray"
    NESTED_TABLE = "nested_table"


# =============================================================================
# Tables
# =============================================================================


class ColumnInfo(BaseModel):
    """A table or view column."""

    name: str = Field(..., description="Column name")
    type: str = Field(..., description="Oracle data type, e.g. VARCHAR2(40 CHAR)")
    generic_type: str = Field(default="other", description="Portable type category")
    nullable: bool = Field(default=True)
    default: str | None = Field(default=None, description="Default expression")
    position: int | None = Field(default=None, description="1-based column position")
    primary_key: bool = Field(default=False)
    identity: bool = Field(default=False, description="Identity column")
    virtual: bool = Field(default=False, description="Virtual (computed) column")
    type_owner: str | None = Field(default=None, description="Owner of a user-defined type")
    comment: str | None = Field(default=None)


class ConstraintInfo(BaseModel):
    """A primary key, unique, foreign key or check constraint."""

    name: str
    type: ConstraintType
    columns: list[str] = Field(default_factory=list)
    referred_schema: str | None = None
    referred_table: str | None = None
    referred_columns: list[str] = Field(default_factory=list)
    on_delete: str | None = Field(default=None, description="Foreign key delete rule")
    condition: str | None = Field(default=None, description="Check condition")
    enabled: bool = True
    deferrable: bool = False


class IndexInfo(BaseModel):
    """An index and its key columns."""

    name: str
    columns: list[str] = Field(default_factory=list)
    unique: bool = False
    index_type: str | None = None


class TableInfo(BaseModel):
    """A table, view or materialized view with its structure."""

    model_config = {"populate_by_name": True}

    name: str = Field(..., description="Table name (without schema)")
    schema_name: str = Field(..., description="Owning schema", alias="schema")
    kind: TableKind = Field(default=TableKind.TABLE)
    comment: str | None = None
    columns: list[ColumnInfo] = Field(default_factory=list)
    constraints: list[ConstraintInfo] = Field(default_factory=list)
    indexes: list[IndexInfo] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        """Schema-qualified table name."""
        return f"{self.schema_name}.{self.name}"

    def get_column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def primary_key(self) -> ConstraintInfo | None:
        for constraint in self.constraints:
            if constraint.type == ConstraintType.PRIMARY_KEY:
                return constraint
        return None

    def foreign_keys(self) -> list[ConstraintInfo]:
        return [c for c in self.constraints if c.type == ConstraintType.FOREIGN_KEY]


# =============================================================================
# Routines
# =============================================================================


class RoutineArgument(BaseModel):
    """One argument of a procedure or function."""

    name: str | None = Field(default=None, description="Argument name (None for return value)")
    position: int = Field(..., description="Position; 0 is a function's return value")
    data_type: str | None = None
    direction: ArgumentDirection = ArgumentDirection.IN
    type_name: str | None = Field(
        default=None, description="Qualified name of an object or collection type"
    )
    has_default: bool = False


class RoutineInfo(BaseModel):
    """A standalone or packaged procedure or function."""

    model_config = {"populate_by_name": True}

    name: str
    schema_name: str = Field(..., alias="schema")
    package: str | None = None
    kind: RoutineKind = RoutineKind.PROCEDURE
    overload: str | None = None
    arguments: list[RoutineArgument] = Field(default_factory=list)
    return_type: str | None = None

    @property
    def full_name(self) -> str:
        if self.package:
            return f"{self.schema_name}.{self.package}.{self.name}"
        return f"{self.schema_name}.{self.name}"

    def signature(self) -> str:
        """Render a PL/SQL-like signature, e.g. ``HR.GET_NAME(P_ID IN NUMBER) RETURN VARCHAR2``."""
        parts = []
        for arg in self.arguments:
            mode = arg.direction.value.upper().replace("_", " ")
            parts.append(f"{arg.name} {mode} {arg.type_name or arg.data_type}")
        text = f"{self.full_name}({', '.join(parts)})"
        if self.kind == RoutineKind.FUNCTION and self.return_type:
            text += f" RETURN {self.return_type}"
        return text


# =============================================================================
# User-defined types and sequences
# =============================================================================


class TypeAttribute(BaseModel):
    """An attribute of an object type."""

    name: str
    type: str
    position: int
    type_owner: str | None = None


class UserTypeInfo(BaseModel):
    """An object type, VARRAY or nested table type."""

    model_config = {"populate_by_name": True}

    name: str
    schema_name: str = Field(..., alias="schema")
    kind: UserTypeKind
    attributes: list[TypeAttribute] = Field(default_factory=list)
    element_type: str | None = None
    max_length: int | None = Field(default=None, description="VARRAY upper bound")

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


class SequenceInfo(BaseModel):
    """A sequence generator."""

    model_config = {"populate_by_name": True}

    name: str
    schema_name: str = Field(..., alias="schema")
    min_value: int | None = None
    max_value: int | None = None
    increment_by: int = 1
    cycle: bool = False
    last_number: int | None = None


# =============================================================================
# Snapshot
# =============================================================================


class SchemaSnapshot(BaseModel):
    """Everything discovered about one or more schemas."""

    version: str = Field(default="1.0.0")
    provider_id: str = Field(..., description="Connection identifier")
    dialect: str = Field(default="oracle")
    server_version: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    schemas: list[str] = Field(default_factory=list)
    tables: list[TableInfo] = Field(default_factory=list)
    routines: list[RoutineInfo] = Field(default_factory=list)
    types: list[UserTypeInfo] = Field(default_factory=list)
    sequences: list[SequenceInfo] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(
        default_factory=list, description="Objects that could not be introspected"
    )

    def get_table(self, full_name: str) -> TableInfo | None:
        """Get table by schema-qualified name (case-insensitive)."""
        wanted = full_name.upper()
        for t in self.tables:
            if t.full_name.upper() == wanted:
                return t
        return None

    def tables_in(self, schema: str) -> list[TableInfo]:
        return [t for t in self.tables if t.schema_name == schema]

    def count_by_kind(self) -> dict[str, int]:
        """Count tables by kind."""
        counts: dict[str, int] = {}
        for t in self.tables:
            counts[t.kind.value] = counts.get(t.kind.value, 0) + 1
        return counts
