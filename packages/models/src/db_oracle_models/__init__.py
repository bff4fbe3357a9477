"""Shared Pydantic models for db-oracle."""

from db_oracle_models.schema import (
    ArgumentDirection,
    ColumnInfo,
    ConstraintInfo,
    ConstraintType,
    IndexInfo,
    RoutineArgument,
    RoutineInfo,
    RoutineKind,
    SchemaSnapshot,
    SequenceInfo,
    TableInfo,
    TableKind,
    TypeAttribute,
    UserTypeInfo,
    UserTypeKind,
)

__version__ = "0.1.0"

__all__ = [
    # Tables
    "ColumnInfo",
    "ConstraintInfo",
    "ConstraintType",
    "IndexInfo",
    "TableInfo",
    "TableKind",
    # Routines
    "ArgumentDirection",
    "RoutineArgument",
    "RoutineInfo",
    "RoutineKind",
    # Types and sequences
    "SequenceInfo",
    "TypeAttribute",
    "UserTypeInfo",
    "UserTypeKind",
    # Snapshot
    "SchemaSnapshot",
]
