"""
🗃️ Database Schemas for the mapping engine
Toggle and integration-mapping tables for the PostgreSQL backend

Features:
- Unique toggle keys enforced by the database
- Step order stored explicitly (position) and unique per mapping
- Steps cascade-deleted with their mapping
- Transformer args stored as JSONB
"""

from typing import List

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    PrimaryKeyConstraint, String, Text, UniqueConstraint
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.schema import CreateIndex, CreateTable
from sqlalchemy.sql import func

Base = declarative_base()

GLOBAL_TOGGLES_TABLE = 'global_toggles'
INTEGRATION_MAPPINGS_TABLE = 'integration_mappings'
INTEGRATION_MAPPING_STEPS_TABLE = 'integration_mapping_steps'

# =============================================================================
# TOGGLE TABLES
# =============================================================================

class GlobalToggleRecord(Base):
    """
    Feature flags gating integrations

    Primary key: id
    Unique: key
    """
    __tablename__ = GLOBAL_TOGGLES_TABLE

    id = Column(UUID(as_uuid=True), primary_key=True, comment="Surrogate key")
    key = Column(String(100), nullable=False, comment="Stable identifier used by callers")
    description = Column(String(500), nullable=False, default='', comment="Human-readable description")
    is_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_by = Column(String(200), nullable=True, comment="Actor of the last mutation")

    __table_args__ = (
        UniqueConstraint('key', name='uq_global_toggles_key'),
        Index('idx_global_toggles_enabled', 'is_enabled'),
        CheckConstraint('updated_at >= created_at', name='chk_global_toggles_timestamps'),
    )


# =============================================================================
# MAPPING TABLES
# =============================================================================

class IntegrationMappingRecord(Base):
    """
    One row per integration; steps live in integration_mapping_steps
    """
    __tablename__ = INTEGRATION_MAPPINGS_TABLE

    integration_key = Column(String(100), nullable=False, comment="Joins to global_toggles.key")
    version = Column(Integer, nullable=False, default=1, comment="Incremented on every update")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_by = Column(String(200), nullable=True)

    __table_args__ = (
        PrimaryKeyConstraint('integration_key', name='pk_integration_mappings'),
        CheckConstraint('version >= 1', name='chk_integration_mappings_version'),
        CheckConstraint('updated_at >= created_at', name='chk_integration_mappings_timestamps'),
    )


class IntegrationMappingStepRecord(Base):
    """
    Ordered chain steps

    Primary key: (integration_key, position)
    """
    __tablename__ = INTEGRATION_MAPPING_STEPS_TABLE

    integration_key = Column(
        String(100),
        ForeignKey(f'{INTEGRATION_MAPPINGS_TABLE}.integration_key', ondelete='CASCADE'),
        nullable=False,
    )
    position = Column(Integer, nullable=False, comment="Zero-based application order")
    source_field = Column(Text, nullable=False)
    target_field = Column(Text, nullable=False)
    transformer_name = Column(String(200), nullable=False, comment="Resolved at execution time")
    args = Column(JSONB, nullable=True, comment="Transformer arguments")

    __table_args__ = (
        PrimaryKeyConstraint('integration_key', 'position', name='pk_integration_mapping_steps'),
        Index('idx_mapping_steps_transformer', 'transformer_name'),
        CheckConstraint('position >= 0', name='chk_mapping_steps_position'),
    )


def create_schema_ddl() -> List[str]:
    """
    Render idempotent PostgreSQL DDL for every table and index, parents first
    """
    dialect = postgresql.dialect()
    statements: List[str] = []

    for table in Base.metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip())

    return statements
