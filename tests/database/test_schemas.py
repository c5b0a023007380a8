from fieldmap.database.schemas import (
    GLOBAL_TOGGLES_TABLE,
    INTEGRATION_MAPPING_STEPS_TABLE,
    INTEGRATION_MAPPINGS_TABLE,
    Base,
    create_schema_ddl,
)


def test_schema_declares_engine_tables():
    assert set(Base.metadata.tables) == {
        GLOBAL_TOGGLES_TABLE,
        INTEGRATION_MAPPINGS_TABLE,
        INTEGRATION_MAPPING_STEPS_TABLE,
    }


def test_ddl_is_idempotent_and_parents_first():
    statements = create_schema_ddl()
    creates = [s for s in statements if s.startswith("CREATE TABLE")]

    assert all("IF NOT EXISTS" in s for s in statements)
    mappings_at = next(i for i, s in enumerate(creates) if f"EXISTS {INTEGRATION_MAPPINGS_TABLE} " in s)
    steps_at = next(i for i, s in enumerate(creates) if INTEGRATION_MAPPING_STEPS_TABLE in s)
    assert mappings_at < steps_at


def test_toggle_table_constraints():
    ddl = next(s for s in create_schema_ddl() if f"EXISTS {GLOBAL_TOGGLES_TABLE} " in s)

    assert "CONSTRAINT uq_global_toggles_key UNIQUE (key)" in ddl
    assert "updated_at >= created_at" in ddl
    assert "VARCHAR(100)" in ddl
    assert "VARCHAR(500)" in ddl
    assert "VARCHAR(200)" in ddl


def test_steps_table_cascades_and_stores_jsonb_args():
    ddl = next(s for s in create_schema_ddl() if f"EXISTS {INTEGRATION_MAPPING_STEPS_TABLE} " in s)

    assert "ON DELETE CASCADE" in ddl
    assert "JSONB" in ddl
    assert "PRIMARY KEY (integration_key, position)" in ddl
