import pytest

from ddlport.services.sql_conversion.nodes import TypeSpec
from ddlport.services.sql_conversion.utils.config_loader import load_json_from_conversion_config
from ddlport.services.sql_conversion.utils.type_mapping import TypeMapper


@pytest.fixture(scope="module")
def type_mapper() -> TypeMapper:
    config = load_json_from_conversion_config(None, "sqlserver", "postgres", "ddl_conversion_rules", "data_types.json")
    return TypeMapper.from_config(config)


@pytest.mark.parametrize(
    "name, args, expected",
    [
        ("INT", (), "INTEGER"),
        ("int", (), "INTEGER"),
        ("TINYINT", (), "SMALLINT"),
        ("BIT", (), "BOOLEAN"),
        ("DECIMAL", ("18", "2"), "NUMERIC(18,2)"),
        ("MONEY", (), "NUMERIC(19,4)"),
        ("FLOAT", ("53",), "DOUBLE PRECISION"),
        ("NVARCHAR", ("MAX",), "TEXT"),
        ("NVARCHAR", ("50",), "VARCHAR(50)"),
        ("NCHAR", ("3",), "CHAR(3)"),
        ("SYSNAME", (), "VARCHAR(128)"),
        ("DATETIME2", ("7",), "TIMESTAMP(6)"),
        ("DATETIME2", (), "TIMESTAMP(6)"),
        ("DATETIME2", ("3",), "TIMESTAMP(3)"),
        ("DATETIME", (), "TIMESTAMP(3)"),
        ("DATETIMEOFFSET", ("7",), "TIMESTAMPTZ(6)"),
        ("DATE", (), "DATE"),
        ("UNIQUEIDENTIFIER", (), "UUID"),
        ("VARBINARY", ("MAX",), "BYTEA"),
        ("ROWVERSION", (), "BYTEA"),
        ("GEOGRAPHY", (), "geography"),
    ],
)
def test_source_types(type_mapper, name, args, expected):
    mapping = type_mapper.map(TypeSpec(name, args))

    assert mapping.mapped
    assert mapping.target.sql() == expected


@pytest.mark.parametrize(
    "name, args",
    [
        ("INT", ()),
        ("NVARCHAR", ("MAX",)),
        ("NVARCHAR", ("50",)),
        ("DECIMAL", ("18", "2")),
        ("DATETIME2", ("7",)),
        ("DATETIMEOFFSET", ()),
        ("FLOAT", ()),
        ("UNIQUEIDENTIFIER", ()),
        ("GEOGRAPHY", ()),
    ],
)
def test_mapping_a_mapped_type_changes_nothing(type_mapper, name, args):
    once = type_mapper.map(TypeSpec(name, args)).target
    twice = type_mapper.map(once)

    assert twice.mapped
    assert twice.target.sql() == once.sql()


def test_precision_above_target_limit_is_noted(type_mapper):
    mapping = type_mapper.map(TypeSpec("DATETIME2", ("7",)))

    assert mapping.note == "precision 7 clamped to 6"


def test_flagged_type(type_mapper):
    assert type_mapper.map(TypeSpec("GEOGRAPHY")).flag == "uses_geography"


def test_unknown_type_is_kept(type_mapper):
    mapping = type_mapper.map(TypeSpec("HIERARCHYID"))

    assert not mapping.mapped
    assert mapping.target == TypeSpec("HIERARCHYID")


def test_first_matching_rule_wins():
    mapper = TypeMapper([
        {"source": "VARCHAR", "when_args": ["MAX"], "target": "TEXT", "args": "drop"},
        {"source": "VARCHAR", "target": "VARCHAR", "args": "keep"},
    ])

    assert mapper.map(TypeSpec("varchar", ("max",))).target.sql() == "TEXT"
    assert mapper.map(TypeSpec("varchar", ("10",))).target.sql() == "VARCHAR(10)"
