import json
from types import SimpleNamespace

import pytest

from sqlupsert.exceptions import ConfigurationError
from sqlupsert.mapping import MISSING, ClassMap, PropertyMapping, quote_identifier
from sqlupsert.mapping.column_info import int_, nvarchar
from sqlupsert.services.activator import ResultRowLookup


class Order:
    pass


def _order_map(**kwargs) -> ClassMap:
    return ClassMap(
        Order,
        [
            PropertyMapping("OrderId", int_(), is_key=True),
            PropertyMapping("Customer", nvarchar(50)),
            PropertyMapping("Payload", nvarchar("MAX"), to_db=json.dumps, from_db=json.loads),
        ],
        **kwargs,
    )


def test_ordinals_follow_declaration_order():
    class_map = _order_map()

    assert [prop.ordinal for prop in class_map.properties] == [0, 1, 2]
    assert class_map.property_names == ("OrderId", "Customer", "Payload")
    assert [prop.name for prop in class_map.key_properties] == ["OrderId"]
    assert [prop.name for prop in class_map.value_properties] == ["Customer", "Payload"]
    assert len(class_map) == 3


def test_column_sql_marks_keys_not_null():
    class_map = _order_map()

    assert class_map.get_property("OrderId").column_sql() == "[OrderId] INT NOT NULL"
    assert class_map.get_property("Customer").column_sql() == "[Customer] NVARCHAR(50) NULL"


def test_write_places_converted_value_at_ordinal():
    class_map = _order_map()
    source = SimpleNamespace(OrderId=7, Customer="ACME", Payload={"lines": 2})
    record = class_map.new_record()

    for prop in reversed(class_map.properties):
        prop.write(record, source)

    assert record == [7, "ACME", '{"lines": 2}']


def test_getter_overrides_attribute_access():
    prop = PropertyMapping("Total", int_(), getter=lambda row: row["total"] * 2)

    assert prop.get_value({"total": 21}) == 42


def test_read_applies_converter_and_reports_missing_columns():
    class_map = _order_map()
    lookup = ResultRowLookup({"OrderId": 1, "Payload": '{"a": 1}'})

    assert class_map.get_property("Payload").read(lookup) == {"a": 1}
    assert class_map.get_property("Customer").read(lookup) is MISSING
    assert class_map.get_property("Payload").read(ResultRowLookup({"Payload": None})) is None


def test_extra_criteria_is_normalized():
    assert _order_map(extra_criteria="  ").extra_criteria is None
    assert _order_map(extra_criteria=" [S].[Rev] > [T].[Rev] ").extra_criteria == "[S].[Rev] > [T].[Rev]"


def test_quote_identifier_escapes_closing_bracket():
    assert quote_identifier("odd]name") == "[odd]]name]"


@pytest.mark.parametrize(
    "properties",
    [
        [],
        [PropertyMapping("Id", int_(), is_key=True), PropertyMapping("Id", int_())],
        [PropertyMapping("Name", nvarchar())],
    ],
)
def test_invalid_maps_fail_fast(properties):
    with pytest.raises(ConfigurationError):
        ClassMap(Order, properties)


def test_append_only_rejects_keys_and_accepts_keyless_maps():
    with pytest.raises(ConfigurationError):
        ClassMap(Order, [PropertyMapping("Id", int_(), is_key=True)], append_only=True)

    class_map = ClassMap(Order, [PropertyMapping("Message", nvarchar())], append_only=True)
    assert class_map.key_properties == ()


def test_missing_type_and_unknown_property_raise():
    with pytest.raises(ConfigurationError):
        ClassMap(None, [PropertyMapping("Id", int_(), is_key=True)])

    with pytest.raises(ConfigurationError, match="no mapped property 'Nope'"):
        _order_map().get_property("Nope")
