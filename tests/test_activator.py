import json
from dataclasses import dataclass, field
from decimal import Decimal

from sqlupsert.mapping import AutoMapper, ClassMap, PropertyMapping, mapped
from sqlupsert.mapping.column_info import int_, nvarchar
from sqlupsert.services.activator import Activator, ResultRowLookup
from tests.helpers.stubs import Customer


@dataclass(frozen=True)
class Setting:
    id: int
    value: str = mapped(default="unset")
    retries: int = mapped(default_factory=lambda: 3)


@dataclass
class Guarded:
    id: int

    def __post_init__(self):
        raise AssertionError("constructor must not run during activation")


class Plain:
    pass


def _activate(cls, row, class_map=None):
    class_map = class_map or AutoMapper().get_map(cls)
    return Activator(cls, class_map).create_instance(ResultRowLookup(row))


def test_full_row_round_trips_into_an_equal_instance():
    instance = _activate(Customer, {"id": 4, "name": "Ada", "balance": Decimal("12.50")})

    assert instance == Customer(4, "Ada", Decimal("12.50"))


def test_subset_rows_fall_back_to_declared_defaults_or_none():
    customer = _activate(Customer, {"id": 1})
    setting = _activate(Setting, {"id": 9})

    assert customer.name is None
    assert customer.balance is None
    assert setting == Setting(9, "unset", 3)


def test_lookup_is_case_sensitive_and_ignores_extra_columns():
    instance = _activate(Customer, {"ID": 1, "name": "Bo", "unmapped": True})

    assert instance.id is None
    assert instance.name == "Bo"
    assert not hasattr(instance, "unmapped")


def test_frozen_dataclasses_are_populated_without_calling_init():
    setting = _activate(Setting, {"id": 1, "value": "on", "retries": 0})
    guarded = _activate(Guarded, {"id": 2})

    assert (setting.id, setting.value, setting.retries) == (1, "on", 0)
    assert guarded.id == 2


def test_explicit_maps_activate_plain_classes_with_converters():
    class_map = ClassMap(
        Plain,
        [
            PropertyMapping("Id", int_(), is_key=True),
            PropertyMapping("Tags", nvarchar("MAX"), from_db=json.loads),
            PropertyMapping("Note", nvarchar()),
        ],
    )

    instance = _activate(Plain, {"Id": 3, "Tags": '["a", "b"]'}, class_map)

    assert isinstance(instance, Plain)
    assert instance.Id == 3
    assert instance.Tags == ["a", "b"]
    assert instance.Note is None


def test_lookup_advances_between_rows():
    activator = Activator(Customer, AutoMapper().get_map(Customer))
    lookup = ResultRowLookup()

    first = activator.create_instance(lookup.advance({"id": 1, "name": "a"}))
    second = activator.create_instance(lookup.advance({"id": 2, "name": "b"}))

    assert (first.id, first.name) == (1, "a")
    assert (second.id, second.name) == (2, "b")


def test_default_factories_are_called_per_instance():
    @dataclass
    class Bag:
        id: int
        items: str = field(default_factory=lambda: "fresh")

    class_map = ClassMap(Bag, [PropertyMapping("id", int_(), is_key=True), PropertyMapping("items", nvarchar())])

    assert _activate(Bag, {"id": 1}, class_map).items == "fresh"
