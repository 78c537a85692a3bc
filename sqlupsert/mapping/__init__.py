from sqlupsert.mapping.auto_mapper import AutoMapper, append_only, mapped, update_criteria
from sqlupsert.mapping.class_map import MISSING, ClassMap, PropertyMapping, quote_identifier
from sqlupsert.mapping.column_info import ColumnInfo

__all__ = [
    "AutoMapper",
    "ClassMap",
    "ColumnInfo",
    "MISSING",
    "PropertyMapping",
    "append_only",
    "mapped",
    "quote_identifier",
    "update_criteria",
]
