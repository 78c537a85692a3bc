from sqlupsert.services.activator import Activator, ResultRowLookup
from sqlupsert.services.criteria import Parameter, bind_criteria
from sqlupsert.services.row_encoder import RowEncoder
from sqlupsert.services.schema_manager import SchemaManager
from sqlupsert.services.upsert_helper import UpsertHelper

__all__ = [
	"Activator",
	"Parameter",
	"ResultRowLookup",
	"RowEncoder",
	"SchemaManager",
	"UpsertHelper",
	"bind_criteria",
]
