from typing import Dict, Tuple

from sqlalchemy import Table

from ido_core.models import history_table

from ..dto import TableDescriptor

# History tables of the IDO schema with the column their age is measured by,
# in the order the cleanup handler of Icinga's db_ido walks them.
KNOWN_TABLES: Tuple[TableDescriptor, ...] = (
    TableDescriptor("acknowledgements", "entry_time", "acknowledgement_id"),
    TableDescriptor("commenthistory", "entry_time", "commenthistory_id"),
    TableDescriptor("contactnotifications", "start_time", "contactnotification_id"),
    TableDescriptor("contactnotificationmethods", "start_time", "contactnotificationmethod_id"),
    TableDescriptor("downtimehistory", "entry_time", "downtimehistory_id"),
    TableDescriptor("eventhandlers", "start_time", "eventhandler_id"),
    TableDescriptor("externalcommands", "entry_time", "externalcommand_id"),
    TableDescriptor("flappinghistory", "event_time", "flappinghistory_id"),
    TableDescriptor("hostchecks", "start_time", "hostcheck_id"),
    TableDescriptor("logentries", "logentry_time", "logentry_id"),
    TableDescriptor("notifications", "start_time", "notification_id"),
    TableDescriptor("processevents", "event_time", "processevent_id"),
    TableDescriptor("statehistory", "state_time", "statehistory_id"),
    TableDescriptor("servicechecks", "start_time", "servicecheck_id"),
    TableDescriptor("systemcommands", "start_time", "systemcommand_id"),
)

DEFAULT_AGES: Dict[str, int] = {
    "statehistory": 365,
    "contactnotifications": 365,
    "notifications": 365,
    "logentries": 365,
    "downtimehistory": 365,
    "commenthistory": 365,
    "eventhandlers": 365,
}

TABLE_NAMES = frozenset(table.name for table in KNOWN_TABLES)


def table_for(descriptor: TableDescriptor) -> Table:
    return history_table(descriptor.name, descriptor.id_column, descriptor.time_column)

