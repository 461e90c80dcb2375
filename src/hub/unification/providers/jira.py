"""Jira Cloud field maps for the unified ticketing entities.

Jira nests issue attributes under ``fields`` and wraps enumerations as
``{"name": ...}`` objects.
"""

from __future__ import annotations

from src.hub.ticketing.registry import ATTACHMENT, TICKET, USER
from src.hub.unification.mapping import FieldRule, ProviderFieldMap

PROVIDER = "jira"

_PRIORITY = {"LOW": "Low", "MEDIUM": "Medium", "HIGH": "High", "URGENT": "Highest"}

_TYPE = {"BUG": "Bug", "SUBTASK": "Subtask", "TASK": "Task"}


JIRA_FIELD_MAPS: dict[str, ProviderFieldMap] = {
    TICKET: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=TICKET,
        remote_id_path="id",
        fields={
            "name": FieldRule("fields.summary"),
            "description": FieldRule("fields.description"),
            "status": FieldRule("fields.status", kind="named"),
            "priority": FieldRule("fields.priority", kind="named", values=_PRIORITY),
            "type": FieldRule("fields.issuetype", kind="named", values=_TYPE),
            "due_date": FieldRule("fields.duedate", kind="datetime"),
            "tags": FieldRule("fields.labels", kind="list"),
            "parent_ticket": FieldRule("fields.parent.id", kind="reference"),
        },
    ),
    USER: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=USER,
        remote_id_path="accountId",
        fields={
            "name": FieldRule("displayName"),
            "email_address": FieldRule("emailAddress"),
        },
    ),
    ATTACHMENT: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=ATTACHMENT,
        remote_id_path="id",
        fields={
            "file_name": FieldRule("filename"),
            "file_url": FieldRule("content"),
        },
    ),
}
