"""Zendesk Support field maps for the unified ticketing entities."""

from __future__ import annotations

from src.hub.ticketing.registry import ACCOUNT, ATTACHMENT, CONTACT, TEAM, TICKET, USER
from src.hub.unification.mapping import FieldRule, ProviderFieldMap

PROVIDER = "zendesk"

# Zendesk has five statuses; the canonical schema only knows OPEN/CLOSED.
_STATUS = {"OPEN": "open", "CLOSED": "closed"}
_STATUS_INBOUND = {"new": "OPEN", "pending": "OPEN", "hold": "OPEN", "solved": "CLOSED"}

_PRIORITY = {"LOW": "low", "MEDIUM": "normal", "HIGH": "high", "URGENT": "urgent"}

_TYPE = {"BUG": "problem", "SUBTASK": "task", "TASK": "task", "INCIDENT": "incident"}


ZENDESK_FIELD_MAPS: dict[str, ProviderFieldMap] = {
    TICKET: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=TICKET,
        remote_id_path="id",
        fields={
            "name": FieldRule("subject"),
            "description": FieldRule("comment.body", inbound_path="description"),
            "status": FieldRule("status", values=_STATUS, inbound_values=_STATUS_INBOUND),
            "priority": FieldRule("priority", values=_PRIORITY),
            "type": FieldRule("type", values=_TYPE),
            "parent_ticket": FieldRule("problem_id", kind="reference"),
            "due_date": FieldRule("due_at", kind="datetime"),
            "tags": FieldRule("tags", kind="list"),
            "assigned_to": FieldRule("collaborator_ids", kind="list"),
            "completed_at": FieldRule("solved_at", kind="datetime"),
        },
    ),
    ACCOUNT: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=ACCOUNT,
        remote_id_path="id",
        fields={
            "name": FieldRule("name"),
            "domains": FieldRule("domain_names", kind="list"),
        },
    ),
    CONTACT: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=CONTACT,
        remote_id_path="id",
        fields={
            "name": FieldRule("name"),
            "email_address": FieldRule("email"),
            "phone_number": FieldRule("phone"),
            "details": FieldRule("details"),
        },
    ),
    TEAM: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=TEAM,
        remote_id_path="id",
        fields={
            "name": FieldRule("name"),
            "description": FieldRule("description"),
        },
    ),
    USER: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=USER,
        remote_id_path="id",
        fields={
            "name": FieldRule("name"),
            "email_address": FieldRule("email"),
        },
    ),
    ATTACHMENT: ProviderFieldMap(
        provider=PROVIDER,
        entity_type=ATTACHMENT,
        remote_id_path="upload.attachment.id",
        fields={
            "file_name": FieldRule("filename", inbound_path="upload.attachment.file_name"),
            "file_url": FieldRule("url", inbound_path="upload.attachment.content_url"),
        },
    ),
}
