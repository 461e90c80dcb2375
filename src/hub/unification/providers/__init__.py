"""Built-in provider field maps."""

from src.hub.unification.providers.jira import JIRA_FIELD_MAPS
from src.hub.unification.providers.zendesk import ZENDESK_FIELD_MAPS

BUILTIN_FIELD_MAPS = {
    "zendesk": ZENDESK_FIELD_MAPS,
    "jira": JIRA_FIELD_MAPS,
}

__all__ = ["BUILTIN_FIELD_MAPS", "JIRA_FIELD_MAPS", "ZENDESK_FIELD_MAPS"]
