from __future__ import annotations

from typing import Any

from services.registry.app.schemas import CollaboratorMap, CollaboratorProperties


OWNER = "Owner"
COLLABORATOR = "Collaborator"

# Rejected as collaborator map keys.
_UNSAFE_KEYS = frozenset({"__proto__", "constructor", "prototype"})


def is_prototype_pollution_key(key: str) -> bool:
    return key in _UNSAFE_KEYS


def is_owner(collaborators: CollaboratorMap | None, email: str) -> bool:
    entry = (collaborators or {}).get(email)
    return entry is not None and entry.permission == OWNER


def is_collaborator(collaborators: CollaboratorMap | None, email: str) -> bool:
    entry = (collaborators or {}).get(email)
    return entry is not None and entry.permission == COLLABORATOR


def is_account_id_collaborator(collaborators: CollaboratorMap | None, account_id: str) -> bool:
    return any(p.account_id == account_id for p in (collaborators or {}).values())


def owner_account_id(collaborators: CollaboratorMap | None) -> str | None:
    for props in (collaborators or {}).values():
        if props.permission == OWNER:
            return props.account_id
    return None


def annotate_current_account(collaborators: CollaboratorMap | None, account_id: str) -> CollaboratorMap:
    """
    Return a copy of the map with `is_current_account` set on the caller's entries.

    The input is left untouched so persisted state never carries the annotation.
    """
    out: CollaboratorMap = {}
    for email, props in (collaborators or {}).items():
        if props.account_id == account_id:
            out[email] = props.model_copy(update={"is_current_account": True})
        else:
            out[email] = props.model_copy()
    return out


def strip_current_account(collaborators: CollaboratorMap | None) -> CollaboratorMap:
    return {
        email: props.model_copy(update={"is_current_account": None})
        for email, props in (collaborators or {}).items()
    }


def to_storage(collaborators: CollaboratorMap | None) -> dict[str, dict[str, Any]]:
    """Serialize for the JSON column; the response-only annotation is always dropped."""
    return {
        email: props.model_dump(mode="json", exclude={"is_current_account"})
        for email, props in strip_current_account(collaborators).items()
    }


def from_storage(raw: dict[str, Any] | None) -> CollaboratorMap:
    return {email: CollaboratorProperties.model_validate(props) for email, props in (raw or {}).items()}
