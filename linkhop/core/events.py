"""Push-event filter for GitHub webhook notifications.

Decides whether a notification is a push to the tracked branch of the
tracked repository, which is the only event that warrants reloading the
alias table.  Payloads are decoded defensively: anything missing or of the
wrong shape makes the event "not relevant" rather than raising.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

PUSH_EVENT = "push"
BRANCH_REF_PREFIX = "refs/heads/"


@dataclass(frozen=True)
class WebhookConfig:
    """What the webhook handler is watching for."""

    repository: str
    branch: str
    secret: str = ""

    @property
    def insecure(self) -> bool:
        """True when no shared secret is configured and signatures are not checked."""
        return not self.secret

    @property
    def ref(self) -> str:
        return f"{BRANCH_REF_PREFIX}{self.branch}"


@dataclass(frozen=True)
class NotificationEvent:
    """The handful of webhook fields the filter looks at."""

    event_type: str
    repository: str
    ref: str

    @classmethod
    def parse(cls, event_type: str | None, body: bytes) -> NotificationEvent | None:
        """Decode a raw webhook body, returning None if it lacks the needed fields."""
        try:
            payload: Any = json.loads(body)
        except (ValueError, RecursionError):
            logger.debug("Webhook body is not valid JSON")
            return None

        if not isinstance(payload, dict):
            return None

        repository = payload.get("repository")
        full_name = repository.get("full_name") if isinstance(repository, dict) else None
        ref = payload.get("ref")

        if not isinstance(full_name, str) or not isinstance(ref, str):
            logger.debug("Webhook body lacks repository.full_name or ref")
            return None

        return cls(event_type=event_type or "", repository=full_name, ref=ref)


def is_push_event(event_type: str | None) -> bool:
    return (event_type or "").lower() == PUSH_EVENT


def is_relevant_push(event: NotificationEvent | None, config: WebhookConfig) -> bool:
    """True only for a push to ``config.branch`` of ``config.repository``.

    Repository and ref are compared case-insensitively, as GitHub treats
    them.
    """
    if event is None:
        return False

    if not is_push_event(event.event_type):
        return False

    if event.repository.lower() != config.repository.lower():
        logger.debug(
            "Push is for a different repository",
            extra={"repository": event.repository, "expected": config.repository},
        )
        return False

    if event.ref.lower() != config.ref.lower():
        logger.debug(
            "Push is for a different branch",
            extra={"ref": event.ref, "expected": config.ref},
        )
        return False

    return True
