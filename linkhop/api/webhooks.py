"""GitHub webhook receiver.

/webhooks/github receives push notifications for the alias repository.
Each request goes through these steps, and the first failing one decides
the response:
  1. Method must be POST                          → 405 otherwise
  2. HMAC signature over the raw body             → 400 if invalid
  3. Event type must be ``push``                  → 200 no-op otherwise
  4. Repository and branch must match the config  → 200 no-op otherwise
  5. Schedule a registry reload, return 200 immediately

The reload runs as a background task after the response has been sent;
GitHub never waits on the alias fetch.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request

from linkhop.api.deps import get_registry
from linkhop.config import Settings, get_settings
from linkhop.core.events import NotificationEvent, is_push_event, is_relevant_push
from linkhop.core.registry import AliasRegistry
from linkhop.core.security import verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

# Every method is routed here so that a GET on the webhook path is answered
# with 405 instead of falling through to the catch-all redirect route.
_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/github", methods=_ALL_METHODS, status_code=200)
async def receive_github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_hub_signature: str | None = Header(default=None),
    x_hub_signature_256: str | None = Header(default=None),
    x_github_event: str | None = Header(default=None),
    x_github_delivery: str = Header(default=""),
    config: Settings = Depends(get_settings),
    registry: AliasRegistry = Depends(get_registry),
) -> dict[str, str]:
    """Validate a GitHub notification and reload aliases on a matching push.

    Returns:
        ``{"status": "reload_scheduled"}`` for a matching push,
        ``{"status": "ignored"}`` for any other valid notification.

    Raises:
        HTTPException(405): if the method is not POST.
        HTTPException(400): if the signature is missing or invalid.
    """
    logger.info(
        "Received notification from GitHub",
        extra={"event": x_github_event, "delivery_id": x_github_delivery},
    )

    # Step 1: Method.
    if request.method != "POST":
        logger.info("Webhook rejected: invalid method %s", request.method)
        raise HTTPException(status_code=405, detail="Method Not Allowed", headers={"Allow": "POST"})

    # Step 2: Signature over the raw body, before any JSON parsing.
    body = await request.body()
    webhook = config.webhook_config

    if webhook.insecure:
        logger.warning("Webhook secret not configured; skipping signature verification")
    elif x_hub_signature_256:
        valid = verify_signature(webhook.secret, x_hub_signature_256, body, algorithm="sha256")
        if not valid:
            _reject_signature(x_github_delivery)
    elif not verify_signature(webhook.secret, x_hub_signature, body, algorithm="sha1"):
        _reject_signature(x_github_delivery)

    # Step 3: Event type.
    if not is_push_event(x_github_event):
        logger.info("Webhook ignored: not a push event", extra={"event": x_github_event})
        return {"status": "ignored"}

    # Step 4: Repository and branch.
    event = NotificationEvent.parse(x_github_event, body)
    if not is_relevant_push(event, webhook):
        logger.info(
            "Webhook ignored: push is for a different repository or branch",
            extra={
                "repository": event.repository if event else None,
                "ref": event.ref if event else None,
            },
        )
        return {"status": "ignored"}

    # Step 5: Reload after the response is sent.
    logger.info("Scheduling alias reload", extra={"delivery_id": x_github_delivery})
    background_tasks.add_task(_reload_in_background, registry, x_github_delivery)
    return {"status": "reload_scheduled"}


def _reject_signature(delivery_id: str) -> None:
    logger.warning("Webhook rejected: invalid signature", extra={"delivery_id": delivery_id})
    raise HTTPException(status_code=400, detail="Invalid webhook signature")


def _reload_in_background(registry: AliasRegistry, delivery_id: str) -> None:
    """Run a reload nobody waits on; failures are logged by the registry."""
    succeeded = registry.reload_from_source()
    logger.info(
        "Background alias reload finished",
        extra={"delivery_id": delivery_id, "succeeded": succeeded},
    )
