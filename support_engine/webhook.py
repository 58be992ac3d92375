"""
Slack/Discord escalation webhook: POST when a case is routed to a human agent.
Uses WEBHOOK_URL from config; no-op if unset.
"""

import asyncio
import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Any, Optional

from support_engine.config import WEBHOOK_URL
from support_engine.models import IssueClassification, RouteDecision

logger = logging.getLogger(__name__)


def build_escalation_payload(
    classification: IssueClassification, description: str, player_id: Optional[str] = None
) -> dict[str, Any]:
    """Build a Slack-compatible webhook payload."""
    sentiment = classification.sentiment
    snippet = description if len(description) <= 280 else description[:277] + "..."
    return {
        "text": f"Support case needs a human agent: {classification.top_category.value} ({player_id or 'unknown player'})",
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        f"*Player:* `{player_id or 'unknown'}`\n"
                        f"*Category:* {classification.top_category.value}\n"
                        f"*Urgency:* {classification.suggested_urgency.value}\n"
                        f"*Sentiment:* {sentiment.tone.value} ({sentiment.intensity}/10)\n"
                        f"*Reason:* {classification.reasoning}\n"
                        f"*Description:* {snippet}"
                    ),
                },
            },
        ],
    }


def _do_post(url: str, payload: dict[str, Any]) -> None:
    """Synchronous POST (run in thread)."""
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    ctx = ssl.create_default_context()
    with urllib.request.urlopen(req, timeout=5, context=ctx):
        pass


async def notify_human_escalation(
    classification: IssueClassification,
    description: str,
    player_id: Optional[str] = None,
    url: Optional[str] = None,
) -> bool:
    """
    If a webhook URL is configured and the case routes to a human, POST a notification.
    Returns whether a notification was sent. Does not raise; failures are logged.
    """
    target = WEBHOOK_URL if url is None else url
    if not target or classification.route_decision != RouteDecision.HUMAN:
        return False
    payload = build_escalation_payload(classification, description, player_id)
    try:
        await asyncio.to_thread(_do_post, target, payload)
    except (urllib.error.URLError, OSError, ValueError) as e:
        logger.warning("Escalation webhook failed for %s: %s", player_id or "unknown player", e)
        return False
    logger.info("Escalation webhook sent for %s (%s).", player_id or "unknown player", classification.top_category.value)
    return True
