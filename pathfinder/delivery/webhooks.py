"""
Webhook fan-out: POST the response envelope to every configured URL.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..common.schemas import DeliveryOutcome

logger = logging.getLogger("pathfinder.delivery.webhooks")

ENVELOPE_FIELDS = ("session_id", "input", "intent", "response", "timestamp", "user", "channel", "agent")


def build_envelope(**fields: Any) -> Dict[str, Any]:
    """Envelope with every standard field present (missing ones are None)."""
    return {name: fields.get(name) for name in ENVELOPE_FIELDS}


class WebhookDispatcher:
    """Posts one envelope to each URL independently."""

    target = "webhooks"

    def __init__(
        self,
        urls: Iterable[str],
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._urls = [u for u in urls if u]
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def urls(self) -> List[str]:
        return list(self._urls)

    def dispatch(self, envelope: Dict[str, Any]) -> DeliveryOutcome:
        """
        Send the envelope to every URL.

        Succeeds when at least one URL accepts it. Per-URL failures are
        collected in the outcome's error text.
        """
        if not self._urls:
            return DeliveryOutcome(target=self.target, success=False, error="no webhook URLs configured")

        delivered = 0
        failures = []
        for url in self._urls:
            try:
                response = self._client.post(url, json=envelope)
            except httpx.HTTPError as e:
                failures.append(f"{url}: {e}")
                continue
            if response.status_code >= 400:
                failures.append(f"{url}: HTTP {response.status_code}")
                continue
            delivered += 1

        for failure in failures:
            logger.warning("Webhook delivery failed: %s", failure)

        return DeliveryOutcome(
            target=self.target,
            success=delivered > 0,
            reference=f"{delivered}/{len(self._urls)}",
            error="; ".join(failures) or None,
        )

    def close(self) -> None:
        self._client.close()
