"""
Notification Service - best-effort fan-out for newly created fraud alerts

Two channels:
    - in-process broadcast hooks (any callable taking the alert dict), e.g. a
      server-sent-events publisher
    - company webhooks registered in fraud_alert_webhooks, delivered with
      requests and signed with HMAC-SHA256 over the exact JSON body

Nothing here raises into the caller: a failing hook or an unreachable webhook
is logged and skipped. Failed deliveries are not retried.
"""

import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from config import WEBHOOK, WebhookConfig
from fraud_engine.exceptions import StoreError
from fraud_engine.models import AlertType, Severity
from fraud_engine.repositories import AlertRepository
from fraud_engine.timezone_utils import isoformat, utc_now

logger = logging.getLogger(__name__)

BroadcastHook = Callable[[Dict[str, Any]], None]


def sign_payload(body: bytes, secret: str) -> str:
    """Value of the signature header for one request body"""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def build_webhook_payload(alert: Dict[str, Any], company_id: Optional[str], timestamp: datetime) -> Dict[str, Any]:
    return {
        "event_type": alert.get("type"),
        "timestamp": isoformat(timestamp),
        "alert": alert,
        "company_id": company_id,
    }


class NotificationService:
    """Broadcast hooks plus signed webhook delivery"""

    def __init__(
        self,
        alert_repo: Optional[AlertRepository] = None,
        hooks: Optional[List[BroadcastHook]] = None,
        config: WebhookConfig = WEBHOOK,
        session: Optional[requests.Session] = None,
    ):
        self.alert_repo = alert_repo
        self.hooks: List[BroadcastHook] = list(hooks or [])
        self.config = config
        self.session = session or requests.Session()

    def add_hook(self, hook: BroadcastHook) -> None:
        self.hooks.append(hook)

    def notify(self, alert: Dict[str, Any], company_id: Optional[str] = None) -> int:
        """
        Fan one alert out to every hook and matching webhook.

        Returns the number of webhooks that accepted the delivery.
        """
        for hook in self.hooks:
            try:
                hook(alert)
            except Exception as e:
                logger.warning(f"Broadcast hook {getattr(hook, '__name__', hook)} failed: {e}")

        if self.alert_repo is None:
            return 0

        try:
            webhooks = self.alert_repo.get_active_webhooks(company_id)
        except StoreError as e:
            logger.warning(f"Webhook lookup failed: {e}")
            return 0

        delivered = 0
        for webhook in webhooks:
            if alert.get("type") not in (webhook.get("event_types") or []):
                continue
            payload = build_webhook_payload(alert, company_id, utc_now())
            if self.deliver(webhook, payload):
                delivered += 1
        return delivered

    def deliver(self, webhook: Dict[str, Any], payload: Dict[str, Any]) -> bool:
        """POST one signed payload; True on a 2xx answer"""
        body = json.dumps(payload, default=str).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.USER_AGENT,
        }
        secret = webhook.get("secret_key")
        if secret:
            headers[self.config.SIGNATURE_HEADER] = sign_payload(body, secret)

        url = webhook.get("webhook_url")
        try:
            response = self.session.post(
                url, data=body, headers=headers, timeout=self.config.TIMEOUT_SECONDS
            )
        except requests.Timeout:
            logger.warning(f"Webhook {webhook.get('id')}: timeout posting to {url}")
            return False
        except requests.RequestException as e:
            logger.error(f"Webhook {webhook.get('id')}: delivery to {url} failed: {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"Webhook {webhook.get('id')}: HTTP {response.status_code} from {url}: "
                f"{response.text[:200]}"
            )
            return False

        logger.info(f"Webhook {webhook.get('id')}: delivered {payload.get('event_type')}")
        if self.alert_repo is not None and webhook.get("id"):
            try:
                self.alert_repo.mark_webhook_triggered(webhook["id"], utc_now())
            except StoreError as e:
                logger.warning(f"Could not stamp webhook {webhook['id']}: {e}")
        return True

    # ─── Registration ───────────────────────────────────────────────────────

    def register_webhook(
        self,
        company_id: Optional[str],
        webhook_url: str,
        event_types: List[str],
        is_active: bool = True,
        secret_key: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store a webhook; a secret is generated when none is supplied"""
        event_types = [AlertType(t).value for t in event_types]
        record = {
            "company_id": company_id,
            "webhook_url": webhook_url,
            "event_types": event_types,
            "is_active": is_active,
            "secret_key": secret_key or secrets.token_hex(self.config.SECRET_BYTES),
            "created_by": created_by,
        }
        webhook = self.alert_repo.create_webhook(record)
        logger.info(f"Webhook {webhook['id']} registered for {', '.join(event_types)}")
        return webhook

    def test_webhook(self, webhook_id: str, event_type: str, company_id: Optional[str] = None) -> Dict[str, Any]:
        """Send a synthetic alert to one webhook regardless of its event filter"""
        event_type = AlertType(event_type).value
        now = utc_now()
        alert = {
            "id": f"test-{int(now.timestamp() * 1000)}",
            "type": event_type,
            "severity": Severity.MEDIUM.value,
            "title": f"Test {event_type} Alert",
            "description": "This is a test alert from the Fleet Fraud Detection System",
            "vehicle": {"id": "test-vehicle-id", "vehicle_number": "TEST-001"},
            "driver": {"id": "test-driver-id", "name": "Test Driver"},
            "details": {"test": True, "webhook_id": webhook_id},
        }
        payload = build_webhook_payload(alert, company_id, now)

        webhook = self.alert_repo.get_webhook(webhook_id) if self.alert_repo else None
        delivered = self.deliver(webhook, payload) if webhook else False
        return {
            "webhook_id": webhook_id,
            "found": webhook is not None,
            "delivered": delivered,
            "test_payload": payload,
        }
