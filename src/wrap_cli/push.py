from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from typing import Protocol

import requests
from pywebpush import WebPushException, webpush
from sqlmodel import Session, select

from wrap_cli.errors import (
    NotFoundError,
    PermanentDeliveryError,
    PushConfigurationError,
    TransientDeliveryError,
    ValidationError,
)
from wrap_cli.models import PushSubscription, User

logger = logging.getLogger(__name__)

DEFAULT_VAPID_SUBJECT = "mailto:admin@localhost"
DEFAULT_TIMEOUT_SEC = 10.0
# Push services answer 404/410 for subscriptions that expired or were revoked.
_PERMANENT_STATUS_CODES = {404, 410}


@dataclass(frozen=True)
class PushPayload:
    title: str
    body: str
    path: str = "/"

    def to_json(self) -> str:
        return json.dumps(
            {
                "title": self.title,
                "options": {
                    "body": self.body,
                    "icon": "/icon.png",
                    "badge": "/icon.png",
                    "data": {"path": self.path},
                },
            }
        )


class PushTransport(Protocol):
    def send(self, subscription: PushSubscription, payload: PushPayload) -> None: ...


@dataclass(frozen=True)
class WebPushTransport:
    vapid_private_key: str
    vapid_subject: str = DEFAULT_VAPID_SUBJECT
    timeout_sec: float = DEFAULT_TIMEOUT_SEC

    @classmethod
    def from_env(cls) -> WebPushTransport:
        private_key = os.getenv("WRAP_VAPID_PRIVATE_KEY", "").strip()
        public_key = os.getenv("WRAP_VAPID_PUBLIC_KEY", "").strip()
        if not private_key or not public_key:
            raise PushConfigurationError(
                "Push delivery is not configured. Set WRAP_VAPID_PUBLIC_KEY and WRAP_VAPID_PRIVATE_KEY."
            )

        subject = os.getenv("WRAP_VAPID_SUBJECT", "").strip() or DEFAULT_VAPID_SUBJECT
        timeout_raw = os.getenv("WRAP_PUSH_TIMEOUT_SEC", "").strip()
        try:
            timeout_sec = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SEC
        except ValueError as exc:
            raise PushConfigurationError("WRAP_PUSH_TIMEOUT_SEC must be a number of seconds.") from exc
        if timeout_sec <= 0:
            raise PushConfigurationError("WRAP_PUSH_TIMEOUT_SEC must be > 0.")

        return cls(vapid_private_key=private_key, vapid_subject=subject, timeout_sec=timeout_sec)

    def send(self, subscription: PushSubscription, payload: PushPayload) -> None:
        try:
            webpush(
                subscription_info={
                    "endpoint": subscription.endpoint,
                    "keys": {"p256dh": subscription.p256dh_key, "auth": subscription.auth_key},
                },
                data=payload.to_json(),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                timeout=self.timeout_sec,
            )
        except WebPushException as exc:
            status_code = getattr(exc.response, "status_code", None)
            if status_code in _PERMANENT_STATUS_CODES:
                raise PermanentDeliveryError(f"subscription rejected status={status_code}") from exc
            raise TransientDeliveryError(f"push service error status={status_code or '-'}") from exc
        except requests.RequestException as exc:
            raise TransientDeliveryError(f"push request failed error_type={exc.__class__.__name__}") from exc


# --- Subscriptions ---


def register_subscription(
    session: Session,
    user: User,
    *,
    endpoint: str,
    p256dh_key: str,
    auth_key: str,
) -> PushSubscription:
    """Create or re-point a subscription; endpoints are unique across users."""
    errors: dict[str, list[str]] = {}
    for field_name, value in (("endpoint", endpoint), ("p256dh_key", p256dh_key), ("auth_key", auth_key)):
        if not value or not value.strip():
            errors.setdefault(field_name, []).append("can't be blank")
    if errors:
        raise ValidationError(errors)

    subscription = session.exec(
        select(PushSubscription).where(PushSubscription.endpoint == endpoint.strip())
    ).first()
    if subscription is None:
        subscription = PushSubscription(
            user_id=user.id,
            endpoint=endpoint.strip(),
            p256dh_key=p256dh_key.strip(),
            auth_key=auth_key.strip(),
        )
        session.add(subscription)
    else:
        subscription.user_id = user.id
        subscription.p256dh_key = p256dh_key.strip()
        subscription.auth_key = auth_key.strip()

    session.commit()
    session.refresh(subscription)
    logger.info("push_subscription_registered user_id=%s subscription_id=%s", user.id, subscription.id)
    return subscription


def delete_subscription(session: Session, user: User, endpoint: str) -> None:
    subscription = session.exec(
        select(PushSubscription)
        .where(PushSubscription.endpoint == endpoint.strip())
        .where(PushSubscription.user_id == user.id)
    ).first()
    if subscription is None:
        raise NotFoundError("Push subscription not found.")
    session.delete(subscription)
    session.commit()


def list_subscriptions(session: Session, user_id: int) -> list[PushSubscription]:
    return list(
        session.exec(
            select(PushSubscription).where(PushSubscription.user_id == user_id).order_by(PushSubscription.id)
        ).all()
    )
