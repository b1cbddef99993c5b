# Overview: Outbound text message providers (HTTP gateway or log-only) and recipient helpers.

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

import httpx
from flask import current_app


MOBILE_RE = re.compile(r"^01[016789]\d{7,8}$")


@dataclass
class Recipient:
    phone: str
    name: str | None = None

    def to_dict(self) -> dict:
        return {"phone": self.phone, "name": self.name}


@dataclass
class RecipientResult:
    phone: str
    success: bool
    message_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "phone": self.phone,
            "success": self.success,
            "message_id": self.message_id,
            "error": self.error,
        }


@dataclass
class SendResult:
    success: bool
    success_count: int
    failure_count: int
    results: list[RecipientResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[RecipientResult]) -> "SendResult":
        success_count = sum(1 for r in results if r.success)
        failure_count = len(results) - success_count
        return cls(
            success=bool(results) and failure_count == 0,
            success_count=success_count,
            failure_count=failure_count,
            results=results,
        )


def normalize_mobile(raw: str | None) -> str | None:
    """
    Digits-only domestic mobile number, or None when it is not one.

    "+82 10-1234-5678" and "010.1234.5678" both become "01012345678".
    """
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    if digits.startswith("82") and len(digits) in (11, 12):
        digits = "0" + digits[2:]
    if not MOBILE_RE.match(digits):
        return None
    return digits


def supplier_recipients(supplier) -> list[Recipient]:
    """Primary then secondary contact; blank or invalid numbers are dropped."""
    recipients: list[Recipient] = []
    seen = set()
    contacts = (
        (supplier.primary_contact_mobile, supplier.primary_contact_name),
        (supplier.secondary_contact_mobile, supplier.secondary_contact_name),
    )
    for mobile, name in contacts:
        phone = normalize_mobile(mobile)
        if phone is None or phone in seen:
            continue
        seen.add(phone)
        recipients.append(Recipient(phone=phone, name=name))
    return recipients


class MessageProvider:
    """Sends one rendered message to a list of recipients."""

    def send(self, message: str, recipients: list[Recipient], options: dict | None = None) -> SendResult:
        raise NotImplementedError


class LoggingMessageProvider(MessageProvider):
    """Writes messages to the application log instead of sending them."""

    def send(self, message: str, recipients: list[Recipient], options: dict | None = None) -> SendResult:
        results = []
        for recipient in recipients:
            current_app.logger.info("Message to %s (%s):\n%s", recipient.phone, recipient.name or "-", message)
            results.append(RecipientResult(phone=recipient.phone, success=True, message_id=f"log-{uuid.uuid4().hex[:12]}"))
        return SendResult.from_results(results)


class HttpMessageProvider(MessageProvider):
    """
    JSON-over-HTTP text message gateway.

    POSTs {"from", "to", "text", ...options} per recipient and reads the
    provider message id from "message_id" (or "id") in the response body.
    """

    def __init__(
        self,
        api_url: str,
        *,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _send_one(self, client: httpx.Client, message: str, recipient: Recipient, options: dict) -> RecipientResult:
        payload = {"from": self.sender, "to": recipient.phone, "text": message}
        payload.update(options)
        try:
            response = client.post(self.api_url, json=payload, headers=self._headers())
            response.raise_for_status()
            body = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            current_app.logger.warning("Message to %s failed: %s", recipient.phone, exc)
            return RecipientResult(phone=recipient.phone, success=False, error=str(exc))

        message_id = body.get("message_id") or body.get("id")
        return RecipientResult(
            phone=recipient.phone,
            success=True,
            message_id=str(message_id) if message_id is not None else None,
        )

    def send(self, message: str, recipients: list[Recipient], options: dict | None = None) -> SendResult:
        options = options or {}
        if self._client is not None:
            results = [self._send_one(self._client, message, r, options) for r in recipients]
            return SendResult.from_results(results)
        with httpx.Client(timeout=self.timeout) as client:
            results = [self._send_one(client, message, r, options) for r in recipients]
        return SendResult.from_results(results)


def build_message_provider(config) -> MessageProvider:
    kind = (config.get("SMS_PROVIDER") or "log").lower()
    if kind == "log":
        return LoggingMessageProvider()
    if kind == "http":
        api_url = config.get("SMS_API_URL")
        if not api_url:
            raise ValueError("SMS_API_URL is required when SMS_PROVIDER=http")
        return HttpMessageProvider(
            api_url,
            api_key=config.get("SMS_API_KEY"),
            sender=config.get("SMS_SENDER"),
            timeout=config.get("SMS_TIMEOUT_SECONDS", 10.0),
        )
    raise ValueError(f"Unknown SMS_PROVIDER: {kind}")


def get_message_provider() -> MessageProvider:
    return current_app.extensions["message_provider"]
