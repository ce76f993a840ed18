"""WhatsApp Cloud API delivery channel."""

import enum
import logging
import os
import re
from dataclasses import dataclass

import httpx

from core.config import get_dispatch_timeout_seconds
from core.constants import WHATSAPP_MAX_BODY_LENGTH
from core.notifications.errors import (
    ChannelError,
    PermanentChannelError,
    TransientChannelError,
)

logger = logging.getLogger(__name__)


GRAPH_API_VERSION = os.environ.get("WHATSAPP_API_VERSION", "v18.0")
GRAPH_API_BASE = "https://graph.facebook.com"

# Graph API error codes that mean "slow down" rather than "never"
RATE_LIMIT_ERROR_CODES = {4, 80007, 130429, 131048, 131056}

# Separators people type into phone numbers
ADDRESS_SEPARATORS = re.compile(r"[\s\-().]")
ADDRESS_PATTERN = re.compile(r"^\+?(\d{8,15})$")


class FailureKind(str, enum.Enum):
    transient = "transient"
    permanent = "permanent"


@dataclass
class DeliveryResult:
    """Outcome of handing one message to WhatsApp."""

    success: bool
    failure: FailureKind | None = None
    error: str | None = None

    @classmethod
    def sent(cls) -> "DeliveryResult":
        return cls(success=True)

    @classmethod
    def from_error(cls, error: ChannelError) -> "DeliveryResult":
        kind = (
            FailureKind.transient
            if isinstance(error, TransientChannelError)
            else FailureKind.permanent
        )
        return cls(success=False, failure=kind, error=str(error))

    @property
    def is_transient(self) -> bool:
        return self.failure == FailureKind.transient


def normalize_address(address: str | None) -> str | None:
    """
    Normalize a WhatsApp number to bare E.164 digits.

    Returns:
        Digits without the leading "+", or None if the address is unusable
    """
    if not address:
        return None
    match = ADDRESS_PATTERN.match(ADDRESS_SEPARATORS.sub("", address))
    return match.group(1) if match else None


def _get_credentials() -> tuple[str | None, str | None]:
    return (
        os.environ.get("WHATSAPP_PHONE_NUMBER_ID"),
        os.environ.get("WHATSAPP_ACCESS_TOKEN"),
    )


def classify_response(status_code: int, payload: dict | None) -> ChannelError:
    """
    Map a failed Graph API response to a transient or permanent error.

    Rate-limit error codes are transient whatever the HTTP status.
    """
    error = (payload or {}).get("error") or {}
    code = error.get("code")
    detail = error.get("message") or f"HTTP {status_code}"
    message = f"WhatsApp API error {code or status_code}: {detail}"

    if code in RATE_LIMIT_ERROR_CODES:
        return TransientChannelError(message)
    if status_code == 429 or status_code >= 500:
        return TransientChannelError(message)
    return PermanentChannelError(message)


async def _post_message(to: str, body: str) -> None:
    """
    POST a text message to the Graph API.

    Raises:
        TransientChannelError: Network error, timeout, 429, 5xx or rate-limit code
        PermanentChannelError: Missing credentials or any other rejection
    """
    phone_number_id, access_token = _get_credentials()
    if not phone_number_id or not access_token:
        logger.warning("WHATSAPP_PHONE_NUMBER_ID or WHATSAPP_ACCESS_TOKEN not set")
        raise PermanentChannelError("WhatsApp credentials not configured")

    url = f"{GRAPH_API_BASE}/{GRAPH_API_VERSION}/{phone_number_id}/messages"
    payload = {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "text",
        "text": {"body": body},
    }
    headers = {"Authorization": f"Bearer {access_token}"}

    try:
        async with httpx.AsyncClient(timeout=get_dispatch_timeout_seconds()) as client:
            response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        raise TransientChannelError(f"WhatsApp request timed out: {e}") from e
    except httpx.HTTPError as e:
        raise TransientChannelError(f"WhatsApp request failed: {e}") from e

    if response.status_code < 400:
        return

    try:
        data = response.json()
    except ValueError:
        data = None
    raise classify_response(response.status_code, data)


async def send_whatsapp_message(address: str | None, body: str) -> DeliveryResult:
    """
    Send a text message to one WhatsApp number.

    Bodies over the WhatsApp limit are rejected, never truncated.

    Args:
        address: Recipient phone number, E.164 with optional "+"
        body: Message text

    Returns:
        DeliveryResult; never raises for delivery problems
    """
    if len(body) > WHATSAPP_MAX_BODY_LENGTH:
        return DeliveryResult.from_error(
            PermanentChannelError(
                f"Message body is {len(body)} characters, limit is {WHATSAPP_MAX_BODY_LENGTH}"
            )
        )

    to = normalize_address(address)
    if to is None:
        return DeliveryResult.from_error(
            PermanentChannelError(f"Invalid WhatsApp address: {address!r}")
        )

    try:
        await _post_message(to, body)
    except ChannelError as e:
        logger.warning(f"WhatsApp send to {to} failed: {e}")
        return DeliveryResult.from_error(e)

    logger.debug(f"WhatsApp message sent to {to}")
    return DeliveryResult.sent()
