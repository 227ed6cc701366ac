"""Twilio-backed text and chat channels with retries and circuit breakers.

The sms and whatsapp channels post to Twilio's Messages REST endpoint with
``httpx``. Each channel has:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set
  by the gateway middleware.
- A circuit breaker, so an unhealthy provider is not hammered on every
  order; after ``HTTP_CIRCUIT_RESET_TIMEOUT`` a single HALF_OPEN probe is
  let through.
- A retry policy with exponential backoff for transport errors and 5xx.
- A fixed per-attempt timeout (``HTTP_TIMEOUT_SECS``).

Any failure surfaces as an exception; the dispatcher turns it into a
``failed`` outcome for that channel only.
"""

import logging
import threading
import time
from typing import Optional

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

from .domain import Message, Recipient

logger = logging.getLogger(__name__)


class ChannelNotConfigured(RuntimeError):
    pass


class ChannelRejected(RuntimeError):
    """The provider refused the message (4xx); retrying will not help."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        super().__init__(f"provider rejected message ({status_code}): {detail}")


# ---------------- Circuit Breaker ---------------- #

class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; only one probe may be in
      flight; a failed probe opens the breaker again.

    Thread-safe: notification workers share one breaker per channel.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._opened_at = 0.0
        self._half_open_probe_in_flight = False

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == "OPEN" and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = "HALF_OPEN"
                self._half_open_probe_in_flight = False
            return self._state

    def before_call(self) -> str:
        """Check and update state before a protected call.

        Raises:
            RuntimeError: If the circuit is OPEN or a HALF_OPEN probe is busy.
        """
        with self._lock:
            st = self.state
            if st == "OPEN":
                raise RuntimeError(f"CIRCUIT_OPEN:{self.name}")
            if st == "HALF_OPEN":
                if self._half_open_probe_in_flight:
                    raise RuntimeError(f"CIRCUIT_HALF_OPEN_BUSY:{self.name}")
                self._half_open_probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = "CLOSED"
            self._half_open_probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state == "HALF_OPEN" or (self._failures >= self.fail_threshold and self._state != "OPEN"):
                self._state = "OPEN"
                self._opened_at = time.monotonic()
                self._half_open_probe_in_flight = False

    def on_finish(self):
        with self._lock:
            if self._state == "HALF_OPEN":
                self._half_open_probe_in_flight = False


def _breaker(name: str) -> CircuitBreaker:
    return CircuitBreaker(
        name,
        getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
        getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
    )


# Per-channel instances
_sms_cb = _breaker("sms")
_whatsapp_cb = _breaker("whatsapp")


# ---------------- Helpers ---------------- #

def _request_headers() -> dict:
    rid = REQUEST_ID_CTX.get()
    return {"X-Request-ID": rid} if rid and rid != "-" else {}


def _retry_policy():
    """Return retry configuration as (max_attempts, backoff_base_seconds, max_sleep)."""
    return (
        max(1, getattr(settings, "HTTP_RETRY_MAX", 3)),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
        getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    if exc is not None:
        return True
    return resp is not None and 500 <= resp.status_code < 600


# ---------------- Twilio Adapter ---------------- #

class TwilioMessagingChannel:
    """Send text messages through Twilio's Messages API.

    Args:
        name: Channel name used in logs.
        from_number: Sender number (``TWILIO_PHONE_NUMBER`` or the WhatsApp sender).
        breaker: Circuit breaker shared by every instance of this channel.
        address_prefix: Prefix for the ``To``/``From`` addresses (``whatsapp:``).
    """

    def __init__(
        self,
        name: str,
        from_number: str,
        breaker: CircuitBreaker,
        address_prefix: str = "",
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.name = name
        self.from_number = from_number
        self.breaker = breaker
        self.address_prefix = address_prefix
        self.account_sid = account_sid if account_sid is not None else settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else settings.TWILIO_AUTH_TOKEN
        self.base_url = (base_url or settings.TWILIO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def _address(self, number: str) -> str:
        if self.address_prefix and not number.startswith(self.address_prefix):
            return f"{self.address_prefix}{number}"
        return number

    def send(self, recipient: Recipient, message: Message) -> dict:
        """Post one message.

        Returns:
            dict: ``{"status": "sent", "sid": ..., "provider_status": ...}``.

        Raises:
            ChannelNotConfigured: Credentials or sender number missing.
            ChannelRejected: Twilio answered 4xx.
            RuntimeError: The circuit is open.
            httpx.RequestError: Transport failure after retries.
            httpx.HTTPStatusError: 5xx after retries.
        """
        if not (self.account_sid and self.auth_token and self.from_number):
            raise ChannelNotConfigured(f"{self.name} channel is not configured")
        if not recipient.phone:
            raise ValueError("Recipient has no phone number")

        url = f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        data = {
            "To": self._address(recipient.phone),
            "From": self._address(self.from_number),
            "Body": message.text,
        }
        max_attempts, backoff, cap = _retry_policy()
        headers = _request_headers()
        tries = 0

        self.breaker.before_call()
        try:
            with httpx.Client(timeout=self.timeout, auth=(self.account_sid, self.auth_token)) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = client.post(url, data=data, headers=headers or None)
                        if 200 <= resp.status_code < 300:
                            self.breaker.on_success()
                            body = resp.json() if resp.status_code != 204 else {}
                            logger.info("%s sent", self.name, extra={"user_id": recipient.id, "sid": body.get("sid")})
                            return {
                                "status": "sent",
                                "sid": body.get("sid"),
                                "provider_status": body.get("status"),
                            }
                        if 400 <= resp.status_code < 500:
                            # business rejection (bad number, opted out), not a provider outage
                            self.breaker.on_success()
                            raise ChannelRejected(resp.status_code, resp.text[:200])
                        if not _should_retry(resp, None):
                            resp.raise_for_status()
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    if tries >= max_attempts or not _should_retry(resp, exc):
                        self.breaker.on_failure()
                        if exc:
                            raise exc
                        resp.raise_for_status()

                    time.sleep(min(backoff * (2 ** (tries - 1)), cap))
        finally:
            self.breaker.on_finish()


def sms_channel() -> TwilioMessagingChannel:
    return TwilioMessagingChannel("sms", settings.TWILIO_PHONE_NUMBER, _sms_cb)


def whatsapp_channel() -> TwilioMessagingChannel:
    return TwilioMessagingChannel("whatsapp", settings.TWILIO_WHATSAPP_NUMBER, _whatsapp_cb, address_prefix="whatsapp:")


def circuit_states() -> dict:
    return {"sms": _sms_cb.state, "whatsapp": _whatsapp_cb.state}
