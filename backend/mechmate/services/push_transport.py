"""
Web push transport.

Delivers an encrypted payload to one push subscription endpoint and
classifies failures as transient (retry later) or permanent (the endpoint
is gone and the subscription should be removed).
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from loguru import logger
from pywebpush import webpush, WebPushException

from mechmate.constants import (
    PUSH_AUTH_FAILURE_STATUS_CODES,
    PUSH_BACKOFF_MULTIPLIER,
    PUSH_GONE_STATUS_CODES,
    PUSH_INITIAL_BACKOFF_SECONDS,
    PUSH_MAX_ATTEMPTS,
    PUSH_TIMEOUT_SECONDS,
    PUSH_TTL_SECONDS,
)


class PushFailureKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENTLY_INVALID = "permanently_invalid"


class PushDeliveryError(Exception):
    """Delivery failed; the subscription may work again later."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PushGoneError(PushDeliveryError):
    """The push service reports the subscription as expired or invalid."""


@dataclass
class PushResult:
    """Outcome of one send to one subscription."""

    success: bool
    failure_kind: Optional[PushFailureKind] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_permanently_invalid(self) -> bool:
        return self.failure_kind == PushFailureKind.PERMANENTLY_INVALID


def _short_endpoint(endpoint: str) -> str:
    return endpoint[:60] + "..." if len(endpoint) > 60 else endpoint


class BasePushTransport(ABC):
    """Abstract push transport with retry for transient failures."""

    def __init__(
        self,
        max_attempts: int = PUSH_MAX_ATTEMPTS,
        initial_backoff: float = PUSH_INITIAL_BACKOFF_SECONDS,
    ):
        self.max_attempts = max(1, max_attempts)
        self.initial_backoff = initial_backoff

    @abstractmethod
    async def _deliver(self, endpoint: str, keys: Dict[str, str], payload_json: str) -> None:
        """
        Deliver once.

        Raises:
            PushGoneError: If the endpoint is permanently invalid
            PushDeliveryError: If delivery failed for other reasons
        """
        pass

    async def send(self, endpoint: str, keys: Dict[str, str], payload_json: str) -> PushResult:
        """
        Send a payload to one endpoint with exponential backoff retry.

        Args:
            endpoint: Push service URL from the browser subscription
            keys: {"p256dh": ..., "auth": ...} client encryption keys
            payload_json: JSON-encoded message

        Returns:
            PushResult; never raises for delivery problems
        """
        backoff = self.initial_backoff
        last_error: Optional[PushDeliveryError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._deliver(endpoint, keys, payload_json)
                logger.debug(f"Push delivered to {_short_endpoint(endpoint)}")
                return PushResult(success=True)
            except asyncio.CancelledError:
                raise  # Don't retry on cancellation
            except PushGoneError as e:
                return PushResult(
                    success=False,
                    failure_kind=PushFailureKind.PERMANENTLY_INVALID,
                    status_code=e.status_code,
                    error=str(e),
                )
            except PushDeliveryError as e:
                last_error = e
                logger.warning(
                    f"Push to {_short_endpoint(endpoint)} failed (attempt {attempt}/{self.max_attempts}): {e}"
                )

            # Don't sleep after last attempt
            if attempt < self.max_attempts:
                await asyncio.sleep(backoff)
                backoff *= PUSH_BACKOFF_MULTIPLIER

        return PushResult(
            success=False,
            failure_kind=PushFailureKind.TRANSIENT,
            status_code=last_error.status_code if last_error else None,
            error=str(last_error) if last_error else None,
        )

    async def close(self):
        """Release transport resources."""
        pass


class WebPushTransport(BasePushTransport):
    """
    Push transport backed by pywebpush (VAPID-signed, aes128gcm payloads).

    pywebpush is blocking, so each request runs in a worker thread.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl: int = PUSH_TTL_SECONDS,
        timeout: float = PUSH_TIMEOUT_SECONDS,
        max_attempts: int = PUSH_MAX_ATTEMPTS,
        initial_backoff: float = PUSH_INITIAL_BACKOFF_SECONDS,
    ):
        super().__init__(max_attempts=max_attempts, initial_backoff=initial_backoff)
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    async def _deliver(self, endpoint: str, keys: Dict[str, str], payload_json: str) -> None:
        subscription_info = {
            "endpoint": endpoint,
            "keys": {"p256dh": keys["p256dh"], "auth": keys["auth"]},
        }
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=payload_json,
                vapid_private_key=self.vapid_private_key,
                # pywebpush fills in aud/exp on this dict, so pass a fresh one
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", None)
            gone = status_code in PUSH_GONE_STATUS_CODES or (
                status_code not in PUSH_AUTH_FAILURE_STATUS_CODES and "invalid" in str(e)
            )
            if gone:
                raise PushGoneError(str(e), status_code) from e
            raise PushDeliveryError(str(e), status_code) from e
        except Exception as e:
            raise PushDeliveryError(f"{type(e).__name__}: {e}") from e
