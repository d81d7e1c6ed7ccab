"""Notification sinks: where rendered reminder emails are delivered.

Two providers:

* :class:`EmailJSSink` -- posts to the EmailJS REST API
  (``/api/v1.0/email/send``) using a service id, template id and public
  key.  Without those three settings it reports
  :attr:`DeliveryState.NOT_CONFIGURED` and sends nothing; that is an
  expected state, not an error.
* :class:`LoggingSink` -- writes the message to the structured log and
  reports it as logged.  Used in development and tests.

A transport failure that survives the retries raises
:class:`SinkUnavailable`; an HTTP error response is returned as a
:attr:`DeliveryState.FAILED` result.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.enums import DeliveryState
from src.models.notification import NotificationMessage, SinkResult
from src.services.errors import SinkUnavailable

if TYPE_CHECKING:
    from config.settings import Settings

logger = structlog.get_logger(__name__)

EMAILJS_API_URL: Final[str] = "https://api.emailjs.com/api/v1.0/email/send"

_NOT_CONFIGURED_ERROR: Final[str] = "EmailJS not configured"


@runtime_checkable
class NotificationSink(Protocol):
    """Accepts one rendered message and reports the outcome."""

    @property
    def provider(self) -> str: ...

    @property
    def is_configured(self) -> bool: ...

    async def send(self, message: NotificationMessage) -> SinkResult: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# EmailJS
# ---------------------------------------------------------------------------


class EmailJSSink:
    """Sends reminder emails through an EmailJS template.

    Parameters
    ----------
    service_id, template_id, public_key:
        EmailJS identifiers.  All three are required to send.
    private_key:
        Optional access token for accounts that enforce it on the
        REST API.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  When omitted the sink owns its client.
    """

    def __init__(
        self,
        *,
        service_id: str,
        template_id: str,
        public_key: str,
        private_key: str = "",
        api_url: str = EMAILJS_API_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._service_id = service_id
        self._template_id = template_id
        self._public_key = public_key
        self._private_key = private_key
        self._api_url = api_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def provider(self) -> str:
        return "emailjs"

    @property
    def is_configured(self) -> bool:
        return bool(self._service_id and self._template_id and self._public_key)

    def _payload(self, message: NotificationMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "service_id": self._service_id,
            "template_id": self._template_id,
            "user_id": self._public_key,
            "template_params": {
                "to_email": message.to,
                "subject": message.subject,
                "message": message.body,
                **message.metadata,
            },
        }
        if self._private_key:
            payload["accessToken"] = self._private_key
        return payload

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        return await self._client.post(self._api_url, json=payload)

    async def send(self, message: NotificationMessage) -> SinkResult:
        if not self.is_configured:
            logger.warning(
                "email_sink.not_configured",
                item_id=message.item_id,
                kind=str(message.kind),
            )
            return SinkResult(
                state=DeliveryState.NOT_CONFIGURED,
                provider=self.provider,
                error=_NOT_CONFIGURED_ERROR,
            )

        try:
            response = await self._post(self._payload(message))
        except httpx.TransportError as exc:
            logger.error(
                "email_sink.transport_failed",
                item_id=message.item_id,
                error=str(exc),
            )
            raise SinkUnavailable(f"EmailJS unreachable: {exc}") from exc

        if response.is_success:
            logger.info(
                "email_sink.sent",
                to=message.to,
                item_id=message.item_id,
                kind=str(message.kind),
            )
            return SinkResult(
                state=DeliveryState.SENT,
                provider=self.provider,
                raw_response={"status": response.status_code, "text": response.text},
            )

        logger.warning(
            "email_sink.rejected",
            item_id=message.item_id,
            status=response.status_code,
            body=response.text[:200],
        )
        return SinkResult(
            state=DeliveryState.FAILED,
            provider=self.provider,
            error=f"EmailJS returned {response.status_code}: {response.text[:200]}",
            raw_response={"status": response.status_code, "text": response.text},
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if this sink created it."""
        if self._owns_client:
            await self._client.aclose()


# ---------------------------------------------------------------------------
# Log-only provider
# ---------------------------------------------------------------------------


class LoggingSink:
    """Writes messages to the log instead of sending them.

    The most recent *max_messages* are kept in :attr:`messages`.
    """

    def __init__(self, max_messages: int = 100) -> None:
        self.messages: deque[NotificationMessage] = deque(maxlen=max_messages)

    @property
    def provider(self) -> str:
        return "log"

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, message: NotificationMessage) -> SinkResult:
        self.messages.append(message)
        logger.info(
            "email_sink.logged",
            to=message.to,
            subject=message.subject,
            item_id=message.item_id,
            kind=str(message.kind),
        )
        return SinkResult(state=DeliveryState.LOGGED, provider=self.provider)

    async def close(self) -> None:
        return None


def create_sink(
    settings: Settings, *, client: httpx.AsyncClient | None = None
) -> NotificationSink:
    """Build the sink named by ``settings.email_provider``."""
    if settings.email_provider == "log":
        return LoggingSink()
    return EmailJSSink(
        service_id=settings.emailjs_service_id,
        template_id=settings.emailjs_template_id,
        public_key=settings.emailjs_public_key,
        private_key=settings.emailjs_private_key,
        api_url=settings.emailjs_api_url,
        timeout=settings.email_timeout_seconds,
        client=client,
    )
