"""Mailpit client for reading one-time codes and other test mail.

Async client for Mailpit's REST API, used by the verification handshake to
pick up codes the application sends out of band. Every virtual user of a load
campaign polls its own address, so the client is async and never blocks the
event loop between polls.

Configuration:
    MAILPIT_URL                       base URL, e.g. http://mailpit:8025
    MAILPIT_USERNAME/MAILPIT_PASSWORD basic auth for the API

Usage:
    async with MailpitClient.from_config(config) as client:
        inbox = client.open_inbox("user1@example.test")
        msg = await inbox.wait_for_message(after=requested_at)
        if msg is not None:
            print(msg.subject, msg.body)
"""
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

import anyio
import httpx

from ui_harness.config import HarnessConfig
from ui_harness.errors import ConfigurationError

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"[ \t\r\f\v]+")


def _parse_created(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    created = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def html_to_text(markup: str) -> str:
    """Flatten an HTML body into whitespace-separated text."""
    text = _TAG_RE.sub(" ", markup)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def _addresses(entries: Any) -> Tuple[str, ...]:
    return tuple(entry.get("Address", "") for entry in entries or [])


@dataclass(frozen=True)
class MailMessage:
    """A Mailpit message. Search results leave ``text``/``html`` empty."""

    id: str
    sender: str
    recipients: Tuple[str, ...]
    subject: str
    received_at: datetime
    text: str = ""
    html: str = field(default="", repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> MailMessage:
        return cls(
            id=payload.get("ID", ""),
            sender=(payload.get("From") or {}).get("Address", ""),
            recipients=_addresses(payload.get("To")),
            subject=payload.get("Subject", ""),
            received_at=_parse_created(payload.get("Created")),
            text=payload.get("Text", ""),
            html=payload.get("HTML", ""),
        )

    @property
    def body(self) -> str:
        """Plain-text body, derived from the HTML part when no text part exists."""
        if self.text:
            return self.text
        return html_to_text(self.html) if self.html else ""


class MailpitClient:
    """Async client for the Mailpit REST API.

    ``timeout`` and ``poll_interval`` are the defaults for
    ``Inbox.wait_for_message``; ``transport`` lets tests plug in
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 300.0,
        poll_interval: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = base_url.rstrip("/") + "/api/v1"
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            auth=(username, password) if username and password else None,
            timeout=30.0,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: HarnessConfig, **kwargs: Any) -> MailpitClient:
        if not config.mailpit_url:
            raise ConfigurationError("MAILPIT_URL is not configured")
        return cls(
            config.mailpit_url,
            username=config.mailpit_username,
            password=config.mailpit_password,
            timeout=config.mailbox_timeout,
            **kwargs,
        )

    async def _call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        return response

    async def search(self, query: str, limit: int = 50) -> List[MailMessage]:
        """Search messages (Mailpit query syntax, e.g. ``to:"a@b.test"``), newest first."""
        response = await self._call("GET", "/search", params={"query": query, "limit": limit})
        return [MailMessage.from_api(m) for m in response.json().get("messages") or []]

    async def get_message(self, message_id: str) -> MailMessage:
        response = await self._call("GET", f"/message/{message_id}")
        return MailMessage.from_api(response.json())

    async def delete_message(self, message_id: str) -> None:
        await self._call("DELETE", "/messages", json={"IDs": [message_id]})

    def open_inbox(self, address: str) -> Inbox:
        return Inbox(self, address)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> MailpitClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class Inbox:
    """Messages addressed to one recipient."""

    def __init__(self, client: MailpitClient, address: str) -> None:
        self.client = client
        self.address = address

    async def wait_for_message(
        self,
        after: datetime | None = None,
        predicate: Optional[Callable[[MailMessage], bool]] = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> MailMessage | None:
        """Wait for the oldest message that arrived after ``after`` and matches ``predicate``.

        Returns:
            The full message, or None if nothing qualified within ``timeout``.
        """
        timeout = self.client.timeout if timeout is None else timeout
        poll_interval = self.client.poll_interval if poll_interval is None else poll_interval
        rejected: set[str] = set()
        deadline = anyio.current_time() + timeout

        while True:
            summaries = await self.client.search(f'to:"{self.address}"')
            candidates = sorted(
                (s for s in summaries if s.id not in rejected and (after is None or s.received_at > after)),
                key=lambda s: s.received_at,
            )
            for summary in candidates:
                message = await self.client.get_message(summary.id)
                if predicate is None or predicate(message):
                    logger.debug("Message %s arrived for %s", message.id, self.address)
                    return message
                rejected.add(summary.id)

            if anyio.current_time() + poll_interval > deadline:
                logger.debug("No message for %s within %.1fs", self.address, timeout)
                return None
            await anyio.sleep(poll_interval)
