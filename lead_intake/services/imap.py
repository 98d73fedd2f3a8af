"""
IMAP connection manager for the lead intake mailbox.

Owns one IMAP session. New mail is detected two ways: IDLE push (when the
server supports it) and a fallback poll, because push delivery is not
guaranteed. Both paths call check_for_new_messages(), which is serialized.
"""

import threading
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from email import message_from_bytes
from email.header import decode_header as email_decode_header
from email.utils import getaddresses, parsedate_to_datetime
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from imapclient import IMAPClient, SEEN
from imapclient.exceptions import IMAPClientError

from lead_intake.config import Settings, settings
from lead_intake.core.exceptions import ConfigurationError, MailConnectionError
from lead_intake.core.health import HealthState
from lead_intake.core.logging import get_logger
from lead_intake.core.models import ProcessingOutcome, RawMessage
from lead_intake.processors.base import Mailbox
from lead_intake.processors.intake import MessageIntakeProcessor

log = get_logger(__name__)

POLL_JOB_ID = "imap_poll"
POLL_JITTER_SECONDS = 2.5
FIRST_POLL_DELAY_SECONDS = 1
IDLE_REENTRY_PAUSE_SECONDS = 0.1
NEW_MAIL_RESPONSES = {b"EXISTS", b"RECENT"}


@dataclass
class MailSessionConfig:
    """Connection and watch settings for one mailbox session."""

    host: str
    user: str
    password: str
    port: int = 993
    tls: bool = True
    folder: str = "INBOX"
    connect_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 60.0
    idle_enabled: bool = True
    idle_timeout_seconds: int = 30
    max_message_size: int = 5_000_000
    move_processed: str | None = None
    move_failed: str | None = None

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "MailSessionConfig":
        source = source or settings
        return cls(
            host=source.imap_host,
            user=source.imap_user,
            password=source.imap_password,
            port=source.imap_port,
            tls=source.imap_tls,
            folder=source.imap_folder,
            connect_timeout_seconds=source.imap_connect_timeout_seconds,
            poll_interval_seconds=source.imap_poll_interval_seconds,
            idle_enabled=source.imap_idle_enabled,
            idle_timeout_seconds=source.imap_idle_timeout_seconds,
            max_message_size=source.imap_max_msg_size_bytes,
            move_processed=source.imap_move_processed,
            move_failed=source.imap_move_failed,
        )

    def validate(self) -> None:
        missing = [name for name in ("host", "user", "password") if not getattr(self, name)]
        if missing:
            names = ", ".join(f"IMAP_{name.upper()}" for name in missing)
            raise ConfigurationError(f"Set {names} to enable lead ingestion")


def _default_client_factory(config: MailSessionConfig) -> IMAPClient:
    return IMAPClient(
        config.host,
        port=config.port,
        ssl=config.tls,
        timeout=config.connect_timeout_seconds,
    )


def decode_mime_header(header: str | None) -> str:
    """Decode MIME-encoded header text like '=?UTF-8?B?...?='."""
    if not header:
        return ""
    decoded_parts = []
    for part, charset in email_decode_header(header):
        if isinstance(part, bytes):
            decoded_parts.append(part.decode(charset or "utf-8", errors="replace"))
        else:
            decoded_parts.append(part)
    return "".join(decoded_parts).replace("\r\n", "").replace("\n", "")


def _address_list(msg, header: str) -> list[str]:
    values = [decode_mime_header(value) for value in msg.get_all(header, [])]
    addresses = []
    for name, address in getaddresses(values):
        if not address:
            continue
        addresses.append(f"{name} <{address}>" if name else address)
    return addresses


def _get_body(msg) -> tuple[str, str]:
    """Extract plain text and HTML body from message."""
    text_plain = ""
    text_html = ""

    parts = msg.walk() if msg.is_multipart() else [msg]
    for part in parts:
        if part.is_multipart():
            continue
        if "attachment" in part.get("Content-Disposition", ""):
            continue

        payload = part.get_payload(decode=True)
        if not payload:
            continue

        text = payload.decode(part.get_content_charset() or "utf-8", errors="replace")
        content_type = part.get_content_type()
        if content_type == "text/plain":
            text_plain += text
        elif content_type == "text/html":
            text_html += text

    return text_plain, text_html


def parse_raw_message(uid: int, raw: bytes, size_bytes: int = 0) -> RawMessage:
    """Parse RFC822 bytes into a RawMessage."""
    msg = message_from_bytes(raw)

    email_date = None
    date_str = msg.get("Date")
    if date_str:
        try:
            email_date = parsedate_to_datetime(date_str)
        except (TypeError, ValueError):
            log.debug("imap_bad_date_header", uid=uid, date=date_str)

    body_plain, body_html = _get_body(msg)

    return RawMessage(
        uid=uid,
        message_id=msg.get("Message-ID", ""),
        subject=decode_mime_header(msg.get("Subject", "")),
        sender=decode_mime_header(msg.get("From", "")),
        to=_address_list(msg, "To"),
        cc=_address_list(msg, "Cc"),
        body_plain=body_plain,
        body_html=body_html,
        email_date=email_date,
        size_bytes=size_bytes or len(raw),
    )


def _has_new_mail(responses) -> bool:
    return any(
        isinstance(response, tuple) and len(response) > 1 and response[1] in NEW_MAIL_RESPONSES
        for response in responses or ()
    )


class MailConnectionManager(Mailbox):
    """Mailbox session: connect, watch (IDLE + poll), hand messages to the processor."""

    def __init__(
        self,
        processor: MessageIntakeProcessor,
        health: HealthState | None = None,
        client_factory: Callable[[MailSessionConfig], IMAPClient] | None = None,
    ):
        self.processor = processor
        self.health = health or processor.health
        self.client_factory = client_factory or _default_client_factory
        if processor.mailbox is None:
            processor.mailbox = self

        self._client: IMAPClient | None = None
        self._config: MailSessionConfig | None = None
        self._scheduler: BackgroundScheduler | None = None
        self._idle_thread: threading.Thread | None = None
        self._session_started: float | None = None

        self._stop_event = threading.Event()
        # Connection access (fetch, flag, move, IDLE) is one thread at a time
        self._conn_lock = threading.RLock()
        self._check_lock = threading.Lock()
        self._recheck = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._client is not None

    @property
    def uptime(self) -> float | None:
        """Seconds since the session started, None when stopped."""
        if self._session_started is None:
            return None
        return time.monotonic() - self._session_started

    def start(self, config: MailSessionConfig | None = None) -> bool:
        """
        Connect, select the folder and start watching.

        Never raises: missing credentials or a failed connection are logged,
        recorded in the health state, and reported by returning False.
        """
        if self.is_running:
            log.warning("imap_already_running")
            return True

        config = config or MailSessionConfig.from_settings()
        try:
            config.validate()
        except ConfigurationError as e:
            log.warning("imap_not_configured", reason=str(e))
            self.health.set_connected(False)
            return False

        log.info("imap_connecting", host=config.host, user=config.user, folder=config.folder)
        try:
            client = self._connect(config)
        except Exception as e:
            log.error("imap_connect_failed", host=config.host, error=str(e))
            self.health.record_error(f"Connection failed: {e}")
            self.health.set_connected(False)
            return False

        self._stop_event.clear()
        self._client = client
        self._config = config
        self._session_started = time.monotonic()
        self.health.set_connected(True)
        log.info("imap_connected", folder=config.folder)

        self._start_poll(config)
        if config.idle_enabled:
            self._start_idle_watcher(client)

        return True

    def stop(self) -> None:
        """Stop watching and close the session. Safe to call repeatedly."""
        self._stop_event.set()

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        # Waits for an in-flight message or IDLE window to finish
        with self._conn_lock:
            client, self._client = self._client, None

        if self._idle_thread is not None:
            self._idle_thread.join(timeout=5)
            self._idle_thread = None

        if client is None:
            return

        try:
            client.logout()
        except Exception as e:
            log.warning("imap_logout_failed", error=str(e))

        self._session_started = None
        self.health.set_connected(False)
        log.info("imap_stopped")

    def check_for_new_messages(self) -> dict[str, int]:
        """
        Fetch unseen messages and process them in UID order.

        Concurrent calls are coalesced: a call made while a pass is running
        returns immediately and the running pass checks once more.

        Returns:
            Count of messages per processing outcome
        """
        self._recheck.set()
        stats: Counter[str] = Counter()
        # A request can land between the last recheck test and the release
        while self._recheck.is_set() and not self._stop_event.is_set():
            if not self._check_lock.acquire(blocking=False):
                log.debug("imap_check_coalesced")
                break
            try:
                while self._recheck.is_set() and not self._stop_event.is_set():
                    self._recheck.clear()
                    stats.update(self._check_once())
            finally:
                self._check_lock.release()
        return dict(stats)

    def mark_processed(self, uid: int, outcome: ProcessingOutcome) -> None:
        """
        Flag a message as seen and move it if a destination folder is configured.

        Raises:
            MailConnectionError: If the message could not be flagged
        """
        with self._conn_lock:
            client = self._client
            if client is None:
                return

            try:
                client.add_flags([uid], [SEEN])
            except (IMAPClientError, OSError) as e:
                raise MailConnectionError(f"Could not flag message: {e}") from e

            target = None
            if outcome is ProcessingOutcome.PROCESSED:
                target = self._config.move_processed
            elif outcome.is_failure:
                target = self._config.move_failed

            if target:
                try:
                    client.move([uid], target)
                except Exception as e:
                    log.error("imap_move_failed", uid=uid, folder=target, error=str(e))

    def _connect(self, config: MailSessionConfig) -> IMAPClient:
        """Connect, authenticate and select the folder."""
        client = self.client_factory(config)
        try:
            client.login(config.user, config.password)
            client.select_folder(config.folder)
        except Exception:
            # Clean up partial connection if login or select fails
            try:
                client.logout()
            except Exception as logout_error:
                log.debug("imap_logout_failed", error=str(logout_error))
            raise
        return client

    def _start_poll(self, config: MailSessionConfig) -> None:
        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self.check_for_new_messages,
            trigger=IntervalTrigger(seconds=config.poll_interval_seconds, jitter=POLL_JITTER_SECONDS),
            id=POLL_JOB_ID,
            name="Poll mailbox for new leads",
            next_run_time=datetime.now() + timedelta(seconds=FIRST_POLL_DELAY_SECONDS),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        log.info("imap_poll_started", interval_seconds=config.poll_interval_seconds)

    def _start_idle_watcher(self, client: IMAPClient) -> None:
        if b"IDLE" not in client.capabilities():
            log.info("imap_idle_unsupported", reason="server has no IDLE capability, polling only")
            return
        self._idle_thread = threading.Thread(target=self._idle_loop, name="imap-idle", daemon=True)
        self._idle_thread.start()
        log.info("imap_idle_started")

    def _idle_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                with self._conn_lock:
                    client = self._client
                    if client is None:
                        break
                    client.idle()
                    try:
                        responses = client.idle_check(timeout=self._config.idle_timeout_seconds)
                    finally:
                        client.idle_done()
            except Exception as e:
                # The fallback poll keeps running
                log.error("imap_idle_failed", error=str(e))
                self.health.record_error(f"IDLE failed: {e}")
                break

            if _has_new_mail(responses):
                log.info("imap_new_mail_notified")
                self.check_for_new_messages()

            # Let a waiting poll tick take the connection
            self._stop_event.wait(IDLE_REENTRY_PAUSE_SECONDS)

    def _check_once(self) -> Counter:
        stats: Counter[str] = Counter()
        with self._conn_lock:
            client = self._client
            if client is None:
                return stats

            try:
                messages = self._fetch_unseen(client)
            except Exception as e:
                log.error("imap_check_failed", error=str(e))
                self.health.record_error(f"Check failed: {e}")
                self.health.set_connected(False)
                return stats

            self.health.set_connected(True)

            for message in messages:
                if self._stop_event.is_set():
                    break
                result = self.processor.process(message)
                stats[result.outcome.value] += 1

        log.info("imap_check_complete", found=len(messages), uptime_seconds=self.uptime, **stats)
        return stats

    def _fetch_unseen(self, client: IMAPClient) -> list[RawMessage]:
        """Search UNSEEN, drop oversized messages, fetch and parse the rest."""
        uids = client.search(["UNSEEN"])
        if not uids:
            return []

        sizes = {
            uid: data.get(b"RFC822.SIZE", 0)
            for uid, data in client.fetch(uids, ["RFC822.SIZE"]).items()
        }
        safe_uids = []
        for uid in sorted(sizes):
            if sizes[uid] > self._config.max_message_size:
                log.warning("imap_message_oversized", uid=uid, size=sizes[uid])
                continue
            safe_uids.append(uid)

        if not safe_uids:
            return []

        log.info("imap_fetching", folder=self._config.folder, count=len(safe_uids))
        bodies = client.fetch(safe_uids, ["BODY.PEEK[]"])

        messages = []
        for uid in safe_uids:
            raw = (bodies.get(uid) or {}).get(b"BODY[]")
            if not raw:
                continue
            try:
                messages.append(parse_raw_message(uid, raw, size_bytes=sizes[uid]))
            except Exception as e:
                log.error("imap_parse_error", uid=uid, error=str(e))
                self.health.record_error(f"Message parse failed for UID {uid}: {e}")
        return messages
