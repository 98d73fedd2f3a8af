"""
Wires the intake pipeline together from settings.
"""

from dataclasses import dataclass

from lead_intake.config import Settings, settings as default_settings
from lead_intake.core.database import PostgresLeadStore
from lead_intake.core.health import HealthState
from lead_intake.core.logging import get_logger
from lead_intake.core.store import InMemoryLeadStore, LeadStore
from lead_intake.extractors.lead_fields import LeadFieldExtractor
from lead_intake.processors.filters import LaneGuard
from lead_intake.processors.intake import MessageIntakeProcessor
from lead_intake.services.imap import MailConnectionManager, MailSessionConfig
from lead_intake.services.memory import HTTPMemorySink, LeadMemorySink, NullMemorySink
from lead_intake.services.reconciler import LeadRecordReconciler

log = get_logger(__name__)


@dataclass
class Pipeline:
    store: LeadStore
    health: HealthState
    reconciler: LeadRecordReconciler
    processor: MessageIntakeProcessor
    manager: MailConnectionManager
    memory_sink: LeadMemorySink
    session_config: MailSessionConfig

    def start(self) -> bool:
        return self.manager.start(self.session_config)

    def stop(self) -> None:
        self.manager.stop()
        if isinstance(self.memory_sink, HTTPMemorySink):
            self.memory_sink.close()


def build_store(config: Settings) -> LeadStore:
    if not config.database_url:
        log.info("lead_store_in_memory", reason="DATABASE_URL not set")
        return InMemoryLeadStore()
    store = PostgresLeadStore(config.database_url)
    store.init_schema()
    log.info("lead_store_postgres")
    return store


def build_memory_sink(config: Settings) -> LeadMemorySink:
    if not config.memory_sink_url:
        return NullMemorySink()
    return HTTPMemorySink(config.memory_sink_url)


def build_pipeline(config: Settings | None = None, store: LeadStore | None = None) -> Pipeline:
    """Create every pipeline component; nothing connects until start()."""
    config = config or default_settings
    store = store or build_store(config)
    health = HealthState()
    reconciler = LeadRecordReconciler(store)
    memory_sink = build_memory_sink(config)

    processor = MessageIntakeProcessor(
        store=store,
        health=health,
        reconciler=reconciler,
        extractor=LeadFieldExtractor(
            max_content=config.lead_parse_max_content,
            max_field=config.lead_parse_max_field,
        ),
        memory_sink=memory_sink,
        lane_guard=LaneGuard(config.reserved_recipient_patterns),
        allowed_senders=config.lead_ingest_allowed_senders,
    )
    manager = MailConnectionManager(processor, health=health)

    return Pipeline(
        store=store,
        health=health,
        reconciler=reconciler,
        processor=processor,
        manager=manager,
        memory_sink=memory_sink,
        session_config=MailSessionConfig.from_settings(config),
    )
