"""
System Wiring Module

Builds storage, audit trail and every club component from configuration.
"""

from dataclasses import dataclass
from typing import Optional

from .audit import AuditTrail
from .config import ClubConfig, get_config
from .logging_config import setup_logging
from .payments import PaymentProcessor
from .registry import ClubRegistry
from .scheduler import InvestmentScheduler
from .storage import StorageInterface, create_storage
from .treasury import TreasuryLedger


@dataclass
class InvestmentClubSystem:
    """All components sharing one storage backend"""
    config: ClubConfig
    storage: StorageInterface
    audit_trail: Optional[AuditTrail]
    registry: ClubRegistry
    scheduler: InvestmentScheduler
    payments: PaymentProcessor
    treasury: TreasuryLedger

    def close(self) -> None:
        self.storage.close()


def create_system(config: Optional[ClubConfig] = None,
                  storage: Optional[StorageInterface] = None) -> InvestmentClubSystem:
    """
    Build a ready-to-use system

    Args:
        config: Configuration, the global instance when omitted
        storage: Backend to use instead of the one named by config.database_url
    """
    config = config or get_config()
    setup_logging(config.log_level, config.log_format)

    storage = storage or create_storage(config.database_url)
    audit_trail = AuditTrail(storage, config.audit_table) if config.enable_audit_logging else None
    registry = ClubRegistry(storage, audit_trail)

    return InvestmentClubSystem(
        config=config,
        storage=storage,
        audit_trail=audit_trail,
        registry=registry,
        scheduler=InvestmentScheduler(registry, audit_trail),
        payments=PaymentProcessor(registry, audit_trail),
        treasury=TreasuryLedger(registry, audit_trail),
    )
