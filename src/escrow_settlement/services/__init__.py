"""Application services — use case orchestration."""

from escrow_settlement.services.escrow_engine import EscrowEngine
from escrow_settlement.services.notarization_pipeline import NotarizationPipeline
from escrow_settlement.services.settlement_facade import SettlementFacade

__all__ = ["EscrowEngine", "NotarizationPipeline", "SettlementFacade"]
