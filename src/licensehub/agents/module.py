"""One object = full bounded context «agents»: agent profiles and the commission ledger."""
import logging

from licensehub.ddd import DomainModule

from .application import (
    CreateAgent,
    CreateAgentHandler,
    GetAgentReport,
    GetAgentReportHandler,
    ListAgents,
    ListAgentsHandler,
    ReconcileBalances,
    ReconcileBalancesHandler,
    RecordPayout,
    RecordPayoutHandler,
    RecordSale,
    RecordSaleHandler,
    UpdateAgent,
    UpdateAgentHandler,
)
from .domain import PayoutRecorded, SaleRecorded
from .infrastructure import LedgerStore

logger = logging.getLogger("licensehub.ledger")


def log_sale(event: SaleRecorded) -> None:
    logger.info(
        "sale %s: agent %s +%s (%s%% of %s)",
        event.sale_id,
        event.agent_id,
        event.commission_amount,
        event.commission_percent,
        event.sale_price,
    )


def log_payout(event: PayoutRecorded) -> None:
    logger.info("payout %s: agent %s -%s", event.payout_id, event.agent_id, event.amount)


agents_module = (
    DomainModule("agents", prefix="/api")
    .bind(LedgerStore, LedgerStore)
    .command(CreateAgent, CreateAgentHandler, path="/agents")
    .command(UpdateAgent, UpdateAgentHandler, path="/agents/{agentId}", method="PUT")
    .command(RecordSale, RecordSaleHandler, path="/sales")
    .command(RecordPayout, RecordPayoutHandler, path="/payouts")
    .command(RecordPayout, RecordPayoutHandler, path="/agents/{agentId}/payouts")
    .query(ListAgents, ListAgentsHandler, path="/agents")
    .query(GetAgentReport, GetAgentReportHandler, path="/agents/{agentId}/report")
    .query(GetAgentReport, GetAgentReportHandler, path="/agents/{agentId}/history")
    .query(ReconcileBalances, ReconcileBalancesHandler, path="/ledger/reconcile")
    .on_event(SaleRecorded, log_sale)
    .on_event(PayoutRecorded, log_payout)
)
