"""Application layer: agent commands, the accrual handlers (sale credit, payout debit) and reporting queries."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import Field

from licensehub.agents.domain import (
    AgentNotFound,
    CustomerNotFound,
    InsufficientBalance,
    PayoutRecorded,
    SaleRecorded,
    compute_commission,
)
from licensehub.agents.infrastructure import LedgerStore
from licensehub.db import Database
from licensehub.ddd import Command, Id, Query
from licensehub.domain import EventBus

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 500

NonBlank = Annotated[str, Field(min_length=1, max_length=200)]
Note = Annotated[str, Field(max_length=1000)]
Percent = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
Money = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class CreateAgent(Command):
    """Create an agent with a zero balance."""

    name: NonBlank
    phone: NonBlank
    commission_percent: Percent = Decimal("0")


class UpdateAgent(Command):
    """Update name, phone or commission percent. Past sales keep their own percent."""

    agent_id: Id
    name: Optional[NonBlank] = None
    phone: Optional[NonBlank] = None
    commission_percent: Optional[Percent] = None


class RecordSale(Command):
    """Record a sale and credit the agent's commission."""

    agent_id: Id
    customer_id: Optional[Id] = None
    sale_price: Money
    note: Optional[Note] = None


class RecordPayout(Command):
    """Pay out part of the agent's balance."""

    agent_id: Id
    amount: Money
    note: Optional[Note] = None


class ListAgents(Query):
    """All agents with earned, paid and balance."""


class GetAgentReport(Query):
    """Agent profile, totals and ledger history, most recent first."""

    agent_id: Id
    limit: int = Field(default=HISTORY_LIMIT, ge=1, le=5000)


class ReconcileBalances(Query):
    """Compare each cached balance with the sum of its ledger rows."""

    agent_id: Optional[Id] = None


class CreateAgentHandler:
    def __init__(self, database: Database, store: LedgerStore):
        self._db = database
        self._store = store

    async def __call__(self, cmd: CreateAgent) -> dict[str, Any]:
        async with self._db.transaction(write=True) as session:
            agent = await self._store.add_agent(
                session, name=cmd.name, phone=cmd.phone, commission_percent=cmd.commission_percent
            )
        logger.info("Agent %s created (%s%%)", agent.id, agent.commission_percent)
        return {"id": agent.id}


class UpdateAgentHandler:
    def __init__(self, database: Database, store: LedgerStore):
        self._db = database
        self._store = store

    async def __call__(self, cmd: UpdateAgent) -> dict[str, Any]:
        changes = {
            name: getattr(cmd, name)
            for name in ("name", "phone", "commission_percent")
            if name in cmd.model_fields_set and getattr(cmd, name) is not None
        }
        async with self._db.transaction(write=True) as session:
            agent = await self._store.update_agent(session, cmd.agent_id, changes)
        return {"agent": agent.to_dict()}


class RecordSaleHandler:
    """
    Credit side of the accrual engine. Under the agent row lock: read the
    current percent, insert the sale with that percent as its snapshot, and
    add the commission to the cached balance, all in one transaction.
    """

    def __init__(self, database: Database, store: LedgerStore, event_bus: EventBus):
        self._db = database
        self._store = store
        self._event_bus = event_bus

    async def __call__(self, cmd: RecordSale) -> dict[str, Any]:
        async with self._db.transaction(write=True) as session:
            agent = await self._store.lock_agent(session, cmd.agent_id)
            if cmd.customer_id is not None and not await self._store.customer_exists(session, cmd.customer_id):
                raise CustomerNotFound(cmd.customer_id)
            commission = compute_commission(cmd.sale_price, agent.commission_percent)
            sale = await self._store.insert_sale(
                session,
                agent_id=agent.id,
                customer_id=cmd.customer_id,
                sale_price=cmd.sale_price,
                commission_percent=agent.commission_percent,
                commission_amount=commission,
                note=cmd.note,
            )
            await self._store.credit(session, agent.id, commission)
        await self._event_bus.publish(
            SaleRecorded(
                sale_id=sale.id,
                agent_id=sale.agent_id,
                sale_price=sale.sale_price,
                commission_percent=sale.commission_percent,
                commission_amount=sale.commission_amount,
            )
        )
        return {
            "id": sale.id,
            "commissionPercent": sale.commission_percent,
            "commissionAmount": sale.commission_amount,
        }


class RecordPayoutHandler:
    """
    Debit side of the accrual engine. The balance check happens under the
    same lock as the debit; the debit itself is guarded by balance >= amount.
    """

    def __init__(self, database: Database, store: LedgerStore, event_bus: EventBus):
        self._db = database
        self._store = store
        self._event_bus = event_bus

    async def __call__(self, cmd: RecordPayout) -> dict[str, Any]:
        async with self._db.transaction(write=True) as session:
            agent = await self._store.lock_agent(session, cmd.agent_id)
            if cmd.amount > agent.balance or not await self._store.debit(session, agent.id, cmd.amount):
                logger.info("Payout of %s refused for agent %s (balance %s)", cmd.amount, agent.id, agent.balance)
                raise InsufficientBalance(cmd.amount, agent.balance)
            payout = await self._store.insert_payout(session, agent_id=agent.id, amount=cmd.amount, note=cmd.note)
        await self._event_bus.publish(PayoutRecorded(payout_id=payout.id, agent_id=payout.agent_id, amount=payout.amount))
        return {"id": payout.id}


class ListAgentsHandler:
    def __init__(self, database: Database, store: LedgerStore):
        self._db = database
        self._store = store

    async def __call__(self, query: ListAgents) -> dict[str, Any]:
        async with self._db.transaction() as session:
            rows = await self._store.agents_with_totals(session)
        return {"rows": [{**agent.to_dict(), **totals.to_dict()} for agent, totals in rows]}


class GetAgentReportHandler:
    def __init__(self, database: Database, store: LedgerStore):
        self._db = database
        self._store = store

    async def __call__(self, query: GetAgentReport) -> dict[str, Any]:
        async with self._db.transaction() as session:
            found = await self._store.agents_with_totals(session, query.agent_id)
            if not found:
                raise AgentNotFound(query.agent_id)
            sales = await self._store.sales_for(session, query.agent_id, limit=query.limit)
            payouts = await self._store.payouts_for(session, query.agent_id, limit=query.limit)
        agent, totals = found[0]
        return {
            "agent": agent.to_dict(),
            "totals": totals.to_dict(),
            "sales": [s.to_dict() for s in sales],
            "payouts": [p.to_dict() for p in payouts],
        }


class ReconcileBalancesHandler:
    def __init__(self, database: Database, store: LedgerStore):
        self._db = database
        self._store = store

    async def __call__(self, query: ReconcileBalances) -> dict[str, Any]:
        async with self._db.transaction() as session:
            rows = await self._store.agents_with_totals(session, query.agent_id)
        if query.agent_id is not None and not rows:
            raise AgentNotFound(query.agent_id)
        drift = [
            {
                "agentId": totals.agent_id,
                "balance": totals.balance,
                "earned": totals.earned,
                "paid": totals.paid,
                "derivedBalance": totals.derived_balance,
            }
            for _, totals in rows
            if not totals.consistent
        ]
        if drift:
            logger.error("Balance drift on %d agent(s): %s", len(drift), [d["agentId"] for d in drift])
        return {"consistent": not drift, "checked": len(rows), "drift": drift}
