"""Infrastructure: the ledger store over the relational schema."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from licensehub.agents.domain import Agent, AgentNotFound, AgentTotals, Payout, Sale
from licensehub.db.models import AgentRow, CustomerRow, PayoutRow, SaleRow, utcnow

agents_table = AgentRow.__table__


def _agent(row: AgentRow) -> Agent:
    return Agent(
        id=row.id,
        name=row.name,
        phone=row.phone,
        commission_percent=row.commission_percent,
        balance=row.balance,
        created_at=row.created_at,
    )


def _payout(row: PayoutRow) -> Payout:
    return Payout(id=row.id, agent_id=row.agent_id, amount=row.amount, note=row.note, created_at=row.created_at)


class LedgerStore:
    """
    Agents, sales and payouts. Every method runs inside the caller's session;
    the caller owns the transaction (Database.transaction).
    """

    async def add_agent(self, session: AsyncSession, *, name: str, phone: str, commission_percent: Decimal) -> Agent:
        row = AgentRow(
            name=name,
            phone=phone,
            commission_percent=commission_percent,
            balance=Decimal("0"),
            created_at=utcnow(),
        )
        session.add(row)
        await session.flush()
        return _agent(row)

    async def get_agent(self, session: AsyncSession, agent_id: int) -> Optional[Agent]:
        row = await session.get(AgentRow, agent_id)
        return _agent(row) if row is not None else None

    async def lock_agent(self, session: AsyncSession, agent_id: int) -> Agent:
        """SELECT ... FOR UPDATE on one agent row; held until the transaction ends."""
        stmt = (
            select(AgentRow)
            .where(AgentRow.id == agent_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise AgentNotFound(agent_id)
        return _agent(row)

    async def update_agent(self, session: AsyncSession, agent_id: int, changes: dict[str, Any]) -> Agent:
        """Update profile columns (name, phone, commission_percent) under the row lock."""
        row = await session.get(AgentRow, agent_id, with_for_update=True)
        if row is None:
            raise AgentNotFound(agent_id)
        for column, value in changes.items():
            setattr(row, column, value)
        await session.flush()
        return _agent(row)

    async def customer_exists(self, session: AsyncSession, customer_id: int) -> bool:
        found = await session.scalar(select(CustomerRow.id).where(CustomerRow.id == customer_id))
        return found is not None

    async def insert_sale(
        self,
        session: AsyncSession,
        *,
        agent_id: int,
        customer_id: Optional[int],
        sale_price: Decimal,
        commission_percent: Decimal,
        commission_amount: Decimal,
        note: Optional[str],
    ) -> Sale:
        row = SaleRow(
            agent_id=agent_id,
            customer_id=customer_id,
            sale_price=sale_price,
            commission_percent=commission_percent,
            commission_amount=commission_amount,
            note=note,
            created_at=utcnow(),
        )
        session.add(row)
        await session.flush()
        return Sale(
            id=row.id,
            agent_id=row.agent_id,
            customer_id=row.customer_id,
            sale_price=row.sale_price,
            commission_percent=row.commission_percent,
            commission_amount=row.commission_amount,
            note=row.note,
            created_at=row.created_at,
        )

    async def insert_payout(self, session: AsyncSession, *, agent_id: int, amount: Decimal, note: Optional[str]) -> Payout:
        row = PayoutRow(agent_id=agent_id, amount=amount, note=note, created_at=utcnow())
        session.add(row)
        await session.flush()
        return _payout(row)

    async def credit(self, session: AsyncSession, agent_id: int, amount: Decimal) -> None:
        # round() keeps SQLite's REAL column on whole cents across repeated updates
        stmt = (
            update(agents_table)
            .where(agents_table.c.id == agent_id)
            .values(balance=func.round(agents_table.c.balance + amount, 2))
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise AgentNotFound(agent_id)

    async def debit(self, session: AsyncSession, agent_id: int, amount: Decimal) -> bool:
        """Guarded decrement: touches the row only if the balance covers amount."""
        stmt = (
            update(agents_table)
            .where(agents_table.c.id == agent_id, agents_table.c.balance >= amount)
            .values(balance=func.round(agents_table.c.balance - amount, 2))
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    def _totals_query(self) -> Select[Any]:
        earned = (
            select(SaleRow.agent_id, func.sum(SaleRow.commission_amount).label("earned"))
            .group_by(SaleRow.agent_id)
            .subquery("se")
        )
        paid = (
            select(PayoutRow.agent_id, func.sum(PayoutRow.amount).label("paid"))
            .group_by(PayoutRow.agent_id)
            .subquery("pa")
        )
        return (
            select(
                AgentRow,
                func.coalesce(earned.c.earned, Decimal("0")).label("earned"),
                func.coalesce(paid.c.paid, Decimal("0")).label("paid"),
            )
            .outerjoin(earned, earned.c.agent_id == AgentRow.id)
            .outerjoin(paid, paid.c.agent_id == AgentRow.id)
            .order_by(AgentRow.created_at.asc(), AgentRow.id.asc())
        )

    async def agents_with_totals(
        self, session: AsyncSession, agent_id: Optional[int] = None
    ) -> list[tuple[Agent, AgentTotals]]:
        """Each agent with earned/paid summed from ledger rows next to the cached balance."""
        stmt = self._totals_query()
        if agent_id is not None:
            stmt = stmt.where(AgentRow.id == agent_id)
        out: list[tuple[Agent, AgentTotals]] = []
        for row, earned, paid in (await session.execute(stmt)).all():
            agent = _agent(row)
            out.append((agent, AgentTotals(agent_id=agent.id, earned=earned, paid=paid, balance=agent.balance)))
        return out

    async def sales_for(self, session: AsyncSession, agent_id: int, *, limit: int) -> list[Sale]:
        """Most recent first, with the customer's name and product where one is linked."""
        stmt = (
            select(SaleRow, CustomerRow.customer_name, CustomerRow.product_id)
            .outerjoin(CustomerRow, CustomerRow.id == SaleRow.customer_id)
            .where(SaleRow.agent_id == agent_id)
            .order_by(SaleRow.created_at.desc(), SaleRow.id.desc())
            .limit(limit)
        )
        return [
            Sale(
                id=row.id,
                agent_id=row.agent_id,
                customer_id=row.customer_id,
                sale_price=row.sale_price,
                commission_percent=row.commission_percent,
                commission_amount=row.commission_amount,
                note=row.note,
                created_at=row.created_at,
                customer_name=customer_name,
                product_id=product_id,
            )
            for row, customer_name, product_id in (await session.execute(stmt)).all()
        ]

    async def payouts_for(self, session: AsyncSession, agent_id: int, *, limit: int) -> list[Payout]:
        stmt = (
            select(PayoutRow)
            .where(PayoutRow.agent_id == agent_id)
            .order_by(PayoutRow.created_at.desc(), PayoutRow.id.desc())
            .limit(limit)
        )
        return [_payout(row) for row in (await session.execute(stmt)).scalars().all()]
