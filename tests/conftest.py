"""
Shared fixtures: a temporary SQLite ledger, a harness around the accrual
handlers, and an authenticated HTTP client.
"""
import asyncio
from decimal import Decimal
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List

import pytest
from sqlalchemy import select
from sqlalchemy.pool import NullPool
from starlette.testclient import TestClient

from licensehub.agents.application import (
    CreateAgent,
    CreateAgentHandler,
    GetAgentReport,
    GetAgentReportHandler,
    ReconcileBalances,
    ReconcileBalancesHandler,
    RecordPayout,
    RecordPayoutHandler,
    RecordSale,
    RecordSaleHandler,
    UpdateAgent,
    UpdateAgentHandler,
)
from licensehub.agents.infrastructure import LedgerStore
from licensehub.core import Settings
from licensehub.db import AgentRow, CustomerRow, Database, PayoutRow, SaleRow
from licensehub.domain import InProcessEventDispatcher
from licensehub.main import create_app

API_KEY = "test-secret"


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


def make_database(url: str) -> Database:
    return Database(url, poolclass=NullPool)


# =============================================================================
# LEDGER HARNESS
# =============================================================================


class LedgerHarness:
    """The accrual and reporting handlers wired by hand, plus store inspection helpers."""

    def __init__(self, database: Database):
        self.database = database
        self.store = LedgerStore()
        self.events = InProcessEventDispatcher()
        self.published: List[Any] = []
        self.create_agent_handler = CreateAgentHandler(database, self.store)
        self.update_agent_handler = UpdateAgentHandler(database, self.store)
        self.sale_handler = RecordSaleHandler(database, self.store, self.events)
        self.payout_handler = RecordPayoutHandler(database, self.store, self.events)
        self.report_handler = GetAgentReportHandler(database, self.store)
        self.reconcile_handler = ReconcileBalancesHandler(database, self.store)

    async def create_agent(self, percent: str = "10", name: str = "A", phone: str = "0800000000") -> int:
        result = await self.create_agent_handler(
            CreateAgent(name=name, phone=phone, commission_percent=Decimal(percent))
        )
        return result["id"]

    async def update_agent(self, agent_id: int, **changes: Any) -> Dict[str, Any]:
        return await self.update_agent_handler(UpdateAgent(agent_id=agent_id, **changes))

    async def sale(self, agent_id: int, price: str, customer_id: Any = None, note: Any = None) -> Dict[str, Any]:
        return await self.sale_handler(
            RecordSale(agent_id=agent_id, sale_price=Decimal(price), customer_id=customer_id, note=note)
        )

    async def payout(self, agent_id: int, amount: str, note: Any = None) -> Dict[str, Any]:
        return await self.payout_handler(RecordPayout(agent_id=agent_id, amount=Decimal(amount), note=note))

    async def report(self, agent_id: int) -> Dict[str, Any]:
        return await self.report_handler(GetAgentReport(agent_id=agent_id))

    async def reconcile(self) -> Dict[str, Any]:
        return await self.reconcile_handler(ReconcileBalances())

    async def balance(self, agent_id: int) -> Decimal:
        async with self.database.transaction() as session:
            agent = await self.store.get_agent(session, agent_id)
        assert agent is not None
        return agent.balance

    async def add_customer(self, name: str = "Cust", agent_id: Any = None) -> int:
        async with self.database.transaction(write=True) as session:
            row = CustomerRow(customer_name=name, product_id="P-1", license_key="KEY-1", agent_id=agent_id)
            session.add(row)
            await session.flush()
            return row.id

    async def snapshot(self) -> Dict[str, list]:
        """Every row of every ledger table, as plain tuples."""
        out: Dict[str, list] = {}
        async with self.database.transaction() as session:
            for model in (AgentRow, CustomerRow, SaleRow, PayoutRow):
                rows = (await session.execute(select(model).order_by(model.id))).scalars().all()
                out[model.__tablename__] = [
                    tuple(getattr(r, c.key) for c in model.__table__.columns) for r in rows
                ]
        return out

    async def assert_invariant(self) -> None:
        """Cached balance equals earned minus paid and is never negative, for every agent."""
        async with self.database.transaction() as session:
            rows = await self.store.agents_with_totals(session)
        for agent, totals in rows:
            assert totals.balance == totals.earned - totals.paid, agent
            assert totals.balance >= 0, agent


Scenario = Callable[[LedgerHarness], Awaitable[Any]]


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return sqlite_url(tmp_path / "ledger.db")


@pytest.fixture
def run_ledger(db_url: str) -> Callable[[Scenario], Any]:
    """Run an async scenario against a fresh schema; returns the scenario's result."""

    def run(scenario: Scenario) -> Any:
        async def main() -> Any:
            database = make_database(db_url)
            await database.create_all()
            try:
                return await scenario(LedgerHarness(database))
            finally:
                await database.dispose()

        return asyncio.run(main())

    return run


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def settings(db_url: str) -> Settings:
    return Settings(api_key=API_KEY, database_url=db_url)


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings, make_database(settings.database_url))
    with TestClient(app) as c:
        c.headers.update({"x-api-key": API_KEY})
        yield c


@pytest.fixture
def anon_client(settings: Settings):
    app = create_app(settings, make_database(settings.database_url))
    with TestClient(app) as c:
        yield c


def create_agent(client: TestClient, name: str = "A", phone: str = "0888885588", percent: Any = 10) -> int:
    resp = client.post("/api/agents", json={"name": name, "phone": phone, "commissionPercent": percent})
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


def agent_report(client: TestClient, agent_id: int) -> Dict[str, Any]:
    resp = client.get(f"/api/agents/{agent_id}/report")
    assert resp.status_code == 200, resp.text
    return resp.json()
