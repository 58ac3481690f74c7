"""Application layer: license issuance and listing."""
from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Optional

from pydantic import Field

from licensehub.agents.domain import AgentNotFound, CustomerNotFound
from licensehub.db import Database
from licensehub.ddd import Command, Id, Query
from licensehub.licenses.infrastructure import DEFAULT_SORT, LicenseStore

Required = Annotated[str, Field(min_length=1, max_length=500)]
Optional500 = Optional[Annotated[str, Field(max_length=500)]]


class CreateCustomer(Command):
    """Issue a license record, optionally attributed to an agent."""

    customer_name: Required
    product_id: Required
    license_key: Required
    phone: Optional500 = None
    machine_id: Optional500 = None
    popup_message: Optional[Annotated[str, Field(max_length=2000)]] = None
    agent_id: Optional[Id] = None
    expire_at: Optional[date] = None


class ListCustomers(Query):
    """Search and sort license records (max 200 rows)."""

    search: str = ""
    sort: Literal["expire_asc", "expire_desc", "issued_asc", "issued_desc"] = DEFAULT_SORT
    limit: int = Field(default=200, ge=1, le=200)


class GetCustomer(Query):
    """One license record."""

    customer_id: Id


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    return value or None


class CreateCustomerHandler:
    def __init__(self, database: Database, store: LicenseStore):
        self._db = database
        self._store = store

    async def __call__(self, cmd: CreateCustomer) -> dict[str, Any]:
        async with self._db.transaction(write=True) as session:
            if cmd.agent_id is not None and not await self._store.agent_exists(session, cmd.agent_id):
                raise AgentNotFound(cmd.agent_id)
            record = await self._store.add(
                session,
                customer_name=cmd.customer_name,
                product_id=cmd.product_id,
                license_key=cmd.license_key,
                phone=_blank_to_none(cmd.phone),
                machine_id=_blank_to_none(cmd.machine_id),
                popup_message=_blank_to_none(cmd.popup_message),
                agent_id=cmd.agent_id,
                expire_at=cmd.expire_at,
            )
        return {"id": record.id}


class ListCustomersHandler:
    def __init__(self, database: Database, store: LicenseStore):
        self._db = database
        self._store = store

    async def __call__(self, query: ListCustomers) -> dict[str, Any]:
        async with self._db.transaction() as session:
            records = await self._store.search(session, search=query.search, sort=query.sort, limit=query.limit)
        return {"rows": [r.to_dict() for r in records]}


class GetCustomerHandler:
    def __init__(self, database: Database, store: LicenseStore):
        self._db = database
        self._store = store

    async def __call__(self, query: GetCustomer) -> dict[str, Any]:
        async with self._db.transaction() as session:
            record = await self._store.get(session, query.customer_id)
        if record is None:
            raise CustomerNotFound(query.customer_id)
        return {"customer": record.to_dict()}
