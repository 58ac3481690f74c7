"""Infrastructure: license records store and the whitelisted search/sort query builder."""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import Select, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from licensehub.db.models import AgentRow, CustomerRow, utcnow
from licensehub.licenses.domain import License

SORTS = {
    "expire_asc": (CustomerRow.expire_at.asc().nulls_last(), CustomerRow.id.asc()),
    "expire_desc": (CustomerRow.expire_at.desc().nulls_last(), CustomerRow.id.desc()),
    "issued_asc": (CustomerRow.issued_at.asc(), CustomerRow.id.asc()),
    "issued_desc": (CustomerRow.issued_at.desc(), CustomerRow.id.desc()),
}
DEFAULT_SORT = "expire_asc"

SEARCH_COLUMNS = (
    CustomerRow.customer_name,
    CustomerRow.phone,
    CustomerRow.product_id,
    CustomerRow.license_key,
    AgentRow.name,
    AgentRow.phone,
)

LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Make %, _ and the escape character match literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def build_list_query(search: str = "", sort: str = DEFAULT_SORT, limit: int = 200) -> Select[Any]:
    """Customers joined with their agent. Only whitelisted sort keys; search is a bound parameter."""
    if sort not in SORTS:
        raise ValueError(f"unknown sort {sort!r}")
    stmt = select(
        CustomerRow,
        AgentRow.name,
        AgentRow.phone,
        AgentRow.commission_percent,
    ).outerjoin(AgentRow, AgentRow.id == CustomerRow.agent_id)
    search = search.strip()
    if search:
        pattern = f"%{escape_like(search)}%"
        stmt = stmt.where(or_(*(col.ilike(pattern, escape=LIKE_ESCAPE) for col in SEARCH_COLUMNS)))
    return stmt.order_by(*SORTS[sort]).limit(limit)


def _license(row: CustomerRow, agent_name: Any = None, agent_phone: Any = None, agent_percent: Any = None) -> License:
    return License(
        id=row.id,
        customer_name=row.customer_name,
        phone=row.phone,
        product_id=row.product_id,
        license_key=row.license_key,
        machine_id=row.machine_id,
        expire_at=row.expire_at,
        issued_at=row.issued_at,
        popup_message=row.popup_message,
        agent_id=row.agent_id,
        agent_name=agent_name,
        agent_phone=agent_phone,
        agent_commission_percent=agent_percent,
    )


class LicenseStore:
    async def agent_exists(self, session: AsyncSession, agent_id: int) -> bool:
        return await session.get(AgentRow, agent_id) is not None

    async def add(
        self,
        session: AsyncSession,
        *,
        customer_name: str,
        product_id: str,
        license_key: str,
        phone: Optional[str] = None,
        machine_id: Optional[str] = None,
        popup_message: Optional[str] = None,
        agent_id: Optional[int] = None,
        expire_at: Optional[date] = None,
    ) -> License:
        row = CustomerRow(
            customer_name=customer_name,
            phone=phone,
            product_id=product_id,
            license_key=license_key,
            machine_id=machine_id,
            popup_message=popup_message,
            agent_id=agent_id,
            expire_at=expire_at,
            issued_at=utcnow(),
        )
        session.add(row)
        await session.flush()
        return _license(row)

    async def get(self, session: AsyncSession, customer_id: int) -> Optional[License]:
        stmt = build_list_query(limit=1).where(CustomerRow.id == customer_id)
        found = (await session.execute(stmt)).first()
        return _license(*found) if found is not None else None

    async def search(self, session: AsyncSession, *, search: str, sort: str, limit: int) -> list[License]:
        stmt = build_list_query(search, sort, limit)
        return [_license(*found) for found in (await session.execute(stmt)).all()]
