"""
Test configuration and fixtures
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cmms_analytics.api.deps import get_analytics_service
from cmms_analytics.core.database import Base, get_db
from cmms_analytics.core.security import create_access_token
from cmms_analytics.main import app
from cmms_analytics.models import (
    Asset,
    Organization,
    Permission,
    Role,
    Site,
    User,
    UserRole,
    WorkHistory,
    WorkOrder,
    WorkOrderPart,
    WorkOrderPriority,
    WorkOrderStatus,
    WorkOrderType,
)
from cmms_analytics.services.analytics_service import AnalyticsService
from cmms_analytics.services.permissions import Caller
from cmms_analytics.services.record_store import SqlRecordStore

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
async def test_engine(tmp_path):
    """Per-test SQLite database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_maker() as session:
        yield session
        await session.rollback()


@dataclass
class SeededTenant:
    org: Organization
    sites: Dict[str, Site] = field(default_factory=dict)
    assets: Dict[str, Asset] = field(default_factory=dict)
    users: Dict[str, User] = field(default_factory=dict)
    work_orders: List[WorkOrder] = field(default_factory=list)

    def caller(self, user_key: str) -> Caller:
        user = self.users[user_key]
        roles = [ur.role for ur in user.user_roles]
        return Caller(
            tenant_id=self.org.id,
            user_id=user.id,
            roles=frozenset(role.code for role in roles),
            permissions=frozenset(p.code for role in roles for p in role.permissions),
        )


async def _permissions(session: AsyncSession) -> Dict[str, Permission]:
    perms = {
        code: Permission(code=code)
        for code in ("reports.read", "reports.build", "reports.export")
    }
    session.add_all(perms.values())
    await session.flush()
    return perms


async def _tenant(session: AsyncSession, code: str, perms: Dict[str, Permission]) -> SeededTenant:
    org = Organization(code=code, name=f"{code} Manufacturing")
    session.add(org)
    await session.flush()
    tenant = SeededTenant(org=org)

    manager = Role(organization_id=org.id, name="Manager", code="manager")
    manager.permissions = [perms["reports.read"], perms["reports.build"], perms["reports.export"]]
    tech = Role(organization_id=org.id, name="Technician", code="tech")
    tech.permissions = [perms["reports.read"]]
    session.add_all([manager, tech])
    await session.flush()

    for key, first, last, roles in (
        ("builder", "Avery", "Stone", [manager]),
        ("tech", "Jordan", "Lee", [tech]),
        ("viewer", "Sam", "Reyes", []),
    ):
        user = User(
            organization_id=org.id,
            email=f"{key}@{code.lower()}.example.com",
            first_name=first,
            last_name=last,
        )
        user.user_roles = [UserRole(role=role) for role in roles]
        session.add(user)
        tenant.users[key] = user

    tenant.sites["north"] = Site(organization_id=org.id, code="N", name="North Plant")
    tenant.sites["south"] = Site(organization_id=org.id, code="S", name="South Plant")
    session.add_all(tenant.sites.values())
    await session.flush()

    tenant.assets["press"] = Asset(
        organization_id=org.id, site_id=tenant.sites["north"].id, asset_num="P-1", name="Press 1",
        category="Press", purchase_price=12000.0,
    )
    tenant.assets["lathe"] = Asset(
        organization_id=org.id, site_id=tenant.sites["south"].id, asset_num="L-2", name="Lathe 2",
        category="Lathe", purchase_price=8000.0,
    )
    session.add_all(tenant.assets.values())
    await session.flush()
    return tenant


@pytest.fixture
async def seeded(db_session) -> Dict[str, SeededTenant]:
    """
    Two tenants. Tenant "A" has three work orders:
    a completed corrective on the press (2h repair), a completed PM on the
    lathe (completed 6h after the first) and an open corrective on the press.
    """
    perms = await _permissions(db_session)
    a = await _tenant(db_session, "A", perms)
    b = await _tenant(db_session, "B", perms)

    wo1 = WorkOrder(
        organization_id=a.org.id, site_id=a.sites["north"].id, wo_number="WO-1", title="Replace bearing",
        work_type=WorkOrderType.CORRECTIVE, status=WorkOrderStatus.COMPLETED, priority=WorkOrderPriority.HIGH,
        asset_id=a.assets["press"].id, assigned_to_id=a.users["builder"].id,
        created_at=T0, completed_at=T0 + timedelta(hours=2),
        total_cost=100.0, downtime_minutes=30.0, labor_hours=2.0, failure_code="BRG",
    )
    wo1.parts_used = [WorkOrderPart(unit_cost=20.0, quantity=2)]
    wo2 = WorkOrder(
        organization_id=a.org.id, site_id=a.sites["south"].id, wo_number="WO-2", title="Lathe PM",
        work_type=WorkOrderType.PREVENTIVE, status=WorkOrderStatus.COMPLETED, priority=WorkOrderPriority.MEDIUM,
        asset_id=a.assets["lathe"].id, pm_task_id=7,
        created_at=T0 + timedelta(hours=3), completed_at=T0 + timedelta(hours=8),
        total_cost=50.0, labor_hours=1.0,
    )
    wo3 = WorkOrder(
        organization_id=a.org.id, site_id=a.sites["north"].id, wo_number="WO-3", title="Press noise",
        work_type=WorkOrderType.CORRECTIVE, status=WorkOrderStatus.REQUESTED, priority=WorkOrderPriority.HIGH,
        asset_id=a.assets["press"].id,
        created_at=T0 + timedelta(days=1), due_date=T0 + timedelta(days=2),
    )
    # Tenant B work order pointing at tenant A's asset must not resolve its name
    wo_b = WorkOrder(
        organization_id=b.org.id, site_id=b.sites["north"].id, wo_number="WO-B1", title="Other tenant",
        work_type=WorkOrderType.CORRECTIVE, status=WorkOrderStatus.COMPLETED, priority=WorkOrderPriority.LOW,
        asset_id=a.assets["press"].id, created_at=T0, completed_at=T0 + timedelta(hours=1),
        total_cost=999.0,
    )
    db_session.add_all([wo1, wo2, wo3, wo_b])
    a.work_orders = [wo1, wo2, wo3]
    b.work_orders = [wo_b]
    await db_session.flush()

    db_session.add(WorkHistory(
        organization_id=a.org.id, work_order_id=wo1.id, asset_id=a.assets["press"].id,
        technician_id=a.users["tech"].id, completed_at=T0 + timedelta(hours=2),
        time_spent_hours=2.0, craft="Mechanic",
    ))
    await db_session.commit()
    return {"A": a, "B": b}


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
async def client(test_session_maker) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the per-test database."""

    async def override_get_db():
        async with test_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(
        SqlRecordStore(test_session_maker)
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
