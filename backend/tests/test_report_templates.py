"""
Test saved report templates
"""
import pytest

from cmms_analytics.core.exceptions import ForbiddenError, InvalidReportQueryError, NotFoundError
from cmms_analytics.schemas.reports import ReportTemplateCreate, ReportTemplateUpdate
from cmms_analytics.services.permissions import Caller
from cmms_analytics.services.report_templates import ReportTemplateService


def create(**data) -> ReportTemplateCreate:
    data.setdefault("name", "Status breakdown")
    return ReportTemplateCreate.model_validate(data)


def reader(tenant, user_key="viewer") -> Caller:
    """A caller holding only reports.read and no roles."""
    return Caller(
        tenant_id=tenant.org.id,
        user_id=tenant.users[user_key].id,
        permissions=frozenset({"reports.read"}),
    )


class TestCreateTemplate:
    @pytest.mark.asyncio
    async def test_create(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create(
            groupBy=["status"], dateRange={"from": "2024-03-01"},
        ))

        assert template.owner_id == a.users["builder"].id
        assert template.tenant_id == str(a.org.id)
        assert template.visibility.scope == "private"
        assert template.group_by == ["status"]
        assert template.date_range.from_ == "2024-03-01"
        assert len(template.share_id) == 32

    @pytest.mark.asyncio
    async def test_requires_build_permission(self, db_session, seeded):
        service = ReportTemplateService(db_session)
        with pytest.raises(ForbiddenError):
            await service.create_template(seeded["A"].caller("tech"), create())

    @pytest.mark.asyncio
    async def test_invalid_query_is_not_saved(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        with pytest.raises(InvalidReportQueryError):
            await service.create_template(a.caller("builder"), create(groupBy=["bogus"]))
        assert await service.list_templates(a.caller("builder")) == []


class TestVisibility:
    @pytest.mark.asyncio
    async def test_private_template_is_forbidden_to_others(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create())

        assert (await service.get_template(a.caller("builder"), template.id)).id == template.id
        assert (await service.get_template(a.caller("builder"), template.share_id)).id == template.id
        with pytest.raises(ForbiddenError):
            await service.get_template(a.caller("tech"), template.share_id)

    @pytest.mark.asyncio
    async def test_missing_and_cross_tenant_are_not_found(self, db_session, seeded):
        a, b = seeded["A"], seeded["B"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create(visibility={"scope": "tenant"}))

        with pytest.raises(NotFoundError):
            await service.get_template(a.caller("builder"), "does-not-exist")
        with pytest.raises(NotFoundError):
            await service.get_template(b.caller("builder"), template.share_id)
        with pytest.raises(NotFoundError):
            await service.get_template(b.caller("builder"), template.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reference", ["99999999999999999999", "²", "١٢", "-1", " 1"])
    async def test_unusable_ids_are_not_found(self, db_session, seeded, reference):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        await service.create_template(a.caller("builder"), create(visibility={"scope": "tenant"}))
        with pytest.raises(NotFoundError):
            await service.get_template(a.caller("builder"), reference)

    @pytest.mark.asyncio
    async def test_tenant_and_role_scopes(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        builder = a.caller("builder")
        shared = await service.create_template(builder, create(name="Shared", visibility={"scope": "tenant"}))
        techs = await service.create_template(
            builder, create(name="Techs", visibility={"scope": "roles", "roles": ["tech"]})
        )
        await service.create_template(builder, create(name="Mine"))

        assert [t.name for t in await service.list_templates(builder)] == ["Mine", "Techs", "Shared"]
        assert [t.name for t in await service.list_templates(a.caller("tech"))] == ["Techs", "Shared"]
        assert [t.name for t in await service.list_templates(reader(a))] == ["Shared"]

        assert (await service.get_template(a.caller("tech"), techs.id)).name == "Techs"
        with pytest.raises(ForbiddenError):
            await service.get_template(reader(a), techs.id)
        assert (await service.get_template(reader(a), shared.id)).name == "Shared"

    @pytest.mark.asyncio
    async def test_read_permission_required(self, db_session, seeded):
        service = ReportTemplateService(db_session)
        with pytest.raises(ForbiddenError):
            await service.list_templates(seeded["A"].caller("viewer"))


class TestUpdateTemplate:
    @pytest.mark.asyncio
    async def test_update_keeps_share_id(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create(dateRange={"from": "2024-03-01"}))

        updated = await service.update_template(
            a.caller("builder"),
            template.share_id,
            ReportTemplateUpdate.model_validate({
                "name": "Renamed",
                "groupBy": ["priority"],
                "dateRange": None,
                "visibility": {"scope": "roles", "roles": ["tech"]},
            }),
        )
        assert updated.share_id == template.share_id
        assert updated.name == "Renamed"
        assert updated.group_by == ["priority"]
        assert updated.fields == template.fields
        assert updated.date_range is None
        assert updated.visibility.roles == ["tech"]

    @pytest.mark.asyncio
    async def test_invalid_update_is_rejected(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create())

        with pytest.raises(InvalidReportQueryError):
            await service.update_template(
                a.caller("builder"), template.id, ReportTemplateUpdate.model_validate({"fields": ["bogus"]})
            )
        unchanged = await service.get_template(a.caller("builder"), template.id)
        assert unchanged.fields == template.fields

    @pytest.mark.asyncio
    async def test_update_requires_build(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create(visibility={"scope": "tenant"}))
        with pytest.raises(ForbiddenError):
            await service.update_template(
                a.caller("tech"), template.id, ReportTemplateUpdate.model_validate({"name": "Nope"})
            )

    @pytest.mark.asyncio
    async def test_update_other_tenant_not_found(self, db_session, seeded):
        a, b = seeded["A"], seeded["B"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create())
        with pytest.raises(NotFoundError):
            await service.update_template(
                b.caller("builder"), template.share_id, ReportTemplateUpdate.model_validate({"name": "Nope"})
            )


class TestRunTemplate:
    @pytest.mark.asyncio
    async def test_run(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(
            a.caller("builder"), create(groupBy=["status"], visibility={"scope": "tenant"})
        )

        result = await service.run_template(a.caller("tech"), template.share_id)
        counts = {row["status"]: row["count"] for row in result.rows}
        assert counts == {"completed": 2, "requested": 1}

        limited = await service.run_template(a.caller("tech"), template.id, limit=1)
        assert limited.total == 1

    @pytest.mark.asyncio
    async def test_run_hidden_template_is_forbidden(self, db_session, seeded):
        a = seeded["A"]
        service = ReportTemplateService(db_session)
        template = await service.create_template(a.caller("builder"), create())
        with pytest.raises(ForbiddenError):
            await service.run_template(a.caller("tech"), template.id)
