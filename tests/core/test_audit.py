from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit import AuditAction, AuditService, list_audit_entries


class TestAuditService:
    """Tests for audit trail writes and listing."""

    async def test_log_and_list(self, db_session: AsyncSession):
        audit = AuditService(db_session)
        await audit.log(
            action=AuditAction.CREATE,
            entity_type="Course",
            entity_id=1,
            entity_identifier="Basic Computer Course",
            new_values={"monthly_fee": "1000.00"},
        )
        await audit.log(
            action=AuditAction.APPLY_PAYMENT,
            entity_type="Student",
            entity_id=7,
            new_values={"amount": "500.00"},
        )
        await db_session.commit()

        entries, total = await list_audit_entries(db_session)
        assert total == 2
        assert {e.action for e in entries} == {"CREATE", "APPLY_PAYMENT"}

        entries, total = await list_audit_entries(db_session, entity_type="Student", entity_id=7)
        assert total == 1
        assert entries[0].new_values == {"amount": "500.00"}
        assert entries[0].user_id is None

    async def test_filter_by_action(self, db_session: AsyncSession):
        audit = AuditService(db_session)
        for entity_id in (1, 2, 3):
            await audit.log(action=AuditAction.REVERT_PAYMENT, entity_type="Student", entity_id=entity_id)
        await audit.log(action=AuditAction.CHANGE_STATUS, entity_type="Student", entity_id=1)
        await db_session.commit()

        entries, total = await list_audit_entries(
            db_session, action=AuditAction.REVERT_PAYMENT, page=1, limit=2
        )
        assert total == 3
        assert len(entries) == 2
