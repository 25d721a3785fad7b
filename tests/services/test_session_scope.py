"""
Tests for the request-level unit of work in erp_kernel.db.engine.

Services only flush; session_scope() is where work is committed or thrown
away as a whole.
"""

import pytest
from sqlalchemy import select

from erp_kernel.db.engine import session_scope
from erp_kernel.models.partner import Partner, PartnerType


class TestSessionScope:
    """session_scope() commits on success and rolls back on error."""

    def test_error_inside_scope_rolls_back(self, db_tables, captured_logs):
        with pytest.raises(RuntimeError, match="request failed"):
            with session_scope() as session:
                session.add(Partner(name="Scope Rollback Co", type=PartnerType.VENDOR.value))
                session.flush()
                raise RuntimeError("request failed")

        with session_scope() as session:
            found = session.execute(
                select(Partner).where(Partner.name == "Scope Rollback Co")
            ).scalar_one_or_none()
        assert found is None

        messages = [r["message"] for r in captured_logs()]
        assert "transaction_rolled_back" in messages

    def test_clean_exit_commits(self, db_tables, captured_logs):
        with session_scope() as session:
            session.execute(select(Partner)).all()

        assert "transaction_committed" in [r["message"] for r in captured_logs()]
