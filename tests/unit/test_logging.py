"""
Unit tests for request-scoped log context.
"""
import asyncio

import pytest
import structlog

from sitebooks.auth.principal import Principal
from sitebooks.auth.security import get_current_principal
from sitebooks.logging import bind_principal
from sitebooks.models.enums import Role

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def clean_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestBindPrincipal:
    def test_binds_id_and_role(self, supervisor):
        bind_principal(Principal(id=supervisor.id, role=Role.supervisor))
        bound = structlog.contextvars.get_contextvars()
        assert bound["principal_id"] == str(supervisor.id)
        assert bound["principal_role"] == "supervisor"

    def test_keeps_request_id(self, admin):
        structlog.contextvars.bind_contextvars(request_id="req-1")
        bind_principal(Principal(id=admin.id, role=Role.admin))
        bound = structlog.contextvars.get_contextvars()
        assert bound["request_id"] == "req-1"
        assert bound["principal_role"] == "admin"

    def test_dependency_binds_in_callers_context(self, admin):
        async def resolve():
            principal = await get_current_principal(admin)
            return principal, structlog.contextvars.get_contextvars()

        principal, bound = asyncio.run(resolve())
        assert principal == Principal(id=admin.id, role=Role.admin)
        assert bound["principal_id"] == str(admin.id)
