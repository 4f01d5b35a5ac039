import pytest

from conftest import ADMIN_EMAIL, make_settings
from ticketdesk.container import build_container
from ticketdesk.db import bootstrap_schema, schema_ready
from ticketdesk.stores.cached import CachedTicketStore


def test_missing_schema_fails_at_startup_without_bootstrap():
    container = build_container(make_settings(STORAGE_BACKEND="sql", AUTO_DB_BOOTSTRAP=False))
    try:
        assert not schema_ready(container.engine)
        with pytest.raises(RuntimeError, match="alembic upgrade head"):
            container.bootstrap(create_schema=False)
    finally:
        container.close()


def test_existing_schema_is_used_without_bootstrap():
    container = build_container(make_settings(STORAGE_BACKEND="sql", AUTO_DB_BOOTSTRAP=False))
    try:
        # stands in for a database already migrated
        bootstrap_schema(container.engine)
        container.bootstrap(create_schema=False)
        assert container.users.get_by_email(ADMIN_EMAIL).role == "admin"
    finally:
        container.close()


def test_memory_backend_seeds_admin():
    container = build_container(make_settings(STORAGE_BACKEND="memory"))
    container.bootstrap(create_schema=False)
    assert container.engine is None
    assert container.users.get_by_email(ADMIN_EMAIL) is not None


def test_cache_wrapper_follows_ttl_settings():
    cached = build_container(make_settings())
    plain = build_container(make_settings(TICKET_CACHE_TTL_SECONDS=0, STATISTICS_CACHE_TTL_SECONDS=0))
    assert isinstance(cached.tickets, CachedTicketStore)
    assert not isinstance(plain.tickets, CachedTicketStore)


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        build_container(make_settings(STORAGE_BACKEND="mongo"))
