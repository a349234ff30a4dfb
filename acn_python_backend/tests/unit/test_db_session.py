from acn_python_backend.db_session import async_database_url, get_session_factory


def test_bare_postgres_url_uses_asyncpg():
    assert async_database_url("postgresql://u:p@db:5432/acn") == "postgresql+asyncpg://u:p@db:5432/acn"


def test_explicit_driver_urls_are_untouched():
    assert async_database_url("postgresql+asyncpg://db/acn") == "postgresql+asyncpg://db/acn"
    assert async_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_session_factory_is_shared():
    assert get_session_factory() is get_session_factory()
