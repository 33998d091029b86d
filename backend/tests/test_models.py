from fitplan.db.base import Base
from fitplan.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_core_tables() -> None:
    table_names = set(Base.metadata.tables.keys())
    expected = {
        "users",
        "weekly_plans",
        "daily_completions",
    }

    assert expected.issubset(table_names)


def test_local_cache_tables_are_separate() -> None:
    from fitplan.storage.local_models import LocalBase

    assert {"cache_entries", "sync_outbox"}.issubset(LocalBase.metadata.tables.keys())
    assert not set(LocalBase.metadata.tables) & set(Base.metadata.tables)
