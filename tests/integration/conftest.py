from __future__ import annotations

import pytest

from app.db.models import ConfirmationCode, DiscountCode  # noqa: F401
from app.db.models.base import Base
from app.db.session import engine


@pytest.fixture(autouse=True)
async def reset_schema() -> None:
    # Dispose pooled connections between tests to avoid cross-event-loop reuse.
    await engine.dispose()

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Database is required for integration tests: {exc}")

    yield

    await engine.dispose()
