from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import pytest

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="jobimport-tests-"))

# Settings are read once at import time; point them at a throwaway SQLite file
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'imports.db'}"
os.environ["STORAGE_UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["IMPORT_SCHEDULER_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

from sqlalchemy import event, select  # noqa: E402

from jobimport import db, models, storage  # noqa: E402
from jobimport.config import settings  # noqa: E402
from jobimport.parsers import detect_import_type  # noqa: E402


# The driver's own transaction handling breaks SAVEPOINT, so BEGIN is emitted here.
# IMMEDIATE takes the write lock up front; concurrent runs queue instead of deadlocking.
@event.listens_for(db.engine.sync_engine, "connect")
def _disable_driver_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(db.engine.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> Path:
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings.storage, "upload_dir", str(path))
    return path


@pytest.fixture
async def session_factory():
    async with db.engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)
        await conn.run_sync(models.Base.metadata.create_all)
    yield db.AsyncSessionMaker


@pytest.fixture
async def company(session_factory) -> models.Company:
    async with session_factory() as session:
        company = models.Company(name="Tech Solutions Inc.", region="gulf")
        session.add(company)
        await session.commit()
        return company


@pytest.fixture
async def employer(session_factory, company) -> models.User:
    async with session_factory() as session:
        user = models.User(email="hr@techsolutions.example", full_name="Priya HR", company_id=company.id)
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
def make_import(session_factory):
    """Store ``content`` and insert a pending import for ``user``; returns its id."""

    async def _make(user: models.User, content: bytes, filename: str = "jobs.csv", **fields: Any) -> int:
        stored = await storage.save_upload(content, filename)
        async with session_factory() as session:
            import_job = models.BulkJobImport(
                import_name=filename,
                import_type=fields.pop("import_type", detect_import_type(filename).value),
                file_path=stored,
                original_filename=filename,
                file_size=len(content),
                created_by=user.id,
                company_id=fields.pop("company_id", user.company_id),
                **fields,
            )
            session.add(import_job)
            await session.commit()
            return import_job.id

    return _make


@pytest.fixture
def load_import(session_factory):
    async def _load(import_id: int) -> models.BulkJobImport | None:
        async with session_factory() as session:
            return await session.get(models.BulkJobImport, import_id)

    return _load


@pytest.fixture
def load_jobs(session_factory):
    async def _load() -> list[models.Job]:
        async with session_factory() as session:
            rows = await session.execute(select(models.Job).order_by(models.Job.id))
            return list(rows.scalars().all())

    return _load
