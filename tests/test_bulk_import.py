"""End-to-end import runs against a SQLite database."""

import json
import threading
from datetime import datetime
from decimal import Decimal

from factories import csv_bytes, posting_row, xlsx_bytes
from jobimport import models
from jobimport.import_state import CANCELLABLE_STATES, ImportStatus, transition
from jobimport.pipelines import bulk_import
from jobimport.pipelines.bulk_import import run_import


def _assert_counters(import_job):
    assert import_job.processed_records == (
        import_job.successful_imports + import_job.failed_imports + import_job.skipped_records
    )
    assert import_job.processed_records <= import_job.total_records


async def test_mixed_file(session_factory, employer, company, make_import, load_import, load_jobs):
    content = csv_bytes([
        posting_row(),
        posting_row(title="", location="Delhi"),
        posting_row(title="Marketing Manager", location="Delhi, NCR", salary="", salaryMin="8", salaryMax="12"),
    ])
    import_id = await make_import(employer, content)

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "completed"
    assert (import_job.total_records, import_job.processed_records) == (3, 3)
    assert (import_job.successful_imports, import_job.failed_imports, import_job.skipped_records) == (2, 1, 0)
    assert import_job.progress == Decimal("100")
    assert import_job.started_at is not None and import_job.completed_at is not None
    _assert_counters(import_job)

    assert [entry["row"] for entry in import_job.success_log] == [1, 3]
    assert import_job.error_log[0]["row"] == 2
    assert import_job.error_log[0]["error"] == "title is required"
    assert import_job.error_log[0]["record"]["location"] == "Delhi"

    jobs = await load_jobs()
    assert [job.title for job in jobs] == ["Senior Software Engineer", "Marketing Manager"]
    assert jobs[0].salary_min == Decimal("3000000.00")
    assert jobs[1].salary_max == Decimal("1200000.00")
    assert jobs[1].salary == "8-12 LPA"
    assert all(job.company_id == company.id and job.employer_id == employer.id for job in jobs)
    assert jobs[0].region == "gulf"


async def test_duplicate_rows_in_one_file_are_skipped(session_factory, employer, make_import, load_import, load_jobs):
    content = csv_bytes([
        posting_row(),
        posting_row(title="senior software   engineer", location="MUMBAI, Maharashtra"),
        posting_row(location="Pune"),
    ])
    import_id = await make_import(employer, content)

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert (import_job.successful_imports, import_job.failed_imports, import_job.skipped_records) == (2, 0, 1)
    assert import_job.error_log == []
    assert len(import_job.success_log) == 2
    assert len(await load_jobs()) == 2
    _assert_counters(import_job)


async def test_reimporting_same_file_skips_everything(session_factory, employer, make_import, load_import, load_jobs):
    content = csv_bytes([posting_row(), posting_row(title="QA Lead")])
    first = await make_import(employer, content)
    second = await make_import(employer, content)

    await run_import(first, session_factory)
    await run_import(second, session_factory)

    again = await load_import(second)
    assert again.status == "completed"
    assert (again.successful_imports, again.skipped_records) == (0, 2)
    assert again.progress == Decimal("100")
    assert len(await load_jobs()) == 2


async def test_consultancy_name_overwritten(session_factory, employer, make_import, load_jobs):
    content = json.dumps([
        {
            **posting_row(postingType="consultancy"),
            "consultancyName": "Someone Else",
            "hiringCompanyName": "Fortune 500 Tech Corp",
            "showHiringCompanyDetails": True,
        }
    ]).encode()
    import_id = await make_import(employer, content, filename="jobs.json")

    await run_import(import_id, session_factory)

    [job] = await load_jobs()
    assert job.metadata_["postingType"] == "consultancy"
    assert job.metadata_["consultancyName"] == "Tech Solutions Inc."
    assert job.metadata_["hiringCompany"]["name"] == "Fortune 500 Tech Corp"
    assert job.metadata_["showHiringCompanyDetails"] is True


async def test_xlsx_import(session_factory, employer, make_import, load_import):
    content = xlsx_bytes([
        {"title": "Designer", "description": "UI work", "location": "Chennai", "salaryMin": 6, "salaryMax": 9},
    ])
    import_id = await make_import(employer, content, filename="jobs.xlsx")

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "completed"
    assert import_job.successful_imports == 1


async def test_out_of_range_numbers_fail_only_their_row(session_factory, employer, make_import, load_import, load_jobs):
    content = csv_bytes([
        posting_row(),
        posting_row(title="Payroll Analyst", salary="", salaryMin="-1e30"),
        posting_row(title="Tax Analyst", salary="1" + "0" * 40 + "-2"),
        posting_row(title="Audit Lead", experienceMin="1e2000000"),
        posting_row(title="QA Lead"),
    ])
    import_id = await make_import(employer, content)

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "completed"
    assert (import_job.successful_imports, import_job.failed_imports) == (2, 3)
    assert [entry["row"] for entry in import_job.error_log] == [2, 3, 4]
    assert "negative" in import_job.error_log[0]["error"]
    assert "out of range" in import_job.error_log[2]["error"]
    _assert_counters(import_job)
    assert [job.title for job in await load_jobs()] == ["Senior Software Engineer", "QA Lead"]


async def test_missing_company_fails_every_row(session_factory, make_import, load_import, load_jobs):
    async with session_factory() as session:
        user = models.User(email="solo@example.com")
        session.add(user)
        await session.commit()
    import_id = await make_import(user, csv_bytes([posting_row(), posting_row(title="Other")]))

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "completed"
    assert import_job.failed_imports == 2
    assert "Company ID is required" in import_job.error_log[0]["error"]
    assert await load_jobs() == []


async def test_mapping_defaults_and_rules_from_import(session_factory, employer, make_import, load_import, load_jobs):
    content = csv_bytes([
        {"Job Title": "Writer", "Details": "Write copy", "location": ""},
        {"Job Title": "W", "Details": "Too short a title", "location": "Goa"},
    ])
    import_id = await make_import(
        employer,
        content,
        mapping_config={"Job Title": "title", "Details": "description"},
        default_values={"location": "Remote, India", "category": "Content"},
        validation_rules={"minLength": {"title": 3}},
    )

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert (import_job.successful_imports, import_job.failed_imports) == (1, 1)
    assert import_job.error_log[0]["error"] == "title must be at least 3 characters"
    [job] = await load_jobs()
    assert (job.location, job.category) == ("Remote, India", "Content")


async def test_invalid_rule_overrides_fail_the_run(session_factory, employer, make_import, load_import, load_jobs):
    import_id = await make_import(employer, csv_bytes([posting_row()]), validation_rules={"pattern": {"title": "("}})

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "failed"
    assert len(import_job.error_log) == 1
    assert await load_jobs() == []


async def test_unparseable_file_fails_the_run(session_factory, employer, make_import, load_import):
    import_id = await make_import(employer, b"[{not json", filename="jobs.json")

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "failed"
    assert len(import_job.error_log) == 1
    assert "Failed to parse JSON" in import_job.error_log[0]["error"]
    assert import_job.completed_at is not None
    assert import_job.processed_records == 0


async def test_missing_stored_file_fails_the_run(session_factory, employer, make_import, load_import, upload_dir):
    import_id = await make_import(employer, csv_bytes([posting_row()]))
    for path in upload_dir.iterdir():
        path.unlink()

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "failed"
    assert import_job.error_log[0]["error"] == "Import file not found"


async def test_file_is_parsed_in_a_worker_thread(session_factory, employer, make_import, load_import, monkeypatch):
    parse_threads = []
    original = bulk_import.parse_import_file

    def recording_parse(content, import_type):
        parse_threads.append(threading.get_ident())
        return original(content, import_type)

    monkeypatch.setattr(bulk_import, "parse_import_file", recording_parse)
    import_id = await make_import(employer, csv_bytes([posting_row()]))

    await run_import(import_id, session_factory)

    assert (await load_import(import_id)).successful_imports == 1
    assert len(parse_threads) == 1
    assert parse_threads[0] != threading.get_ident()


async def test_empty_file_completes_with_full_progress(session_factory, employer, make_import, load_import):
    import_id = await make_import(employer, b"title,description,location\n")

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "completed"
    assert import_job.total_records == 0
    assert import_job.progress == Decimal("100")


async def test_cancelled_before_start_never_persists(session_factory, employer, make_import, load_import, load_jobs):
    import_id = await make_import(employer, csv_bytes([posting_row()]))
    async with session_factory() as session:
        await transition(session, import_id, from_states=CANCELLABLE_STATES, to=ImportStatus.CANCELLED,
                         cancelled_at=datetime.utcnow())
        await session.commit()

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert import_job.status == "cancelled"
    assert import_job.started_at is None
    assert import_job.processed_records == 0
    assert await load_jobs() == []


async def test_cancel_mid_run_stops_before_next_row(
    session_factory, employer, make_import, load_import, load_jobs, monkeypatch
):
    content = csv_bytes([posting_row(title=f"Engineer {n}") for n in range(1, 6)])
    import_id = await make_import(employer, content)
    real_process_row = bulk_import.process_row
    calls = []

    async def cancelling_process_row(session, import_job, raw, engine):
        calls.append(raw["title"])
        result = await real_process_row(session, import_job, raw, engine)
        if len(calls) == 2:
            await transition(session, import_job.id, from_states=CANCELLABLE_STATES, to=ImportStatus.CANCELLED,
                             cancelled_at=datetime.utcnow())
        return result

    monkeypatch.setattr(bulk_import, "process_row", cancelling_process_row)

    await run_import(import_id, session_factory)

    import_job = await load_import(import_id)
    assert calls == ["Engineer 1", "Engineer 2"]
    assert import_job.status == "cancelled"
    assert import_job.cancelled_at is not None
    assert import_job.completed_at is None
    assert (import_job.total_records, import_job.processed_records, import_job.successful_imports) == (5, 2, 2)
    assert import_job.progress == Decimal("40")
    assert len(await load_jobs()) == 2
    _assert_counters(import_job)


async def test_run_is_noop_when_not_pending(session_factory, employer, make_import, load_import, load_jobs):
    import_id = await make_import(employer, csv_bytes([posting_row()]), status="completed")

    await run_import(import_id, session_factory)

    assert (await load_import(import_id)).status == "completed"
    assert await load_jobs() == []
