from datetime import datetime
from decimal import Decimal

import pytest

from jobimport import models
from jobimport.errors import ResolutionError
from jobimport.pipelines.normalization import (
    NormalizationError,
    apply_defaults,
    apply_field_mapping,
    apply_ownership,
    column_attribute,
    normalize_record,
    parse_bool,
    split_list,
)
from jobimport.resolver import Resolution


def _resolution(company_name="Acme Staffing", region="india"):
    company = models.Company(id=7, name=company_name, region=region, is_active=True)
    user = models.User(id=3, email="owner@acme.example", company_id=7)
    return Resolution(user=user, company=company, region=region)


def test_full_row():
    record = normalize_record({
        "title": "  Senior Software Engineer ",
        "description": "Build things",
        "location": "Mumbai",
        "type": "contract",
        "experience": "Senior",
        "experienceMin": "5",
        "experienceMax": 10.0,
        "salary": "30-40 LPA",
        "skills": "JavaScript, React ,,Node.js",
        "benefits": ["Insurance", " Bonus "],
        "isUrgent": "TRUE",
        "isFeatured": "yes",
        "validTill": "2027-03-31",
        "postingType": "Company",
    })

    assert record.title == "Senior Software Engineer"
    assert record.job_type == "contract"
    assert record.employment_type == "Full Time, Contract"
    assert record.experience_level == "senior"
    assert (record.experience_min, record.experience_max) == (5, 10)
    assert record.salary_min == Decimal("3000000.00")
    assert record.salary_display == "30-40 LPA"
    assert record.skills == ["JavaScript", "React", "Node.js"]
    assert record.benefits == ["Insurance", "Bonus"]
    assert record.is_urgent is True
    assert record.is_featured is False
    assert record.valid_till == datetime(2027, 3, 31)
    assert record.posting_type == "company"
    assert record.country == "India"


def test_defaults_for_missing_fields():
    record = normalize_record({"title": "Clerk", "description": "Filing", "location": "Pune"})

    assert record.job_type == "full-time"
    assert record.experience_level == "entry"
    assert record.experience == "fresher"
    assert record.employment_type == "Full Time, Permanent"
    assert record.remote_work == "on-site"
    assert record.salary_currency == "INR"
    assert record.salary_period == "yearly"
    assert record.skills == []
    assert record.posting_type == "company"
    assert record.salary_min is None


def test_snake_case_columns_are_accepted():
    record = normalize_record({
        "title": "Analyst",
        "description": "Numbers",
        "location": "Delhi",
        "salary_min": "8",
        "salary_max": "12",
        "posting_type": "consultancy",
        "hiring_company_name": "Client Co",
    })

    assert record.salary_min == Decimal("800000.00")
    assert record.salary_max == Decimal("1200000.00")
    assert record.posting_type == "consultancy"
    assert record.hiring_company_name == "Client Co"


def test_job_type_alias():
    record = normalize_record({"title": "T", "description": "D", "location": "L", "jobType": "part-time"})

    assert record.job_type == "part-time"
    assert record.employment_type == "Part Time, Permanent"


def test_bad_integer_raises():
    with pytest.raises(NormalizationError, match="experienceMin"):
        normalize_record({"title": "T", "description": "D", "location": "L", "experienceMin": "five"})


def test_bad_date_raises():
    with pytest.raises(NormalizationError, match="validTill"):
        normalize_record({"title": "T", "description": "D", "location": "L", "validTill": "someday"})


def test_non_mapping_row():
    with pytest.raises(NormalizationError):
        normalize_record(["title", "description"])


def test_field_mapping_renames_columns():
    mapped = apply_field_mapping({"Job Title": "Writer", "City": "Goa"}, {"Job Title": "title", "Missing": "x"})

    assert mapped == {"title": "Writer", "City": "Goa"}


def test_defaults_fill_only_blank_fields():
    filled = apply_defaults(
        {"title": "Writer", "location": "", "remote_work": "remote"},
        {"title": "Ignored", "location": "Remote, India", "remoteWork": "hybrid", "category": "Content"},
    )

    assert filled["title"] == "Writer"
    assert filled["location"] == "Remote, India"
    assert filled["remote_work"] == "remote"
    assert "remoteWork" not in filled
    assert filled["category"] == "Content"


def test_normalize_with_mapping_and_defaults():
    record = normalize_record(
        {"Job Title": "Writer", "Details": "Write copy", "location": ""},
        mapping={"Job Title": "title", "Details": "description"},
        defaults={"location": "Remote", "postingType": "company"},
    )

    assert (record.title, record.description, record.location) == ("Writer", "Write copy", "Remote")


def test_consultancy_name_comes_from_owner_company():
    record = normalize_record({
        "title": "Developer",
        "description": "Code",
        "location": "Bangalore",
        "postingType": "consultancy",
        "consultancyName": "Spoofed Consultancy",
        "hiringCompanyName": "Fortune 500 Tech Corp",
        "showHiringCompanyDetails": "true",
    })

    owned = apply_ownership(record, _resolution())
    metadata = owned.posting_metadata()

    assert owned.consultancy_name == "Acme Staffing"
    assert metadata["consultancyName"] == "Acme Staffing"
    assert metadata["hiringCompany"]["name"] == "Fortune 500 Tech Corp"
    assert metadata["showHiringCompanyDetails"] is True


def test_consultancy_requires_company_name():
    record = normalize_record({"title": "T", "description": "D", "location": "L", "postingType": "consultancy"})

    with pytest.raises(ResolutionError):
        apply_ownership(record, _resolution(company_name="  "))


def test_company_posting_metadata_has_no_consultancy_block():
    record = normalize_record({"title": "T", "description": "D", "location": "L", "companyName": "Tech"})
    owned = apply_ownership(record, _resolution())

    assert owned.consultancy_name is None
    assert owned.posting_metadata() == {"postingType": "company", "companyName": "Tech"}


def test_region_falls_back_to_owner():
    record = normalize_record({"title": "T", "description": "D", "location": "Dubai"})
    explicit = normalize_record({"title": "T", "description": "D", "location": "Dubai", "region": "Gulf"})

    assert apply_ownership(record, _resolution(region="gulf")).region == "gulf"
    assert apply_ownership(explicit, _resolution(region="india")).region == "gulf"


@pytest.mark.parametrize(
    "column, attribute",
    [("salaryMin", "salary_min"), ("type", "job_type"), ("salary", "salary_display"), ("title", "title")],
)
def test_column_attribute(column, attribute):
    assert column_attribute(column) == attribute


def test_split_list_and_parse_bool():
    assert split_list("a, b,,c ") == ["a", "b", "c"]
    assert split_list(None) == []
    assert parse_bool(True) is True
    assert parse_bool(" True ") is True
    assert parse_bool("1") is False
    assert parse_bool(1) is False


@pytest.mark.parametrize("value", ["1e2000000", "-1e2000000", "3000000000"])
def test_integer_out_of_column_range_raises(value):
    with pytest.raises(NormalizationError, match="experienceMin is out of range"):
        normalize_record({"title": "T", "description": "D", "location": "L", "experienceMin": value})


def test_negative_salary_bound_raises():
    with pytest.raises(NormalizationError, match="negative"):
        normalize_record({"title": "T", "description": "D", "location": "L", "salaryMin": "-1e30"})


def test_unrepresentable_salary_text_raises():
    with pytest.raises(NormalizationError, match="salary"):
        normalize_record({"title": "T", "description": "D", "location": "L", "salary": "1" + "0" * 40 + "-2"})
