"""Bulk job-posting import service: models, pipeline, lifecycle and API.

Uploaded CSV, Excel or JSON files are parsed, normalized, validated,
deduplicated and stored as job postings, with progress tracked per import.
"""
