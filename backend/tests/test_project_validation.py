"""
Project/intake validation tests: every invalid field reported in one pass,
camelCase field names, no storage access.
"""
from datetime import date, datetime, timezone

import pytest

from conftest import project_payload
from models import IntakePriority, ProjectStatus, WebsiteType
from services.project_validation import (
    validate_intake,
    validate_project_form,
    validate_status_update,
)
from utils.errors import ValidationFailed


def _errors(exc_info) -> dict:
    return {e["field"]: e["message"] for e in exc_info.value.field_errors}


class TestProjectForm:

    def test_valid_payload(self):
        data = validate_project_form(project_payload())
        assert data.business_name == "Sample Business"
        assert data.website_type == WebsiteType.BUSINESS
        assert data.number_of_pages == 5
        assert data.budget == 3000
        assert data.deadline.tzinfo is not None

    def test_snake_case_keys_accepted(self):
        payload = {
            "business_name": "Snake Co",
            "website_type": "BLOG",
            "features": ["Analytics"],
            "number_of_pages": 2,
            "deadline": "2999-01-01",
            "budget": 800,
        }
        data = validate_project_form(payload)
        assert data.business_name == "Snake Co"
        assert data.industry is None

    def test_zero_pages_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(project_payload(numberOfPages=0))
        assert _errors(exc_info) == {"numberOfPages": "Must have at least 1 page"}

    def test_empty_features_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(project_payload(features=[]))
        assert _errors(exc_info) == {"features": "Please select at least one feature"}

    def test_blank_features_are_dropped_before_counting(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(project_payload(features=["  ", ""]))
        assert "features" in exc_info.value.fields

    def test_features_trimmed_and_deduplicated(self):
        data = validate_project_form(project_payload(features=[" Analytics ", "Analytics", "Blog/CMS"]))
        assert data.features == ["Analytics", "Blog/CMS"]

    def test_past_deadline_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(project_payload(deadline="2001-01-01"))
        assert _errors(exc_info) == {"deadline": "Deadline must be in the future"}

    def test_deadline_checked_against_pinned_now(self):
        now = datetime(2030, 6, 1, tzinfo=timezone.utc)
        data = validate_project_form(project_payload(deadline="2030-06-02"), now=now)
        assert data.deadline_date == date(2030, 6, 2)
        with pytest.raises(ValidationFailed):
            # Start of the same day is not in the future
            validate_project_form(project_payload(deadline="2030-06-01"), now=now)

    def test_naive_datetime_deadline_treated_as_utc(self):
        now = datetime(2030, 6, 1, 12, 0)
        data = validate_project_form(project_payload(deadline="2030-06-01T13:00:00"), now=now)
        assert data.deadline == datetime(2030, 6, 1, 13, 0, tzinfo=timezone.utc)

    def test_all_invalid_fields_reported_together(self):
        payload = project_payload(
            businessName="A",
            websiteType="SPACESHIP",
            features=[],
            numberOfPages=101,
            deadline="2001-01-01",
            budget=100,
        )
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(payload)
        errors = _errors(exc_info)
        assert set(errors) == {"businessName", "websiteType", "features", "numberOfPages", "deadline", "budget"}
        assert errors["businessName"] == "Business name must be at least 2 characters"
        assert errors["websiteType"] == "Please select a valid website type"
        assert errors["numberOfPages"] == "Maximum 100 pages allowed"
        assert errors["budget"] == "Budget must be at least $500"

    def test_missing_fields_reported(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form({})
        errors = _errors(exc_info)
        assert errors["businessName"] == "This field is required"
        assert {"websiteType", "features", "numberOfPages", "deadline", "budget"} <= set(errors)

    def test_blank_industry_becomes_none(self):
        assert validate_project_form(project_payload(industry="   ")).industry is None

    def test_business_name_is_trimmed(self):
        assert validate_project_form(project_payload(businessName="  Acme  ")).business_name == "Acme"

    def test_validation_failed_maps_to_422(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_project_form(project_payload(budget=2_000_000))
        assert exc_info.value.status_code == 422
        detail = exc_info.value.public_detail()
        assert detail["error_code"] == "VALIDATION_ERROR"
        assert detail["field_errors"] == [{"field": "budget", "message": "Budget must be less than $1,000,000"}]


class TestStatusUpdate:

    def test_any_status_accepted(self):
        for status in ProjectStatus:
            assert validate_status_update({"status": status.value}).status == status

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_status_update({"status": "ARCHIVED"})
        assert _errors(exc_info) == {"status": "Invalid project status"}

    def test_notes_length_limit(self):
        with pytest.raises(ValidationFailed) as exc_info:
            validate_status_update({"status": "COMPLETED", "notes": "x" * 2001})
        assert exc_info.value.fields == ["notes"]


def _intake(**intake_overrides) -> dict:
    intake = {
        "projectName": "New storefront",
        "projectType": "WEB_DEVELOPMENT",
        "budget": 5000,
        "timeline": "3 months",
        "description": "A shop for handmade ceramics.",
        "requirements": ["Product catalogue", "Checkout"],
    }
    intake.update(intake_overrides)
    return {
        "client": {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com"},
        "intake": intake,
    }


class TestIntake:

    def test_valid_intake_defaults_priority(self):
        submission = validate_intake(_intake())
        assert submission.intake.priority == IntakePriority.MEDIUM
        assert submission.client.email == "ada@example.com"

    def test_nested_errors_use_dotted_field_names(self):
        payload = _intake(budget=50, requirements=[], projectName="ab")
        payload["client"]["email"] = "not-an-email"
        with pytest.raises(ValidationFailed) as exc_info:
            validate_intake(payload)
        errors = _errors(exc_info)
        assert errors["intake.budget"] == "Budget must be at least $100"
        assert errors["intake.requirements"] == "Please specify at least one requirement"
        assert errors["intake.projectName"] == "Project name must be at least 3 characters"
        assert errors["client.email"] == "Please enter a valid email address"

    def test_budget_upper_bound_inclusive(self):
        assert validate_intake(_intake(budget=1_000_000)).intake.budget == 1_000_000
        with pytest.raises(ValidationFailed):
            validate_intake(_intake(budget=1_000_001))
