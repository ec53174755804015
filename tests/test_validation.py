# tests/test_validation.py
import pytest

from grievance_portal import errors
from grievance_portal import validation
from grievance_portal.config import Settings

SETTINGS = Settings()


@pytest.mark.parametrize("value,ok", [
    ("T-AB-1", True),
    ("T-ABC-12", True),
    ("t-abcd-123", True),
    ("T-A-1", False),        # middle segment too short
    ("T-ABCDE-1", False),    # middle segment too long
    ("T-AB-1234", False),
    ("TT-AB-1", False),
    ("T_AB_1", False),
])
def test_teaching_id_format(value, ok):
    assert validation.is_valid_teaching_id(value) is ok


@pytest.mark.parametrize("value,ok", [
    ("NT-ABC-1", True),
    ("NT-ABCD-12", True),
    ("st-abcd-123", True),
    ("N-ABC-1", False),
    ("NT-AB-1", False),
    ("NT-ABCDE-1", False),
    ("NT-ABC-", False),
])
def test_non_teaching_id_format(value, ok):
    assert validation.is_valid_non_teaching_id(value) is ok


def test_student_ids_are_free_form():
    validation.check_external_id("21A81A0501", validation.ROLE_STUDENT)
    validation.check_external_id("anything at all", validation.ROLE_STUDENT)


def test_bad_faculty_id_raises_invalid_id_format():
    with pytest.raises(errors.ValidationError) as exc:
        validation.check_external_id("T-A-1", validation.ROLE_TEACHING)
    assert exc.value.error_code == errors.E_INVALID_ID_FORMAT


def test_student_with_faculty_domain_names_student_domain():
    with pytest.raises(errors.ValidationError) as exc:
        validation.check_email_domain("x@srivasaviengg.ac.in", "student", SETTINGS)
    assert exc.value.error_code == errors.E_INVALID_EMAIL_DOMAIN
    assert "@sves.org.in" in exc.value.message


def test_faculty_with_student_domain_names_faculty_domain():
    with pytest.raises(errors.ValidationError) as exc:
        validation.check_email_domain("x@sves.org.in", "non-teaching", SETTINGS)
    assert "@srivasaviengg.ac.in" in exc.value.message


def test_domain_check_ignores_case():
    validation.check_email_domain("X@SVES.ORG.IN", "student", SETTINGS)


def test_missing_fields_are_all_listed():
    payload = {"name": "Asha", "role": "student", "email": "  ", "grievance": None}
    with pytest.raises(errors.ValidationError) as exc:
        validation.check_required(payload)
    assert exc.value.fields == ["external_id", "department", "email", "mobile", "grievance_type", "grievance"]


def test_unknown_role_rejected():
    payload = {f: "x" for f in validation.REQUIRED_FIELDS}
    payload["role"] = "visitor"
    with pytest.raises(errors.ValidationError) as exc:
        validation.check_required(payload)
    assert exc.value.fields == ["role"]
