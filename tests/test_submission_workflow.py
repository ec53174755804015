# tests/test_submission_workflow.py
import pytest

from grievance_portal import errors
from grievance_portal.models import Grievance
from grievance_portal.notifier import OutboxNotifier
from grievance_portal.submission import SubmissionWorkflow


def student_payload(**overrides):
    payload = {
        "name": "Asha Rao",
        "role": "student",
        "external_id": "21A81A0501",
        "department": "Civil Engineering",
        "year": "2",
        "email": "asha@sves.org.in",
        "mobile": "9876543210",
        "grievance_type": "INFRASTRUCTURE",
        "grievance": "Lab benches in block C are broken.",
    }
    payload.update(overrides)
    return payload


def faculty_payload(**overrides):
    payload = student_payload(role="teaching", external_id="T-AB-1", year="3",
                              email="ravi@srivasaviengg.ac.in", name="Ravi Kumar")
    payload.update(overrides)
    return payload


async def verify(portal, email):
    code = await portal.ledger.issue(email)
    portal.ledger.verify(email, code)


@pytest.mark.asyncio
async def test_verified_submission_persists_encrypted_record(portal, outbox):
    await verify(portal, "asha@sves.org.in")
    tracking_id = await portal.workflow.submit(student_payload())

    with portal.db.session() as s:
        row = s.get(Grievance, tracking_id)
    assert row.status == "pending"
    assert row.email_verified is True
    assert row.year == "2"
    # plaintext never stored
    assert "INFRASTRUCTURE" not in row.grievance_type_ciphertext
    assert "broken" not in row.grievance_body_ciphertext
    assert portal.secrets.decrypt(row.grievance_type_ciphertext) == "INFRASTRUCTURE"
    assert portal.secrets.decrypt(row.grievance_body_ciphertext) == "Lab benches in block C are broken."

    msg = outbox.last_to("asha@sves.org.in")
    assert msg["subject"] == f"Grievance Submitted - Tracking ID: {tracking_id}"


@pytest.mark.asyncio
async def test_tracking_ids_strictly_increase(portal):
    await verify(portal, "asha@sves.org.in")
    await verify(portal, "ravi@srivasaviengg.ac.in")
    ids = [
        await portal.workflow.submit(student_payload()),
        await portal.workflow.submit(faculty_payload()),
        await portal.workflow.submit(student_payload(grievance="second one")),
    ]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3


@pytest.mark.asyncio
async def test_unverified_email_is_rejected(portal):
    with pytest.raises(errors.AuthorizationError) as exc:
        await portal.workflow.submit(student_payload())
    assert exc.value.error_code == errors.E_EMAIL_NOT_VERIFIED


@pytest.mark.asyncio
async def test_issued_but_unverified_code_is_not_enough(portal):
    await portal.ledger.issue("asha@sves.org.in")
    with pytest.raises(errors.AuthorizationError) as exc:
        await portal.workflow.submit(student_payload())
    assert exc.value.error_code == errors.E_EMAIL_NOT_VERIFIED


@pytest.mark.asyncio
async def test_verification_for_another_email_does_not_count(portal):
    await verify(portal, "other@sves.org.in")
    with pytest.raises(errors.AuthorizationError):
        await portal.workflow.submit(student_payload())


@pytest.mark.asyncio
async def test_validation_runs_before_otp_gate(portal):
    with pytest.raises(errors.ValidationError) as exc:
        await portal.workflow.submit(student_payload(email="asha@srivasaviengg.ac.in"))
    assert exc.value.error_code == errors.E_INVALID_EMAIL_DOMAIN
    assert "@sves.org.in" in exc.value.message


@pytest.mark.asyncio
async def test_missing_fields_reported(portal):
    with pytest.raises(errors.ValidationError) as exc:
        await portal.workflow.submit(student_payload(mobile="", grievance=""))
    assert exc.value.fields == ["mobile", "grievance"]


@pytest.mark.asyncio
async def test_bad_staff_id_rejected(portal):
    await verify(portal, "ravi@srivasaviengg.ac.in")
    with pytest.raises(errors.ValidationError) as exc:
        await portal.workflow.submit(faculty_payload(role="non-teaching", external_id="T-AB-1"))
    assert exc.value.error_code == errors.E_INVALID_ID_FORMAT


@pytest.mark.asyncio
async def test_year_dropped_for_staff(portal):
    await verify(portal, "ravi@srivasaviengg.ac.in")
    tracking_id = await portal.workflow.submit(faculty_payload())
    with portal.db.session() as s:
        assert s.get(Grievance, tracking_id).year is None


@pytest.mark.asyncio
async def test_confirmation_failure_does_not_roll_back(portal, settings):
    await verify(portal, "asha@sves.org.in")
    workflow = SubmissionWorkflow(portal.ledger, portal.store, portal.secrets,
                                  OutboxNotifier(fail=True), settings)
    tracking_id = await workflow.submit(student_payload())
    assert portal.store.get(tracking_id) is not None


@pytest.mark.asyncio
async def test_confirmation_exception_does_not_roll_back(portal, settings):
    class ExplodingNotifier:
        async def send(self, to_address, subject, html_body):
            raise ConnectionError("smtp down")

    await verify(portal, "asha@sves.org.in")
    workflow = SubmissionWorkflow(portal.ledger, portal.store, portal.secrets,
                                  ExplodingNotifier(), settings)
    tracking_id = await workflow.submit(student_payload())
    assert portal.store.get(tracking_id).status == "pending"


@pytest.mark.asyncio
async def test_duplicate_submissions_create_distinct_records(portal):
    await verify(portal, "asha@sves.org.in")
    first = await portal.workflow.submit(student_payload())
    second = await portal.workflow.submit(student_payload())
    assert first != second
