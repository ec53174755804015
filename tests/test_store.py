# tests/test_store.py
"""
Grievance store: redacted tracking view, admin listing filters, statistics.
Uses the disposable SQLite DB from conftest.
"""
import pytest

from grievance_portal import errors
from grievance_portal.db import Database
from grievance_portal.store import GrievanceStore


def add(portal, clock, name, role, email, status="pending", gtype="HOSTEL", body="details"):
    gid = portal.store.create({
        "name": name,
        "role": role,
        "external_id": "X-1",
        "department": "Mechanical Engineering",
        "email": email,
        "mobile": "9000000000",
        "grievance_type_ciphertext": portal.secrets.encrypt(gtype),
        "grievance_body_ciphertext": portal.secrets.encrypt(body),
        "status": status,
        "email_verified": True,
    })
    clock.advance(minutes=1)
    return gid


def test_tracking_view_is_redacted(portal, clock):
    gid = add(portal, clock, "Asha", "student", "asha@sves.org.in", gtype="RAGGING", body="secret body")
    view = portal.store.tracking_view(gid)
    assert view["id"] == gid
    assert view["grievance_type"] == "RAGGING"
    assert view["status"] == "pending"
    assert set(view) == {"id", "name", "department", "grievance_type", "status", "created_at", "updated_at"}
    assert "secret body" not in str(view)
    assert "asha@sves.org.in" not in str(view)


def test_tracking_view_missing(portal):
    assert portal.store.tracking_view(12345) is None


def test_admin_view_decrypts(portal, clock):
    gid = add(portal, clock, "Asha", "student", "asha@sves.org.in", gtype="FACULTY", body="full text")
    view = portal.store.get_admin_view(gid)
    assert view["grievance_type"] == "FACULTY"
    assert view["grievance"] == "full text"
    assert view["grievance_hash"].startswith("enc:v1:")
    assert view["email"] == "asha@sves.org.in"


def test_legacy_plaintext_rows_are_readable(portal, clock):
    gid = portal.store.create({
        "name": "Old", "role": "student", "external_id": "1", "department": "Civil Engineering",
        "email": "old@sves.org.in", "mobile": "1",
        "grievance_type_ciphertext": "OTHER",
        "grievance_body_ciphertext": "written before encryption",
        "email_verified": True,
    })
    view = portal.store.get_admin_view(gid)
    assert view["grievance_type"] == "OTHER"
    assert view["grievance"] == "written before encryption"


def test_list_newest_first_and_filters(portal, clock):
    a = add(portal, clock, "Asha", "student", "asha@sves.org.in")
    b = add(portal, clock, "Ravi", "teaching", "ravi@srivasaviengg.ac.in", status="resolved")
    c = add(portal, clock, "Meena", "non-teaching", "meena@srivasaviengg.ac.in")

    assert [g["id"] for g in portal.store.list()] == [c, b, a]
    assert [g["id"] for g in portal.store.list(status="resolved")] == [b]
    assert [g["id"] for g in portal.store.list(role="student")] == [a]
    assert [g["id"] for g in portal.store.list(search="srivasavi")] == [c, b]
    assert [g["id"] for g in portal.store.list(search="MEENA")] == [c]
    assert portal.store.list(role="student", status="resolved") == []


def test_search_treats_wildcards_literally(portal, clock):
    add(portal, clock, "Asha", "student", "asha@sves.org.in")
    assert portal.store.list(search="%") == []
    assert portal.store.list(search="_") == []


def test_statistics(portal, clock):
    add(portal, clock, "Asha", "student", "asha@sves.org.in")
    add(portal, clock, "Ravi", "teaching", "ravi@srivasaviengg.ac.in", status="resolved")
    clock.advance(days=10)
    add(portal, clock, "Meena", "student", "meena@sves.org.in")

    stats = portal.store.statistics()
    assert stats["total"] == 3
    assert {r["status"]: r["count"] for r in stats["byStatus"]} == {"pending": 2, "resolved": 1}
    assert {r["role"]: r["count"] for r in stats["byRole"]} == {"student": 2, "teaching": 1}
    assert stats["recentCount"] == 1


def test_store_errors_become_dependency_errors(tmp_path, portal):
    # tables never created
    broken = GrievanceStore(Database(f"sqlite:///{tmp_path / 'empty.db'}"), portal.secrets)
    with pytest.raises(errors.DependencyError):
        broken.list()
    with pytest.raises(errors.DependencyError):
        broken.get(1)
