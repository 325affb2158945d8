"""ORM change tracking on SQLite: records follow committed creates, updates and destroys."""

from sqlalchemy import func, select

from audit_trail.core.context import as_actor, attribution
from audit_trail.domain.models.audit import ActionKind, Change, FreeTextLabel, IdentityReference
from audit_trail.infrastructure.database.models import AuditRow
from audit_trail.infrastructure.database.tracking import orm_identity


def _audit_count(session):
    return session.execute(select(func.count()).select_from(AuditRow)).scalar()


def test_create_update_destroy_versions(session, models, audit_repository):
    user = models.User(name="Brandon")
    session.add(user)
    session.commit()
    user_id = str(user.id)

    user.name = "Changed"
    session.commit()
    session.delete(user)
    session.commit()

    records = audit_repository.query_records("User", user_id)
    assert [r.version for r in records] == [1, 2, 3]
    assert [r.action for r in records] == [ActionKind.CREATE, ActionKind.UPDATE, ActionKind.DESTROY]
    assert records[0].changes["name"] == Change(None, "Brandon")
    assert records[0].changes["logins"] == Change(None, 0)
    assert records[1].changes == {"name": Change("Brandon", "Changed")}
    assert records[2].changes["name"] == Change("Changed", None)


def test_primary_key_and_excluded_attributes_not_recorded(session, models, audit_repository):
    user = models.User(name="Brandon", password="secret")
    session.add(user)
    session.commit()
    record = audit_repository.query_records("User", str(user.id))[0]
    assert "id" not in record.changes
    assert "password" not in record.changes


def test_excluded_attribute_change_is_noop(session, models, audit_repository):
    user = models.User(name="Brandon")
    session.add(user)
    session.commit()
    user.password = "rotated"
    session.commit()
    assert len(audit_repository.query_records("User", str(user.id))) == 1


def test_save_without_changes_leaves_no_record(session, models):
    user = models.User(name="Brandon")
    session.add(user)
    session.commit()
    user.name = "Brandon"
    session.commit()
    assert _audit_count(session) == 1


def test_rollback_leaves_no_record(session, models):
    user = models.User(name="Brandon")
    session.add(user)
    session.flush()
    session.rollback()
    assert _audit_count(session) == 0


def test_unaudited_models_leave_no_record(session, models):
    session.add(models.Tenant(subdomain="acme"))
    session.add(models.CustomUser(name="plain"))
    session.commit()
    assert _audit_count(session) == 0


def test_subclass_of_unaudited_parent_is_audited(session, models, audit_repository):
    special = models.CustomUserSubclass(name="special")
    session.add(special)
    session.commit()
    records = audit_repository.query_records("CustomUserSubclass", str(special.id))
    assert len(records) == 1
    assert "kind" not in records[0].changes
    assert records[0].changes["name"] == Change(None, "special")


def test_actor_entity_recorded_as_reference(session, models, audit_repository):
    admin = models.User(name="Admin")
    session.add(admin)
    session.commit()

    with as_actor(admin):
        company = models.Company(name="Acme")
        session.add(company)
        session.commit()

    record = audit_repository.query_records("Company", str(company.id))[0]
    assert record.actor == IdentityReference(type="User", id=str(admin.id))


def test_request_attribution_recorded(session, models, audit_repository):
    with attribution(actor="console", tenant="acme", remote_address="1.2.3.4", request_id="req-42"):
        user = models.User(name="Brandon")
        session.add(user)
        session.commit()

    record = audit_repository.query_records("User", str(user.id))[0]
    assert record.actor == FreeTextLabel("console")
    assert record.tenant == FreeTextLabel("acme")
    assert record.remote_address == "1.2.3.4"
    assert record.request_id == "req-42"
    row = session.execute(select(AuditRow)).scalar_one()
    assert row.actor_label == "console"
    assert row.actor_id is None


def test_several_changes_in_one_transaction_get_consecutive_versions(session, models, audit_repository):
    user = models.User(name="a")
    session.add(user)
    session.flush()
    user.name = "b"
    session.flush()
    user.name = "c"
    session.commit()
    assert [r.version for r in audit_repository.query_records("User", str(user.id))] == [1, 2, 3]


def test_orm_identity(session, models):
    user = models.User(name="Brandon")
    session.add(user)
    session.flush()
    assert orm_identity(user) == ("User", str(user.id))


def test_unsaved_actor_is_not_referenced(session, models, audit_repository):
    pending_admin = models.User(name="Admin")
    assert orm_identity(pending_admin) == ("User", None)

    with as_actor(pending_admin):
        company = models.Company(name="Acme")
        session.add(company)
        session.commit()

    record = audit_repository.query_records("Company", str(company.id))[0]
    assert record.actor is None
