from __future__ import annotations

from grndb.apps.audit import schemas as audit_schemas
from grndb.apps.audit import services as audit_services


def test_log_event_writes_record(db_session):
    event = audit_services.log_event(
        db_session,
        actor="store",
        entity_type="goods_receipt",
        entity_id="1",
        action="create",
        after={"status": "PARTIAL"},
        metadata={"grn_number": "GRN-2026-001"},
    )

    db_session.commit()
    assert event is not None
    assert event.entity_type == "goods_receipt"
    assert event.metadata_json == {"grn_number": "GRN-2026-001"}

    read = audit_schemas.AuditEventRead.model_validate(event)
    assert read.metadata == {"grn_number": "GRN-2026-001"}
    assert read.after == {"status": "PARTIAL"}


def test_log_event_is_best_effort(db_session, monkeypatch, caplog):
    def _broken(db, *, data):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(audit_services, "create_audit_event", _broken)

    assert (
        audit_services.log_event(
            db_session,
            actor=None,
            entity_type="goods_receipt",
            entity_id="1",
            action="update",
        )
        is None
    )
    assert "Failed to log audit event" in caplog.text


def test_list_audit_events_filters(db_session):
    for entity_id in ("1", "2"):
        audit_services.log_event(
            db_session,
            actor=None,
            entity_type="purchase_order",
            entity_id=entity_id,
            action="create",
        )
    audit_services.log_event(
        db_session,
        actor=None,
        entity_type="delivery_challan",
        entity_id="1",
        action="create",
    )

    assert len(audit_services.list_audit_events(db_session, entity_type="purchase_order")) == 2
    assert len(audit_services.list_audit_events(db_session, entity_type="purchase_order", entity_id="2")) == 1
    assert len(audit_services.list_audit_events(db_session)) == 3
