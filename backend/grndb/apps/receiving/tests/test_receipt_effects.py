from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from grndb.apps.purchasing import schemas as purchasing_schemas
from grndb.apps.purchasing import services as purchasing_services
from grndb.apps.receiving import dispatcher, effects, models, schemas, services
from grndb.apps.stock import models as stock_models
from grndb.apps.stock import schemas as stock_schemas
from grndb.apps.stock import services as stock_services
from grndb.jobs import receipt_effects_runner

Effect = models.ReceiptEffectTypeEnum
EffectStatus = models.ReceiptEffectStatusEnum


def _setup(db):
    resin = stock_services.create_material(
        db,
        payload=stock_schemas.MaterialCreate(kind=stock_models.MaterialKindEnum.RAW, name="Resin"),
    )
    order = purchasing_services.create_purchase_order(
        db,
        payload=purchasing_schemas.PurchaseOrderCreate(
            po_number="PO-9",
            supplier_name="Acme Polymers",
            lines=[purchasing_schemas.PurchaseOrderLineCreate(material_id=resin.id, quantity=100, rate=4.0)],
        ),
    )
    return resin, order


def _receive(db, order, material, quantity):
    return services.create_receipt(
        db,
        payload=schemas.ReceiptCreate(
            source_type=models.ReceiptSourceTypeEnum.PURCHASE_ORDER,
            source_id=order.id,
            received_by="store",
            date_received=date(2026, 10, 3),
            lines=[schemas.ReceiptLineIn(material_id=material.id, received_quantity=quantity)],
        ),
    )


def _effect(receipt, effect_type):
    return next(effect for effect in receipt.effects if effect.effect_type == effect_type)


def _ledger_down(db, receipt, payload):
    raise RuntimeError("ledger unavailable")


def test_effects_are_applied_in_line(db_session):
    resin, order = _setup(db_session)

    receipt = _receive(db_session, order, resin, 25)

    assert [effect.effect_type for effect in receipt.effects] == [Effect.STOCK_POST, Effect.SOURCE_SYNC]
    assert all(effect.status == EffectStatus.APPLIED for effect in receipt.effects)
    assert all(effect.attempt_count == 1 for effect in receipt.effects)
    assert resin.quantity == 25


def test_failed_effect_does_not_fail_receipt(db_session, monkeypatch):
    resin, order = _setup(db_session)
    monkeypatch.setitem(effects.HANDLERS, Effect.STOCK_POST, _ledger_down)

    receipt = _receive(db_session, order, resin, 25)
    db_session.commit()

    assert receipt.id is not None
    stock_post = _effect(receipt, Effect.STOCK_POST)
    assert stock_post.status == EffectStatus.FAILED
    assert stock_post.attempt_count == 1
    assert "ledger unavailable" in stock_post.last_error
    assert stock_post.next_attempt_at is not None
    assert _effect(receipt, Effect.SOURCE_SYNC).status == EffectStatus.APPLIED
    assert resin.quantity == 0
    assert order.lines[0].received_qty == 25

    monkeypatch.undo()
    later = datetime.now(timezone.utc) + timedelta(hours=1)
    assert dispatcher.dispatch_due_effects(db_session, now=later) == 1

    assert stock_post.status == EffectStatus.APPLIED
    assert stock_post.attempt_count == 2
    assert stock_post.last_error is None
    assert resin.quantity == 25
    assert dispatcher.dispatch_due_effects(db_session, now=later) == 0


def test_database_error_in_effect_keeps_receipt(db_session, monkeypatch):
    resin, order = _setup(db_session)
    stock_services.upsert_carton_mapping(
        db_session,
        payload=stock_schemas.CartonMappingUpsert(product_name="Widget", units_per_carton=12),
    )

    def _duplicate_mapping(db, receipt, payload):
        db.add(stock_models.ProductCartonMapping(product_name="Widget", units_per_carton=6))
        db.flush()

    monkeypatch.setitem(effects.HANDLERS, Effect.STOCK_POST, _duplicate_mapping)

    receipt = _receive(db_session, order, resin, 25)
    db_session.commit()

    stored = db_session.query(models.GoodsReceipt).filter(models.GoodsReceipt.id == receipt.id).one()
    assert stored.grn_number == receipt.grn_number
    stock_post = _effect(stored, Effect.STOCK_POST)
    assert stock_post.status == EffectStatus.FAILED
    assert "UNIQUE" in stock_post.last_error.upper()
    assert _effect(stored, Effect.SOURCE_SYNC).status == EffectStatus.APPLIED
    assert order.lines[0].received_qty == 25
    assert db_session.query(stock_models.ProductCartonMapping).count() == 1


def test_effect_moves_to_dead_letter(db_session, monkeypatch):
    resin, order = _setup(db_session)
    monkeypatch.setitem(effects.HANDLERS, Effect.STOCK_POST, _ledger_down)
    monkeypatch.setattr(effects, "MAX_ATTEMPTS", 2)

    receipt = _receive(db_session, order, resin, 10)
    db_session.commit()
    later = datetime.now(timezone.utc) + timedelta(hours=1)
    dispatcher.dispatch_due_effects(db_session, now=later)

    stock_post = _effect(receipt, Effect.STOCK_POST)
    assert stock_post.status == EffectStatus.DEAD_LETTER
    assert stock_post.attempt_count == 2
    assert stock_post.next_attempt_at is None
    assert dispatcher.dispatch_due_effects(db_session, now=later + timedelta(days=1)) == 0


def test_backoff_is_exponential(monkeypatch):
    monkeypatch.setattr(effects, "BASE_BACKOFF_SEC", 30)
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)

    assert effects.compute_next_attempt(now, 1) == now + timedelta(seconds=30)
    assert effects.compute_next_attempt(now, 3) == now + timedelta(seconds=120)


def test_runner_dispatches_due_effects(db_session, monkeypatch):
    resin, order = _setup(db_session)
    monkeypatch.setitem(effects.HANDLERS, Effect.STOCK_POST, _ledger_down)
    receipt = _receive(db_session, order, resin, 10)
    stock_post = _effect(receipt, Effect.STOCK_POST)
    stock_post.next_attempt_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db_session.commit()
    monkeypatch.undo()

    monkeypatch.setattr(receipt_effects_runner, "WriteSessionLocal", lambda: db_session)
    result = receipt_effects_runner.run()

    assert result == {"dispatched": 1}
    refreshed = db_session.query(models.ReceiptEffect).filter(models.ReceiptEffect.id == stock_post.id).one()
    assert refreshed.status == EffectStatus.APPLIED
