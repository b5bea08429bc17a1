from __future__ import annotations

import pytest

from grndb.apps.receiving import models, status

Status = models.ReceiptStatusEnum


@pytest.mark.parametrize(
    "normal,extra,expected",
    [
        (True, True, Status.COMPLETED),
        (True, False, Status.NORMAL_COMPLETED),
        (False, True, Status.EXTRA_COMPLETED),
        (False, False, Status.PARTIAL),
    ],
)
def test_classify_table(normal, extra, expected):
    assert status.classify(normal, extra) == expected


def test_classify_cartons_uses_tolerance():
    assert status.classify_cartons(60, 60) == Status.COMPLETED
    assert status.classify_cartons(60, 59.9999) == Status.COMPLETED
    assert status.classify_cartons(60, 40) == Status.PARTIAL


def test_only_partial_is_editable():
    assert not status.is_terminal(Status.PARTIAL)
    for terminal in (Status.COMPLETED, Status.NORMAL_COMPLETED, Status.EXTRA_COMPLETED):
        assert status.is_terminal(terminal)
        with pytest.raises(status.ReceiptLockedError):
            status.ensure_transition(terminal, Status.PARTIAL)

    for target in Status:
        status.ensure_transition(Status.PARTIAL, target)


def test_ensure_editable_rejects_locked_partial():
    receipt = models.GoodsReceipt(status=Status.PARTIAL, is_locked=True)

    with pytest.raises(status.ReceiptLockedError) as excinfo:
        status.ensure_editable(receipt)
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == status.EDIT_LOCKED_MESSAGE

    status.ensure_editable(models.GoodsReceipt(status=Status.PARTIAL, is_locked=False))
