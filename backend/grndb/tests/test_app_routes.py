from __future__ import annotations

from grndb.main import app


def _has(method: str, path: str) -> bool:
    return any(
        getattr(route, "path", None) == path and method in (getattr(route, "methods", None) or [])
        for route in app.routes
    )


def test_health_routes():
    assert _has("GET", "/")
    assert _has("GET", "/health")


def test_stock_routes():
    assert _has("POST", "/stock/materials")
    assert _has("GET", "/stock/materials")
    assert _has("GET", "/stock/materials/{material_id}/price-history")
    assert _has("PUT", "/stock/carton-mappings")
    assert _has("GET", "/stock/finished-goods")
    assert _has("POST", "/stock/finished-goods/{product_name}/deduct")


def test_purchasing_routes():
    assert _has("POST", "/purchasing/purchase-orders")
    assert _has("GET", "/purchasing/purchase-orders/{purchase_order_id}")
    assert _has("POST", "/purchasing/purchase-orders/{purchase_order_id}/cancel")
    assert _has("POST", "/purchasing/purchase-orders/{purchase_order_id}/reopen")
    assert _has("POST", "/purchasing/delivery-challans")
    assert _has("GET", "/purchasing/delivery-challans/{challan_id}")
    assert _has("POST", "/purchasing/delivery-challans/{challan_id}/cancel")


def test_receiving_routes():
    assert _has("POST", "/receiving/receipts")
    assert _has("PUT", "/receiving/receipts/{receipt_id}")
    assert _has("GET", "/receiving/receipts")
    assert _has("GET", "/receiving/receipts/{receipt_id}")
    assert _has("GET", "/receiving/receipts/{receipt_id}/effects")
    assert _has("GET", "/receiving/pending/{source_type}/{source_id}")
    assert _has("GET", "/receiving/check/{source_type}/{source_id}")
    assert _has("GET", "/receiving/materials/{material_id}/supplier-prices")


def test_audit_routes():
    assert _has("GET", "/audit/")
