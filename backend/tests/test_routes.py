"""
HTTP surface: status codes and error mapping.
"""

from conftest import SIZE_DOC


def test_health(client, db_session, company):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["companies"] == 1


def test_product_create_and_read(client, db_session, company):
    resp = client.post("/api/products", json={"company_id": company.id, "name": "Widget", "variants": SIZE_DOC})
    assert resp.status_code == 201
    product = resp.get_json()
    assert product["quantity"] == 10

    resp = client.get(f"/api/products/{product['id']}/stock")
    assert resp.status_code == 200
    assert resp.get_json()["drift"] == 0

    resp = client.get(f"/api/products?company_id={company.id}&name=widget")
    assert resp.get_json()["total"] == 1


def test_error_mapping(client, db_session, company):
    assert client.post("/api/products", json={"name": "Widget"}).status_code == 400
    assert client.post("/api/products", json={"company_id": company.id, "name": " "}).status_code == 400
    assert client.get("/api/products/999999").status_code == 404
    assert client.get("/api/lots").status_code == 400


def test_check_in_flow(client, db_session, company):
    resp = client.post("/api/check-ins", json={
        "company_id": company.id,
        "products": [{"name": "Bolt", "quantity": 12}],
    })
    assert resp.status_code == 201
    request_id = resp.get_json()["id"]

    resp = client.post(f"/api/check-ins/{request_id}/approve", json={"reviewed_by": 1})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["check_in"]["status"] == "approved"
    assert body["result"]["succeeded"] == 1

    # terminal
    resp = client.post(f"/api/check-ins/{request_id}/reject", json={"rejection_reason": "late"})
    assert resp.status_code == 409

    resp = client.get(f"/api/lots?company_id={company.id}")
    assert [lot["quantity"] for lot in resp.get_json()["lots"]] == [12]


def test_reject_needs_reason(client, db_session, company):
    resp = client.post("/api/check-ins", json={"company_id": company.id, "products": [{"name": "Bolt", "quantity": 1}]})
    request_id = resp.get_json()["id"]

    assert client.post(f"/api/check-ins/{request_id}/reject", json={}).status_code == 400
    resp = client.post(f"/api/check-ins/{request_id}/reject", json={"rejection_reason": "Wrong client"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "rejected"


def test_blocked_shipment_returns_shortfall(client, db_session, company, plain_product):
    resp = client.post("/api/shipments", json={
        "company_id": company.id,
        "destination_address": "12 Harbour Road",
        "items": [{"product_id": plain_product.id, "quantity": 3}],
        "allow_shortfall": False,
    })

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["shortfall"]["requested"] == 3
    assert body["shortfall"]["shortfall"] == 3

    resp = client.get(f"/api/shipments?company_id={company.id}")
    assert resp.get_json()["total"] == 0


def test_shipment_status_route(client, db_session, company, plain_product):
    resp = client.post("/api/shipments", json={
        "company_id": company.id,
        "destination_address": "12 Harbour Road",
        "items": [{"product_id": plain_product.id, "quantity": 1}],
    })
    assert resp.status_code == 201
    shipment_id = resp.get_json()["shipment"]["id"]

    assert client.post(f"/api/shipments/{shipment_id}/status", json={}).status_code == 400
    assert client.post(f"/api/shipments/{shipment_id}/status", json={"status": "delivered"}).status_code == 200
    assert client.post(f"/api/shipments/{shipment_id}/status", json={"status": "in_transit"}).status_code == 409


def test_reconciliation_report_route(client, db_session, company):
    resp = client.post("/api/check-ins", json={"company_id": company.id, "products": [{"name": "Bolt", "quantity": 4}]})
    request_id = resp.get_json()["id"]
    client.post(f"/api/check-ins/{request_id}/approve", json={"reviewed_at": "2026-02-10T12:00:00Z"})

    resp = client.post("/api/reconciliation/reports", json={
        "company_id": company.id,
        "start_date": "2026-02-01",
        "end_date": "2026-02-28",
        "actuals": {"Bolt|": 3},
    })

    assert resp.status_code == 200
    [report] = resp.get_json()["reports"]
    [row] = report["rows"]
    assert (row["check_ins"], row["expected_quantity"], row["variance"]) == (4, 4, -1)
    assert row["variance_status"] == "minor"

    assert client.post("/api/reconciliation/reports", json={"company_id": company.id}).status_code == 400
    resp = client.post("/api/reconciliation/reports", json={
        "company_id": company.id, "start_date": 20260201, "end_date": "2026-02-28",
    })
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "dates must be YYYY-MM-DD"


def test_cleanup_scan_route(client, db_session, company, plain_product):
    resp = client.get(f"/api/cleanup/scan?company_id={company.id}")
    assert resp.status_code == 200
    assert resp.get_json()["products"] == []
