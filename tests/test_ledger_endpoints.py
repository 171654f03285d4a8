"""HTTP API tests: properties, transactions and composite expenses."""


def _properties(client, headers, count: int) -> list[int]:
    ids = []
    for i in range(1, count + 1):
        resp = client.post("/properties", json={"name": f"Prop {i}"}, headers=headers)
        assert resp.status_code == 200, resp.text
        ids.append(resp.json()["id"])
    return ids


def test_list_properties(client, auth_headers):
    ids = _properties(client, auth_headers, 2)
    listed = client.get("/properties", headers=auth_headers).json()
    assert [p["id"] for p in listed] == ids
    assert listed[0]["currency"] == "BRL"


def test_mauricio_expense_and_cascade_delete(client, auth_headers):
    ids = _properties(client, auth_headers, 5)
    resp = client.post(
        "/expenses/mauricio",
        json={"total_amount": "5.000,00", "date": "2025-07-10", "description": "Pintura", "selected_property_ids": ids},
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    parent = resp.json()
    assert parent["is_composite_parent"] is True
    assert parent["supplier"] == "Maurício"
    assert [line["amount"] for line in parent["lines"]] == ["1000.00"] * 5

    detail = client.get(f"/expenses/composite/{parent['id']}", headers=auth_headers).json()
    assert {line["percentage"] for line in detail["lines"]} == {"20"}

    line_id = parent["lines"][0]["id"]
    assert client.delete(f"/transactions/{line_id}", headers=auth_headers).status_code == 409
    assert client.delete(f"/transactions/{parent['id']}", headers=auth_headers).json() == {"deleted": 6}
    assert client.get(f"/transactions/{line_id}", headers=auth_headers).status_code == 404


def test_management_expense_with_weights(client, auth_headers):
    ids = _properties(client, auth_headers, 2)
    resp = client.post(
        "/expenses/management",
        json={
            "total_amount": "100.00",
            "payment_date": "2025-07-01",
            "supplier": "Imobiliária Sol",
            "property_ids": ids,
            "weights": {str(ids[0]): "1", str(ids[1]): "3"},
        },
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    assert [line["amount"] for line in resp.json()["lines"]] == ["25.00", "75.00"]


def test_distribution_preview(client, auth_headers):
    ids = _properties(client, auth_headers, 3)
    resp = client.post(
        "/expenses/distributed/preview", json={"total_amount": "10.00", "property_ids": ids}, headers=auth_headers
    )
    body = resp.json()
    assert body["method"] == "equal"
    assert [s["amount"] for s in body["shares"]] == ["3.33", "3.33", "3.34"]
    assert client.get("/transactions/1", headers=auth_headers).status_code == 404


def test_validation_errors_are_reported(client, auth_headers):
    ids = _properties(client, auth_headers, 1)
    empty = client.post(
        "/expenses/distributed/preview", json={"total_amount": "10.00", "property_ids": []}, headers=auth_headers
    )
    assert empty.status_code == 422
    assert empty.json()["error"]["code"] == "DST001"

    bad_amount = client.post(
        "/transactions",
        json={"type": "expense", "category": "other", "amount": "dez", "date": "2025-07-01", "property_id": ids[0]},
        headers=auth_headers,
    )
    assert bad_amount.status_code == 422
    assert bad_amount.json()["error"]["code"] == "MNY001"

    huge_amount = client.post(
        "/transactions",
        json={"type": "expense", "category": "other", "amount": "1e30", "date": "2025-07-01", "property_id": ids[0]},
        headers=auth_headers,
    )
    assert huge_amount.status_code == 422
    assert huge_amount.json()["error"]["code"] == "MNY001"

    unknown = client.post(
        "/expenses/mauricio",
        json={"total_amount": "10.00", "date": "2025-07-10", "description": "x", "selected_property_ids": [ids[0], 999]},
        headers=auth_headers,
    )
    assert unknown.status_code == 404
    assert unknown.json()["error"]["code"] == "LED002"
