NEW_CASE = {
    "billNumber": "B-1",
    "caseNumber": "C-1",
    "caseDescription": "Recovery suit",
    "date": "2024-06-10",
    "particulars": [{"type": "Filing", "amount": 5000}, {"type": "Xerox Charges", "amount": 500}],
}


def _create(client, **overrides):
    r = client.post("/cases/", json={**NEW_CASE, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["cases"] == 0


def test_create_pay_and_read_back(client):
    case = _create(client)
    assert case["totalAmount"] == 5500
    assert case["remainingAmount"] == 5500
    assert case["balanceStatus"] == "OUTSTANDING"

    r = client.post(f"/cases/{case['id']}/payments", json={"amount": 2000, "method": "Cash", "date": "2024-06-12"})
    assert r.status_code == 201, r.text
    assert r.json()["paidAmount"] == 2000
    assert r.json()["remainingAmount"] == 3500

    r = client.get(f"/cases/{case['id']}")
    assert r.json()["payments"][0]["method"] == "Cash"
    assert r.json()["particulars"][0]["displayName"] == "Filing"


def test_list_and_search(client):
    _create(client, billNumber="B-77")
    _create(client, caseDescription="Land acquisition")
    assert len(client.get("/cases/").json()) == 2
    assert [c["billNumber"] for c in client.get("/cases/", params={"q": "b-77"}).json()] == ["B-77"]


def test_edit_through_draft(client):
    case = _create(client)
    draft = client.get(f"/cases/{case['id']}/draft").json()
    assert draft["particulars"][0]["amount"] == "5000"

    draft["particulars"][1]["amount"] = "oops"
    draft.pop("id")
    r = client.patch(f"/cases/{case['id']}", json=draft)
    assert r.status_code == 200, r.text
    assert r.json()["totalAmount"] == 5000


def test_validation_error_is_400(client):
    r = client.post("/cases/", json={**NEW_CASE, "particulars": []})
    assert r.status_code == 400
    assert r.json()["errors"]


def test_bad_payment_is_400(client):
    case = _create(client)
    r = client.post(f"/cases/{case['id']}/payments", json={"amount": 0, "method": "Cash", "date": "2024-06-12"})
    assert r.status_code == 400


def test_unknown_case_is_404(client):
    assert client.get("/cases/nope").status_code == 404
    r = client.post("/cases/nope/payments", json={"amount": 10, "method": "Cash", "date": "2024-06-12"})
    assert r.status_code == 404


def test_overview_month(client):
    case = _create(client)
    client.post(f"/cases/{case['id']}/payments", json={"amount": 2000, "method": "Cash", "date": "2024-06-12"})
    _create(client, date="2024-05-01")

    r = client.get("/analytics/overview", params={"window": "month", "as_of": "2024-06-20T00:00:00Z"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["stats"] == {"totalBilled": 5500, "totalCases": 1, "totalPaymentsReceived": 2000, "totalRemaining": 3500}
    assert body["buckets"] == [{"label": "10 Jun", "billed": 5500, "paid": 2000, "cases": 1}]
    assert [c["id"] for c in body["cases"]] == [case["id"]]


def test_collections_and_dashboard(client):
    case = _create(client)
    client.post(f"/cases/{case['id']}/payments", json={"amount": 750.5, "method": "Online", "date": "2024-06-12"})

    r = client.get("/analytics/collections", params={"window": "year", "as_of": "2024-06-20T00:00:00Z"})
    assert r.json()["totalReceived"] == 750.5
    assert r.json()["byMethod"] == {"Online": 750.5}

    r = client.get("/analytics/dashboard", params={"as_of": "2024-06-20T00:00:00Z"})
    body = r.json()
    assert body["totalOutstanding"] == 4749.5
    assert body["thisMonthCases"] == 1
    assert body["monthlyTrend"] == [{"period": "2024-06", "label": "Jun 2024", "billed": 5500, "cases": 1}]


def test_unknown_window_is_rejected(client):
    assert client.get("/analytics/overview", params={"window": "decade"}).status_code == 422


def test_huge_amount_is_400(client):
    r = client.post("/cases/", json={**NEW_CASE, "particulars": [{"type": "Filing", "amount": 10**30}]})
    assert r.status_code == 400
