from datetime import date

import pytest
from fastapi_mail import FastMail

from sitepay.utils.email import get_mail_config


@pytest.fixture
def may(users, sites, add_work, add_setting):
    add_setting(users["worker"], employment_type="regular_employee", daily_rate=200000)
    for day in range(1, 11):
        add_work(users["worker"], sites["a"], date(2024, 5, day), 1.0)
    add_work(users["worker2"], sites["b"], date(2024, 5, 2), 1.0)


def entries(*user_ids):
    return {"entries": [{"user_id": uid, "year": 2024, "month": 5} for uid in user_ids]}


def test_preview_is_not_saved(client, users, auth, may):
    response = client.post("/payroll/preview", headers=auth(users["admin"]),
                           json={"user_id": users["worker"].id, "year": 2024, "month": 5})

    assert response.status_code == 200
    assert response.json()["salary"]["net_pay"] == 1748500
    assert client.get("/payroll/snapshots", headers=auth(users["admin"])).json() == []


def test_site_manager_preview_limited_to_own_sites(client, users, auth, may):
    manager = auth(users["manager"])

    own_site = client.post("/payroll/preview", headers=manager, json={"user_id": users["worker"].id, "year": 2024, "month": 5})
    other_site = client.post("/payroll/preview", headers=manager, json={"user_id": users["worker2"].id, "year": 2024, "month": 5})
    worker = client.post("/payroll/preview", headers=auth(users["worker"]),
                         json={"user_id": users["worker"].id, "year": 2024, "month": 5})

    assert own_site.status_code == 200
    assert other_site.status_code == 403
    assert worker.status_code == 403


def test_preview_checks_role_before_looking_up_worker(client, users, auth):
    body = {"user_id": 999, "year": 2024, "month": 5}

    assert client.post("/payroll/preview", headers=auth(users["worker"]), json=body).status_code == 403
    assert client.post("/payroll/preview", headers=auth(users["partner"]), json=body).status_code == 403
    assert client.post("/payroll/preview", headers=auth(users["admin"]), json=body).status_code == 404


def test_preview_rejects_bad_month(client, users, auth, may):
    response = client.post("/payroll/preview", headers=auth(users["admin"]),
                           json={"user_id": users["worker"].id, "year": 2024, "month": 13})
    assert response.status_code == 400


def test_publish_approve_pay(client, users, auth, may):
    admin = auth(users["admin"])
    body = {"year": 2024, "month": 5, "user_ids": [users["worker"].id, users["worker2"].id, users["partner"].id]}

    published = client.post("/payroll/snapshots/publish", headers=admin, json=body).json()
    assert (published["inserted"], published["skipped"]) == (2, 1)

    paid_early = client.post("/payroll/snapshots/pay", headers=admin, json=entries(users["worker"].id)).json()
    assert paid_early["invalid"] == 1

    approved = client.post("/payroll/snapshots/approve", headers=admin, json=entries(users["worker"].id)).json()
    assert approved["updated"] == 1

    republished = client.post("/payroll/snapshots/publish", headers=admin, json=body).json()
    assert (republished["updated"], republished["locked"]) == (1, 1)

    paid = client.post("/payroll/snapshots/pay", headers=admin, json=entries(users["worker"].id, users["manager"].id)).json()
    assert (paid["updated"], paid["missing"]) == (1, 1)

    listed = client.get("/payroll/snapshots", params={"status": "paid"}, headers=admin).json()
    assert [s["worker_id"] for s in listed] == [users["worker"].id]
    assert listed[0]["net_pay"] == 1748500


def test_publish_and_approve_are_admin_only(client, users, auth, may):
    manager = auth(users["manager"])
    body = {"year": 2024, "month": 5, "user_ids": [users["worker"].id]}

    assert client.post("/payroll/snapshots/publish", headers=manager, json=body).status_code == 403
    assert client.post("/payroll/snapshots/approve", headers=manager, json=entries(users["worker"].id)).status_code == 403


def test_workers_see_only_their_snapshots(client, users, auth, may):
    client.post("/payroll/snapshots/publish", headers=auth(users["admin"]),
                json={"year": 2024, "month": 5, "user_ids": [users["worker"].id, users["worker2"].id]})

    mine = client.get("/payroll/snapshots/mine", headers=auth(users["worker2"])).json()
    assert [s["worker_id"] for s in mine] == [users["worker2"].id]
    assert client.get("/payroll/snapshots", headers=auth(users["worker2"])).status_code == 403

    other_id = client.get("/payroll/snapshots/mine", headers=auth(users["worker"])).json()[0]["id"]
    assert client.get(f"/payroll/snapshots/{other_id}/payslip", headers=auth(users["worker2"])).status_code == 403

    own = client.get(f"/payroll/snapshots/{mine[0]['id']}/payslip", headers=auth(users["worker2"]))
    assert own.status_code == 200
    assert "text/html" in own.headers["content-type"]
    assert "Lee Worker" in own.text
    assert "140,100" in own.text


def test_payslip_not_found(client, users, auth):
    assert client.get("/payroll/snapshots/999/payslip", headers=auth(users["admin"])).status_code == 404


def _html_body(message):
    for part in message.walk():
        if part.get_content_type() == "text/html":
            return part.get_payload(decode=True).decode()
    return ""


def test_send_payslip(client, users, auth, may):
    admin = auth(users["admin"])
    client.post("/payroll/snapshots/publish", headers=admin,
                json={"year": 2024, "month": 5, "user_ids": [users["worker"].id, users["worker2"].id]})
    by_worker = {s["worker_id"]: s["id"] for s in client.get("/payroll/snapshots", headers=admin).json()}

    with FastMail(get_mail_config()).record_messages() as outbox:
        response = client.post(f"/payroll/snapshots/{by_worker[users['worker'].id]}/send", headers=admin)
        no_email = client.post(f"/payroll/snapshots/{by_worker[users['worker2'].id]}/send", headers=admin)

    assert response.status_code == 200
    assert no_email.status_code == 400
    assert len(outbox) == 1
    assert "kim@example.com" in outbox[0]["To"]
    assert outbox[0]["Subject"] == "Salary statement 2024-05"
    body = _html_body(outbox[0])
    assert "Kim Worker" in body
    assert "1,748,500" in body


def test_summary_endpoints(client, users, sites, auth, may):
    admin = auth(users["admin"])

    fallback = client.get("/payroll/summary", params={"year": 2024, "month": 5}, headers=admin).json()
    assert fallback["source"] == "fallback"
    assert fallback["data"]["count"] == 2
    assert fallback["data"]["gross"] == 2000000 + 150000

    client.post("/payroll/snapshots/publish", headers=admin,
                json={"year": 2024, "month": 5, "user_ids": [users["worker"].id]})
    published = client.get("/payroll/summary", params={"year": 2024, "month": 5}, headers=admin).json()
    assert published["source"] == "snapshots"
    assert published["data"]["net"] == 1748500

    rows = client.get("/payroll/summary/workers", params={"year": 2024, "month": 5, "site_id": sites["a"].id},
                      headers=admin).json()
    assert [(r["name"], r["snapshot_status"]) for r in rows] == [("Kim Worker", "issued")]

    trend = client.get("/payroll/summary/trend", params={"months": 2, "year": 2024, "month": 5}, headers=admin).json()
    assert [(t["month"], t["source"]) for t in trend] == [("2024-04", "fallback"), ("2024-05", "snapshots")]

    assert client.get("/payroll/summary/trend", params={"months": 13}, headers=admin).status_code == 400
    assert client.get("/payroll/summary", params={"year": 2024, "month": 5}, headers=auth(users["worker"])).status_code == 403
