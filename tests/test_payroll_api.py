from datetime import date

from sitepay.db.models.activity import ActivityLog
from sitepay.db.models.salary_rule import SalaryRule
from sitepay.db.models.salary_setting import WorkerSalarySetting
from sitepay.services.payroll.records import calculate_salary_records


def test_seed_and_edit_tax_rates(client, users, auth):
    admin = auth(users["admin"])

    assert client.post("/payroll/tax-rates/seed", headers=admin).json()["inserted"] == 9
    assert client.post("/payroll/tax-rates/seed", headers=admin).json()["inserted"] == 0

    rates = client.get("/payroll/tax-rates", params={"employment_type": "daily_worker"}, headers=admin).json()
    assert {r["tax_category"]: r["rate"] for r in rates} == {"income_tax": 6.0, "resident_tax": 0.6}

    rate_id = rates[0]["id"]
    assert client.patch(f"/payroll/tax-rates/{rate_id}", headers=admin, json={"rate": 101}).status_code == 400
    assert client.patch(f"/payroll/tax-rates/{rate_id}", headers=admin, json={"rate": 5}).status_code == 200


def test_tax_rates_are_admin_only(client, users, auth):
    assert client.get("/payroll/tax-rates", headers=auth(users["manager"])).status_code == 403


def test_salary_setting_replaces_active_one(client, db, users, auth):
    admin = auth(users["admin"])
    body = {"worker_id": users["worker"].id, "employment_type": "freelancer", "daily_rate": 160000}

    assert client.post("/payroll/salary-settings", headers=admin, json=body).status_code == 200
    body["daily_rate"] = 170000
    assert client.post("/payroll/salary-settings", headers=admin, json=body).status_code == 200

    active = db.query(WorkerSalarySetting).filter_by(worker_id=users["worker"].id, is_active=True).all()
    assert len(active) == 1
    assert active[0].daily_rate == 170000
    assert active[0].hourly_rate == 21250

    listed = client.get("/payroll/salary-settings", headers=admin).json()
    assert [s["daily_rate"] for s in listed] == [170000]


def test_salary_setting_validation(client, users, auth):
    admin = auth(users["admin"])
    worker_id = users["worker"].id

    bad_rate = {"worker_id": worker_id, "employment_type": "freelancer", "daily_rate": 0}
    assert client.post("/payroll/salary-settings", headers=admin, json=bad_rate).status_code == 400

    bad_type = {"worker_id": worker_id, "employment_type": "contractor", "daily_rate": 1000}
    response = client.post("/payroll/salary-settings", headers=admin, json=bad_type)
    assert response.status_code == 400
    assert response.json()["status"] == "error"

    bad_custom = dict(bad_rate, daily_rate=1000, custom_tax_rates={"income_tax": 120})
    assert client.post("/payroll/salary-settings", headers=admin, json=bad_custom).status_code == 400


def test_workers_for_settings(client, users, auth, add_setting):
    add_setting(users["worker"], employment_type="regular_employee", daily_rate=200000)

    rows = client.get("/payroll/salary-settings/workers", headers=auth(users["admin"])).json()
    by_id = {r["id"]: r for r in rows}

    assert users["partner"].id not in by_id
    assert by_id[users["worker"].id]["has_salary_setting"] is True
    assert by_id[users["worker2"].id]["has_salary_setting"] is False


def test_rule_crud(client, users, sites, auth):
    admin = auth(users["admin"])

    created = client.post("/payroll/rules", headers=admin, json={
        "rule_name": "Tower day", "rule_type": "daily_rate", "base_amount": 200000, "site_id": sites["a"].id
    }).json()["rule"]
    client.post("/payroll/rules", headers=admin, json={
        "rule_name": "Global hourly", "rule_type": "hourly_rate", "base_amount": 20000, "site_id": "", "role": ""
    })
    client.post("/payroll/rules", headers=admin, json={
        "rule_name": "Yard day", "rule_type": "daily_rate", "base_amount": 180000, "site_id": sites["b"].id
    })

    listed = client.get("/payroll/rules", params={"site_id": sites["a"].id}, headers=admin).json()
    assert listed["total"] == 2
    assert {r["rule_name"] for r in listed["rules"]} == {"Tower day", "Global hourly"}

    searched = client.get("/payroll/rules", params={"search": "HOURLY"}, headers=admin).json()
    assert [r["rule_name"] for r in searched["rules"]] == ["Global hourly"]
    assert searched["rules"][0]["site_id"] is None

    updated = client.post("/payroll/rules", headers=admin, json=dict(created, base_amount=210000)).json()
    assert updated["rule"]["base_amount"] == 210000

    deleted = client.post("/payroll/rules/delete", headers=admin, json={"rule_ids": [created["id"]]}).json()
    assert deleted["deleted"] == 1
    assert client.get("/payroll/rules", headers=admin).json()["total"] == 2


def test_rule_validation(client, users, auth):
    admin = auth(users["admin"])

    assert client.post("/payroll/rules", headers=admin, json={"rule_type": "daily_rate", "base_amount": 1}).status_code == 400
    assert client.post("/payroll/rules", headers=admin, json={"rule_name": "x", "base_amount": 1}).status_code == 400
    negative = {"rule_name": "x", "rule_type": "daily_rate", "base_amount": -1}
    assert client.post("/payroll/rules", headers=admin, json=negative).status_code == 400


def test_personal_calculation(client, users, auth, add_setting):
    add_setting(users["worker"], employment_type="regular_employee", daily_rate=200000)

    response = client.post("/payroll/calculate/personal", headers=auth(users["admin"]), json={
        "worker_id": users["worker"].id, "work_date": "2024-05-31", "labor_hours": 10
    })

    assert response.status_code == 200
    calculation = response.json()["calculation"]
    assert calculation["gross_pay"] == 2000000
    assert calculation["total_tax"] == 251500
    assert calculation["net_pay"] == 1748500


def test_personal_calculation_uses_custom_rates(client, users, auth, add_setting):
    add_setting(users["worker"], employment_type="freelancer", daily_rate=100000, custom_tax_rates={"income_tax": 5})

    calculation = client.post("/payroll/calculate/personal", headers=auth(users["admin"]), json={
        "worker_id": users["worker"].id, "work_date": "2024-05-31", "labor_hours": 1
    }).json()["calculation"]

    assert calculation["deductions"]["income_tax"] == 5000
    assert calculation["deductions"]["resident_tax"] == 330


def test_personal_calculation_errors(client, users, auth, add_setting):
    admin = auth(users["admin"])
    body = {"worker_id": users["worker2"].id, "work_date": "2024-05-31", "labor_hours": 1}

    missing = client.post("/payroll/calculate/personal", headers=admin, json=body)
    assert missing.status_code == 404
    assert missing.json() == {"status": "error", "detail": "Worker has no salary setting"}

    add_setting(users["worker2"])
    body["labor_hours"] = 0
    assert client.post("/payroll/calculate/personal", headers=admin, json=body).status_code == 400


def test_personal_record_and_monthly_summary(client, users, sites, auth, add_setting):
    add_setting(users["worker"], daily_rate=150000)

    saved = client.post("/payroll/records/personal", headers=auth(users["admin"]), json={
        "worker_id": users["worker"].id, "work_date": "2024-05-02", "labor_hours": 1.5, "site_id": sites["a"].id
    }).json()["record"]
    assert saved["regular_hours"] == 8.0
    assert saved["overtime_hours"] == 4.0
    assert saved["total_pay"] == 210150

    params = {"worker_id": users["worker"].id, "year": 2024, "month": 5}
    summary = client.get("/payroll/personal/monthly", params=params, headers=auth(users["worker"])).json()
    assert summary["total_records"] == 1
    assert summary["total_gross_pay"] == 225000
    assert summary["total_tax"] == 14850
    assert summary["total_net_pay"] == 210150

    assert client.get("/payroll/personal/monthly", params=params, headers=auth(users["worker2"])).status_code == 403


def test_calculate_approve_pay_flow(client, db, users, sites, auth, add_work):
    admin = auth(users["admin"])
    add_work(users["worker"], sites["a"], date(2024, 5, 2), 1.0)
    add_work(users["worker2"], sites["b"], date(2024, 5, 2), 1.5, work_hours=12)

    result = client.post("/payroll/calculate", headers=admin, json={"date_from": "2024-05-01", "date_to": "2024-05-31"})
    assert result.json()["calculated_records"] == 2

    records = client.get("/payroll/records", headers=admin).json()
    assert records["total"] == 2
    ids = [r["id"] for r in records["records"]]

    lee = client.get("/payroll/records", params={"search": "lee"}, headers=admin).json()
    assert [r["worker_id"] for r in lee["records"]] == [users["worker2"].id]

    paid_early = client.post("/payroll/records/pay", headers=admin, json={"record_ids": ids}).json()
    assert paid_early["updated"] == 0
    assert paid_early["skipped"] == 2

    assert client.post("/payroll/records/approve", headers=admin, json={"record_ids": ids[:1]}).json()["updated"] == 1

    stats = client.get("/payroll/stats", headers=admin).json()
    assert stats["total_workers"] == 2
    assert stats["pending_calculations"] == 1
    assert stats["approved_payments"] == 1
    assert stats["total_payroll"] == 150000 + 225000

    assert client.post("/payroll/records/pay", headers=admin, json={"record_ids": ids}).json()["updated"] == 1
    assert db.query(ActivityLog).filter_by(entity_type="SALARY_RECORD").count() == 4


def test_output_summary(client, users, sites, auth, add_work, add_setting):
    add_setting(users["worker"], daily_rate=180000)
    add_work(users["worker"], sites["a"], date(2024, 5, 2), 1.0)
    add_work(users["worker"], sites["a"], date(2024, 5, 3), 0.5)
    add_work(users["worker"], sites["b"], date(2024, 5, 3), 0.5)

    rows = client.get("/payroll/output-summary", params={"year": 2024, "month": 5}, headers=auth(users["admin"])).json()["rows"]

    assert len(rows) == 2
    tower = next(r for r in rows if r["site_id"] == sites["a"].id)
    assert tower["work_days"] == 2
    assert tower["total_labor_hours"] == 1.5
    assert tower["first_work_date"] == "2024-05-02"
    assert tower["total_pay"] == 270000


def test_monthly_summary_gross_includes_overtime(client, db, users, sites, auth, add_work):
    db.add(SalaryRule(rule_name="Worker hourly", rule_type="hourly_rate", base_amount=20000))
    db.commit()
    add_work(users["worker"], sites["a"], date(2024, 5, 2), 1.5, work_hours=12)
    calculate_salary_records(db, date_from=date(2024, 5, 1), date_to=date(2024, 5, 31))

    params = {"worker_id": users["worker"].id, "year": 2024, "month": 5}
    summary = client.get("/payroll/personal/monthly", params=params, headers=auth(users["admin"])).json()

    assert summary["records"][0]["overtime_pay"] == 120000
    assert summary["total_gross_pay"] == 280000
    assert summary["total_tax"] == 0
    assert summary["total_net_pay"] == summary["total_gross_pay"] - summary["total_tax"]


def test_rule_site_id_must_be_numeric(client, db, users, auth):
    response = client.post("/payroll/rules", headers=auth(users["admin"]), json={
        "rule_name": "Bad site", "rule_type": "daily_rate", "base_amount": 1000, "site_id": "abc"
    })

    assert response.status_code == 400
    assert db.query(SalaryRule).count() == 0


def test_listings_clamp_page_and_limit(client, users, sites, auth, add_work):
    admin = auth(users["admin"])
    add_work(users["worker"], sites["a"], date(2024, 5, 2), 1.0)
    client.post("/payroll/calculate", headers=admin, json={"date_from": "2024-05-01", "date_to": "2024-05-31"})
    client.post("/payroll/rules", headers=admin, json={"rule_name": "Day", "rule_type": "daily_rate", "base_amount": 1})

    records = client.get("/payroll/records", params={"page": 0, "limit": -5}, headers=admin).json()
    assert records["page"] == 1
    assert records["pages"] == 1
    assert len(records["records"]) == 1

    rules = client.get("/payroll/rules", params={"page": -3, "limit": 0}, headers=admin).json()
    assert rules["pages"] == 1
    assert len(rules["rules"]) == 1
