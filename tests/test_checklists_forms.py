from conftest import auth_headers


def test_checklist_assignment_progress(client, make_member):
    manager = make_member("manager")
    emp = make_member("employee")

    r = client.post("/api/v1/checklists", json={"title": "Opening", "items": ["Lights", "Till", "Coffee"]},
                    headers=auth_headers(manager))
    assert r.status_code == 201
    checklist_id = r.get_json()["data"]["id"]

    r = client.post("/api/v1/checklists", json={"title": "Bad", "items": ["ok", ""]},
                    headers=auth_headers(manager))
    assert r.status_code == 400

    r = client.post(f"/api/v1/checklists/{checklist_id}/assign", json={"user_ids": [emp.id]},
                    headers=auth_headers(manager))
    assert r.status_code == 201
    assignment_id = r.get_json()["data"][0]["id"]

    h = auth_headers(emp)
    r = client.put(f"/api/v1/checklists/assignments/{assignment_id}", json={"completed_items": [0, 2]}, headers=h)
    data = r.get_json()["data"]
    assert data["status"] == "in_progress"
    assert data["progress"] == 67

    r = client.put(f"/api/v1/checklists/assignments/{assignment_id}", json={"completed_items": [5]}, headers=h)
    assert r.status_code == 400

    r = client.put(f"/api/v1/checklists/assignments/{assignment_id}", json={"completed_items": [0, 1, 2]},
                   headers=h)
    data = r.get_json()["data"]
    assert data["status"] == "completed"
    assert data["completed_at"] is not None

    r = client.get("/api/v1/checklists/assignments", headers=h)
    assert len(r.get_json()["data"]) == 1

    r = client.post("/api/v1/checklists", json={"title": "Mine"}, headers=h)
    assert r.status_code == 403


def test_form_submission_checks_required_fields(client, make_member):
    manager = make_member("manager")
    emp = make_member("employee")
    fields = [
        {"name": "incident", "type": "textarea", "required": True},
        {"name": "severity", "type": "select", "options": ["low", "high"]},
    ]
    r = client.post("/api/v1/forms", json={"name": "Incident report", "fields": fields},
                    headers=auth_headers(manager))
    assert r.status_code == 201
    template_id = r.get_json()["data"]["id"]

    r = client.post("/api/v1/forms", json={"name": "Broken", "fields": [{"name": "x", "type": "hologram"}]},
                    headers=auth_headers(manager))
    assert r.status_code == 400

    r = client.post(f"/api/v1/forms/{template_id}/submissions", json={"data": {"severity": "low"}},
                    headers=auth_headers(emp))
    assert r.status_code == 400
    assert r.get_json()["error"]["detail"] == {"missing": ["incident"]}

    r = client.post(f"/api/v1/forms/{template_id}/submissions",
                    json={"data": {"incident": "spill", "severity": "high", "extra": 1}},
                    headers=auth_headers(emp))
    assert r.status_code == 201
    sub = r.get_json()["data"]
    assert sub["data"] == {"incident": "spill", "severity": "high"}

    r = client.put(f"/api/v1/forms/submissions/{sub['id']}/review", headers=auth_headers(manager))
    assert r.get_json()["data"]["status"] == "reviewed"

    r = client.get("/api/v1/forms/submissions", headers=auth_headers(emp))
    assert r.get_json()["meta"]["total"] == 1
