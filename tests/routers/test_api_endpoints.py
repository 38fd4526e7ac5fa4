API = "/api/v1"


def create_stage(client, headers, name, note=None):
    response = client.post(f"{API}/task-stage", json={"name": name, "note": note}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_task(client, headers, name, stage_ids):
    response = client.post(f"{API}/task", json={"name": name, "stageIds": stage_ids}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_customer(client, headers, name="Mehmet"):
    response = client.post(f"{API}/customer", json={"name": name, "phoneNumber": "555"}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_order(client, headers, stage_names=("Onay", "Kargo", "Teslim"), customer_name="Mehmet"):
    stages = [create_stage(client, headers, name) for name in stage_names]
    task = create_task(client, headers, "Onboarding", [s["id"] for s in stages])
    customer = create_customer(client, headers, customer_name)
    response = client.post(f"{API}/order", json={"customerId": customer["id"], "taskId": task["id"]},
                           headers=headers)
    assert response.status_code == 201, response.text
    return response.json(), stages


def test_healthcheck(client):
    response = client.get(f"{API}/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_endpoints_require_authentication(client):
    response = client.get(f"{API}/task-stage")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_access_token_cookie_is_not_accepted(client, register_user):
    register_user(email="ada@example.com")
    tokens = client.put(f"{API}/auth/authenticate",
                        json={"email": "ada@example.com", "password": "password123"}).json()
    client.cookies.set("access_token", tokens["access_token"])
    response = client.get(f"{API}/users")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


# --- auth & users ---

def test_login_refresh_and_logout(client, register_user):
    register_user(email="ada@example.com")
    response = client.put(f"{API}/auth/authenticate", json={"email": "ada@example.com", "password": "password123"})
    assert response.status_code == 200
    tokens = response.json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}
    assert client.get(f"{API}/users", headers=headers).json()["companyName"] == "Acme"

    # a refresh token is not an access token
    bad = client.get(f"{API}/users", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert bad.status_code == 401

    refreshed = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refresh_token"]})
    assert refreshed.status_code == 200

    assert client.post(f"{API}/auth/logout", headers=headers).status_code == 204
    assert client.get(f"{API}/users", headers=headers).status_code == 401
    again = client.post(f"{API}/auth/refresh", json={"refreshToken": tokens["refresh_token"]})
    assert again.status_code == 401


def test_wrong_password(client, register_user):
    register_user(email="ada@example.com")
    response = client.put(f"{API}/auth/authenticate", json={"email": "ada@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_CREDENTIALS"


def test_duplicate_registration_conflicts(client, register_user):
    register_user(email="ada@example.com")
    response = client.post(f"{API}/auth/register", json={
        "firstname": "A", "lastname": "B", "email": "ada@example.com", "password": "password123",
        "companyName": "Other",
    })
    assert response.status_code == 409


def test_update_profile_and_change_password(client, auth_headers):
    response = client.put(f"{API}/users", json={"phone": "555 0000"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["phone"] == "555 0000"
    assert response.json()["firstname"] == "Ada"

    mismatch = client.put(f"{API}/users/change/password", headers=auth_headers, json={
        "currentPassword": "password123", "newPassword": "newpassword1", "confirmationPassword": "other",
    })
    assert mismatch.status_code == 400

    changed = client.put(f"{API}/users/change/password", headers=auth_headers, json={
        "currentPassword": "password123", "newPassword": "newpassword1", "confirmationPassword": "newpassword1",
    })
    assert changed.status_code == 204
    # old tokens stop working after a password change
    assert client.get(f"{API}/users", headers=auth_headers).status_code == 401
    login = client.put(f"{API}/auth/authenticate", json={"email": "owner@example.com", "password": "newpassword1"})
    assert login.status_code == 200


# --- stages ---

def test_stage_catalog(client, auth_headers):
    onay = create_stage(client, auth_headers, "Onay")
    create_stage(client, auth_headers, "Red")
    assert onay["status"] == "ACTIVE"
    assert onay["userId"]

    names = [s["name"] for s in client.get(f"{API}/task-stage?name=onay", headers=auth_headers).json()]
    assert names == ["Onay"]

    renamed = client.put(f"{API}/task-stage/{onay['id']}", json={"name": "Onaylandi"}, headers=auth_headers)
    assert renamed.json()["name"] == "Onaylandi"
    assert renamed.json()["status"] == "ACTIVE"

    deleted = client.put(f"{API}/task-stage/{onay['id']}", json={"name": "Onaylandi", "status": "DELETED"},
                         headers=auth_headers)
    assert deleted.json()["status"] == "DELETED"
    listed = [s["name"] for s in client.get(f"{API}/task-stage", headers=auth_headers).json()]
    assert listed == ["Red"]
    # still readable by id
    assert client.get(f"{API}/task-stage/{onay['id']}", headers=auth_headers).status_code == 200


def test_stage_name_length_is_validated(client, auth_headers):
    response = client.post(f"{API}/task-stage", json={"name": "ab"}, headers=auth_headers)
    assert response.status_code == 422


def test_hard_delete_of_used_stage_conflicts(client, auth_headers):
    stage = create_stage(client, auth_headers, "Onay")
    create_task(client, auth_headers, "T", [stage["id"]])
    response = client.delete(f"{API}/task-stage/{stage['id']}", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "IN_USE"


def test_other_users_rows_are_not_found(client, auth_headers, register_user):
    stage = create_stage(client, auth_headers, "Onay")
    other = register_user(email="other@example.com")
    assert client.get(f"{API}/task-stage/{stage['id']}", headers=other).status_code == 404
    response = client.delete(f"{API}/task-stage/{stage['id']}", headers=other)
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


# --- tasks ---

def test_task_from_flow(client, auth_headers):
    a, b, c = (create_stage(client, auth_headers, name) for name in ("Aaa", "Bbb", "Ccc"))
    response = client.post(f"{API}/task", headers=auth_headers, json={
        "name": "Flow",
        "flow": {
            "nodes": [{"id": "n2", "stageId": b["id"]}, {"id": "n1", "stageId": a["id"]},
                      {"id": "n3", "stageId": c["id"]}],
            "edges": [{"source": "n1", "target": "n2"}, {"source": "n2", "target": "n3"}],
        },
    })
    assert response.status_code == 201
    assert [s["id"] for s in response.json()["stages"]] == [a["id"], b["id"], c["id"]]


def test_ambiguous_flow_is_bad_request(client, auth_headers):
    a, b = (create_stage(client, auth_headers, name) for name in ("Aaa", "Bbb"))
    response = client.post(f"{API}/task", headers=auth_headers, json={
        "name": "Flow",
        "flow": {"nodes": [{"id": "n1", "stageId": a["id"]}, {"id": "n2", "stageId": b["id"]}], "edges": []},
    })
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_FLOW"


def test_task_with_duplicate_stage_is_bad_request(client, auth_headers):
    stage = create_stage(client, auth_headers, "Onay")
    response = client.post(f"{API}/task", json={"name": "T", "stageIds": [stage["id"], stage["id"]]},
                           headers=auth_headers)
    assert response.status_code == 400


def test_task_update_and_delete(client, auth_headers):
    a, b = (create_stage(client, auth_headers, name) for name in ("Aaa", "Bbb"))
    task = create_task(client, auth_headers, "T", [a["id"]])
    updated = client.put(f"{API}/task/{task['id']}", json={"name": "T2", "stageIds": [b["id"], a["id"]]},
                         headers=auth_headers)
    assert [s["name"] for s in updated.json()["stages"]] == ["Bbb", "Aaa"]
    assert client.delete(f"{API}/task/{task['id']}", headers=auth_headers).status_code == 204
    assert client.get(f"{API}/task/{task['id']}", headers=auth_headers).status_code == 404


# --- orders ---

def test_order_onboarding_flow(client, auth_headers):
    order, stages = create_order(client, auth_headers)
    assert order["status"] == "CREATED"
    assert order["currentTaskStage"] is None
    assert order["hasNextStage"] is False
    assert isinstance(order["createdDate"], int)

    started = client.put(f"{API}/order/{order['id']}/start", headers=auth_headers).json()
    assert started["status"] == "IN_PROGRESS"
    assert started["currentTaskStage"] == {"id": stages[0]["id"], "name": "Onay", "order": 0}
    assert started["hasNextStage"] is True

    client.put(f"{API}/order/{order['id']}/next-stage", headers=auth_headers)
    last = client.put(f"{API}/order/{order['id']}/next-stage", headers=auth_headers).json()
    assert last["currentTaskStage"]["name"] == "Teslim"
    assert last["hasNextStage"] is False

    back = client.put(f"{API}/order/{order['id']}/previous-stage", headers=auth_headers).json()
    assert back["currentTaskStage"]["name"] == "Kargo"
    client.put(f"{API}/order/{order['id']}/next-stage", headers=auth_headers)

    completed = client.put(f"{API}/order/{order['id']}/complete", headers=auth_headers)
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"

    rejected = client.put(f"{API}/order/{order['id']}/revert", headers=auth_headers)
    assert rejected.status_code == 409
    assert rejected.json()["code"] == "ALREADY_TERMINAL"
    assert client.get(f"{API}/order/{order['id']}", headers=auth_headers).json()["status"] == "COMPLETED"


def test_complete_before_last_stage_conflicts(client, auth_headers):
    order, _ = create_order(client, auth_headers)
    client.put(f"{API}/order/{order['id']}/start", headers=auth_headers)
    response = client.put(f"{API}/order/{order['id']}/complete", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "STAGE_NOT_FINAL"


def test_stage_moves_on_unstarted_order_conflict(client, auth_headers):
    order, _ = create_order(client, auth_headers)
    back = client.put(f"{API}/order/{order['id']}/previous-stage", headers=auth_headers)
    assert back.status_code == 409
    assert back.json()["code"] == "NO_PREVIOUS_STAGE"

    done = client.put(f"{API}/order/{order['id']}/complete", headers=auth_headers)
    assert done.status_code == 409
    assert done.json()["code"] == "STAGE_NOT_FINAL"


def test_cancel_and_revert(client, auth_headers):
    order, _ = create_order(client, auth_headers)
    client.put(f"{API}/order/{order['id']}/start", headers=auth_headers)
    reverted = client.put(f"{API}/order/{order['id']}/revert", headers=auth_headers).json()
    assert reverted["status"] == "CREATED"
    assert reverted["currentTaskStage"] is None

    cancelled = client.delete(f"{API}/order/{order['id']}/cancel", headers=auth_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert cancelled.json()["currentTaskStage"] is None


def test_order_search(client, auth_headers):
    first, _ = create_order(client, auth_headers, customer_name="Ayse")
    second, _ = create_order(client, auth_headers, stage_names=("Red",), customer_name="Burak")
    client.put(f"{API}/order/{first['id']}/start", headers=auth_headers)
    client.put(f"{API}/order/{second['id']}/start", headers=auth_headers)

    page = client.get(f"{API}/order?stageName=onay", headers=auth_headers).json()
    assert [o["id"] for o in page["content"]] == [first["id"]]
    assert page["totalElements"] == 1
    assert page["totalPages"] == 1
    assert page["first"] is True and page["last"] is True

    by_stage = client.get(f"{API}/order", params={"task_current_stage_id": second["taskStages"][0]["id"]},
                          headers=auth_headers).json()
    assert [o["id"] for o in by_stage["content"]] == [second["id"]]

    paged = client.get(f"{API}/order?pageSize=1&page=1&sort=id,asc", headers=auth_headers).json()
    assert [o["id"] for o in paged["content"]] == [second["id"]]
    assert paged["totalPages"] == 2

    statuses = client.get(f"{API}/order?status=CREATED&status=CANCELLED", headers=auth_headers).json()
    assert statuses["content"] == []


def test_order_search_rejects_unknown_sort(client, auth_headers):
    response = client.get(f"{API}/order?sort=price,asc", headers=auth_headers)
    assert response.status_code == 400


def test_public_customer_order_lookup(client, auth_headers):
    order, _ = create_order(client, auth_headers)
    client.put(f"{API}/order/{order['id']}/start", headers=auth_headers)

    response = client.get(f"{API}/customer-order/{order['token']}")
    assert response.status_code == 200
    view = response.json()
    assert view["userCompany"] == "Acme"
    assert view["userEmail"] == "owner@example.com"
    assert view["stages"] == ["Onay", "Kargo", "Teslim"]
    assert view["currentStage"] == "Onay"
    assert view["status"] == "IN_PROGRESS"

    assert client.get(f"{API}/customer-order/unknown").status_code == 404


# --- customers & dashboard ---

def test_customer_crud_and_search(client, auth_headers):
    created = create_customer(client, auth_headers, "Mehmet Kaya")
    create_customer(client, auth_headers, "Zeynep")

    found = client.get(f"{API}/customer/search?q=mehmet", headers=auth_headers).json()
    assert [c["name"] for c in found["content"]] == ["Mehmet Kaya"]

    listed = client.get(f"{API}/customer?pageSize=1", headers=auth_headers).json()
    assert listed["totalElements"] == 2
    assert listed["totalPages"] == 2

    updated = client.put(f"{API}/customer/{created['id']}", json={"name": "Mehmet K."}, headers=auth_headers)
    assert updated.json()["name"] == "Mehmet K."
    assert client.delete(f"{API}/customer/{created['id']}", headers=auth_headers).status_code == 204


def test_customer_email_is_validated(client, auth_headers):
    response = client.post(f"{API}/customer", json={"name": "Mehmet", "email": "not-an-email"}, headers=auth_headers)
    assert response.status_code == 422

    blank = client.post(f"{API}/customer", json={"name": "Mehmet", "email": ""}, headers=auth_headers)
    assert blank.status_code == 201
    assert blank.json()["email"] == ""


def test_customer_with_orders_cannot_be_deleted(client, auth_headers):
    order, _ = create_order(client, auth_headers)
    response = client.delete(f"{API}/customer/{order['customer']['id']}", headers=auth_headers)
    assert response.status_code == 409


def test_dashboard_summary(client, auth_headers):
    create_order(client, auth_headers)
    summary = client.get(f"{API}/dashboard/summary", headers=auth_headers).json()
    assert summary == {"activeCustomers": 1, "activeTasks": 1, "activeOrders": 1, "activeStages": 3,
                       "completedOrders": 0, "pendingOrders": 1}


def test_dashboard_counts_completed_and_pending_orders(client, auth_headers):
    done, _ = create_order(client, auth_headers, stage_names=("Teslim",))
    create_order(client, auth_headers, stage_names=("Onay",), customer_name="Zeynep")
    client.put(f"{API}/order/{done['id']}/start", headers=auth_headers)
    client.put(f"{API}/order/{done['id']}/complete", headers=auth_headers)

    summary = client.get(f"{API}/dashboard/summary", headers=auth_headers).json()
    assert (summary["completedOrders"], summary["pendingOrders"], summary["activeOrders"]) == (1, 1, 1)
