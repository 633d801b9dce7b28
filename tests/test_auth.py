def test_login_returns_token_and_profile(client, seed):
    resp = client.post("/auth/login", json={"email": "HOD.CSC@uni.edu", "password": "secret123"})
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["token"]
    assert data["user"]["role"] == "HOD"
    assert data["user"]["department"]["code"] == "CSC"


def test_bad_credentials(client, seed):
    resp = client.post("/auth/login", json={"email": "hod.csc@uni.edu", "password": "nope"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "unauthorized"


def test_missing_credentials(client, seed):
    resp = client.post("/auth/login", json={})
    assert resp.status_code == 400


def test_tampered_token_rejected(client, seed, login):
    headers = login("hod.csc@uni.edu")
    headers["Authorization"] += "x"
    assert client.get("/auth/profile", headers=headers).status_code == 401


def test_profile(client, seed, login):
    resp = client.get("/auth/profile", headers=login("dean.sci@uni.edu"))
    data = resp.get_json()["data"]
    assert data["email"] == "dean.sci@uni.edu"
    assert data["faculty"]["code"] == "SCI"


def test_register_hod(client, seed):
    resp = client.post("/auth/register", json={
        "email": "new.hod@uni.edu",
        "password": "longenough",
        "first_name": "New",
        "last_name": "Head",
        "role": "HOD",
        "department_id": seed["departments"]["EEE"],
    })
    assert resp.status_code == 201
    assert resp.get_json()["data"]["department_id"] == seed["departments"]["EEE"]

    again = client.post("/auth/register", json={
        "email": "new.hod@uni.edu",
        "password": "longenough",
        "first_name": "New",
        "last_name": "Head",
        "role": "HOD",
        "department_id": seed["departments"]["EEE"],
    })
    assert again.status_code == 400
    assert again.get_json()["error"]["code"] == "conflict"


def test_register_validation(client, seed):
    resp = client.post("/auth/register", json={"email": "bad", "password": "123", "role": "ADMIN"})
    assert resp.status_code == 400
    details = resp.get_json()["error"]["details"]
    assert "email: invalid email format" in details
    assert "role: must be HOD or DEAN" in details


def test_dean_requires_faculty(client, seed):
    resp = client.post("/auth/register", json={
        "email": "dean.new@uni.edu",
        "password": "longenough",
        "first_name": "New",
        "last_name": "Dean",
        "role": "DEAN",
    })
    assert resp.status_code == 400


def test_change_password(client, seed, login):
    headers = login("hod.csc@uni.edu")
    resp = client.post("/auth/change-password", headers=headers,
                       json={"current_password": "secret123", "new_password": "brandnew1"})
    assert resp.status_code == 200
    assert login("hod.csc@uni.edu", "brandnew1")

    wrong = client.post("/auth/change-password", headers=headers,
                        json={"current_password": "secret123", "new_password": "another1"})
    assert wrong.status_code == 400


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "ok"
