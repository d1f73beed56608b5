TEST_USER_AGENT = "pytest-browser/1.0"


def register(client, username="alice", email=None, password="s3cret-pass", user_agent=TEST_USER_AGENT):
    return client.post(
        "/auth/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
        headers={"User-Agent": user_agent},
    )


def login(client, identifier, password="s3cret-pass", remember=False, user_agent=TEST_USER_AGENT):
    return client.post(
        "/auth/login",
        json={"identifier": identifier, "password": password, "remember": remember},
        headers={"User-Agent": user_agent},
    )


def api(client, method, path, json=None, user_agent=TEST_USER_AGENT):
    return client.open(path, method=method, json=json, headers={"User-Agent": user_agent})


def create_project(client, name="Robot Arm", description="Build a robotic arm",
                   tags=("hardware",), looking_for=("firmware",)):
    resp = api(client, "POST", "/projects", json={
        "name": name,
        "description": description,
        "tags": list(tags),
        "lookingFor": list(looking_for),
    })
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["project"]["id"]
