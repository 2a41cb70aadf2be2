from betpool.auth import authenticate_user, hash_password, verify_password
from betpool.services.cache import current_data_version


def test_password_hashing():
    password = "secure_password_123"
    hashed = hash_password(password)

    assert hashed != password
    assert isinstance(hashed, str)
    assert len(hashed) > 0


def test_password_verification_success():
    password = "secure_password_123"
    hashed = hash_password(password)

    assert verify_password(password, hashed) is True


def test_password_verification_failure():
    hashed = hash_password("secure_password_123")

    assert verify_password("wrong_password", hashed) is False


def test_password_long_truncation():
    # bcrypt only looks at the first 72 bytes
    long_password = "a" * 100
    hashed = hash_password(long_password)

    assert verify_password(long_password, hashed) is True
    assert verify_password("a" * 72, hashed) is True
    assert verify_password("b" * 72, hashed) is False


def test_authenticate_user(session, make_user):
    make_user("bob")

    assert authenticate_user(session, "bob", "password123").username == "bob"
    assert authenticate_user(session, "bob", "nope") is None
    assert authenticate_user(session, "nobody", "password123") is None


def test_register_login_and_me(client):
    response = client.post("/auth/register", json={"username": "carol", "password": "secret1"})
    assert response.status_code == 201
    assert response.json()["display_name"] == "carol"

    client.cookies.clear()
    response = client.get("/auth/me")
    assert response.status_code == 401

    response = client.post("/auth/login", json={"username": "carol", "password": "secret1"})
    assert response.status_code == 200

    response = client.get("/auth/me")
    assert response.status_code == 200
    assert response.json()["username"] == "carol"


def test_register_duplicate_username(client, make_user):
    make_user("dave")
    response = client.post("/auth/register", json={"username": "dave", "password": "secret1"})
    assert response.status_code == 400


def test_login_wrong_password(client, make_user):
    make_user("erin")
    response = client.post("/auth/login", json={"username": "erin", "password": "wrong!"})
    assert response.status_code == 401


def test_register_counts_as_ranking_change(client, session):
    assert current_data_version(session) == 0

    response = client.post("/auth/register", json={"username": "newbie", "password": "secret123"})

    assert response.status_code == 201
    assert current_data_version(session) == 1
