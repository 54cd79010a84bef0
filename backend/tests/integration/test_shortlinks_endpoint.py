"""
Integration Tests for Shortlinks

Covers creation, listing, deletion, analytics and the public redirect.
"""

import pytest

TARGET = "https://example.com/landing"


def create(client, **fields):
    body = {"originalUrl": TARGET, **fields}
    return client.post("/api/shortlinks", json=body)


def test_create_with_custom_code(client):
    response = create(client, customCode="launch", title="Launch page")

    assert response.status_code == 200
    data = response.json()
    assert data["shortUrl"] == "http://testserver/launch"
    assert data["shortlink"]["shortCode"] == "launch"
    assert data["shortlink"]["originalUrl"] == TARGET
    assert data["shortlink"]["title"] == "Launch page"
    assert data["shortlink"]["hasPassword"] is False
    assert data["shortlink"]["clickCount"] == 0
    assert "passwordHash" not in data["shortlink"]


def test_create_with_random_code(client):
    data = create(client).json()

    assert len(data["shortlink"]["shortCode"]) == 6


def test_empty_custom_code_means_random(client):
    data = create(client, customCode="", title="").json()

    assert len(data["shortlink"]["shortCode"]) == 6
    assert data["shortlink"]["title"] is None


def test_duplicate_code_rejected(client):
    create(client, customCode="launch")

    response = create(client, customCode="launch")

    assert response.status_code == 400
    assert response.json()["error"] == "Short code already exists"


@pytest.mark.parametrize(
    "body",
    [
        {"originalUrl": "not a url"},
        {"originalUrl": TARGET, "customCode": "bad code!"},
        {"originalUrl": TARGET, "title": "t" * 201},
        {"originalUrl": "https://example.com/" + "a" * 2048},
    ],
)
def test_invalid_body(client, body):
    assert client.post("/api/shortlinks", json=body).status_code == 422


def test_redirect_records_click(client):
    shortlink_id = create(client, customCode="launch").json()["shortlink"]["id"]

    response = client.get("/launch", follow_redirects=False, headers={"Referer": "https://ref.example"})

    assert response.status_code == 302
    assert response.headers["location"] == TARGET

    listed = client.get("/api/shortlinks").json()["shortlinks"]
    assert listed[0]["clickCount"] == 1

    analytics = client.get(f"/api/shortlinks/{shortlink_id}/analytics").json()
    assert analytics["totalClicks"] == 1
    assert sum(analytics["clicksByDay"].values()) == 1
    assert analytics["recentClicks"][0]["referer"] == "https://ref.example"
    assert analytics["recentClicks"][0]["userAgent"] == "testclient"


def test_unknown_code(client):
    response = client.get("/nosuchcode", follow_redirects=False)

    assert response.status_code == 404
    assert "/not-found-shortlink" in response.text


def test_expired_link(client):
    create(client, customCode="old", expiresAt="2020-01-01T00:00:00Z")

    response = client.get("/old", follow_redirects=False)

    assert response.status_code == 410


def test_naive_expiry_treated_as_utc(client):
    data = create(client, customCode="later", expiresAt="2999-01-01T00:00:00").json()

    assert data["shortlink"]["expiresAt"] == "2999-01-01T00:00:00+00:00"
    assert client.get("/later", follow_redirects=False).status_code == 302


def test_disabled_link(client, app):
    shortlink_id = create(client, customCode="off").json()["shortlink"]["id"]
    app.state.shortlink_records.update(shortlink_id, isActive=False)

    response = client.get("/off", follow_redirects=False)

    assert response.status_code == 410


def test_password_protected_link(client):
    data = create(client, customCode="secret", password="s3cret").json()
    assert data["shortlink"]["hasPassword"] is True

    missing = client.get("/secret", follow_redirects=False)
    wrong = client.get("/secret", params={"password": "nope"}, follow_redirects=False)
    right = client.get("/secret", params={"password": "s3cret"}, follow_redirects=False)

    assert missing.status_code == 307
    assert missing.headers["location"] == "/protected/secret"
    assert wrong.status_code == 307
    assert right.status_code == 302
    assert right.headers["location"] == TARGET


def test_delete_shortlink(client):
    shortlink_id = create(client, customCode="temp").json()["shortlink"]["id"]

    assert client.delete(f"/api/shortlinks/{shortlink_id}").json() == {"success": True}
    assert client.delete(f"/api/shortlinks/{shortlink_id}").status_code == 404
    assert client.get("/temp", follow_redirects=False).status_code == 404


def test_analytics_for_unknown_shortlink(client):
    response = client.get("/api/shortlinks/missing/analytics")

    assert response.status_code == 404
    assert response.json()["error"] == "Shortlink not found"


def test_create_rate_limit(client):
    for _ in range(20):
        assert create(client).status_code == 200

    response = create(client)

    assert response.status_code == 429
    assert response.json()["retryAfter"] == 300
