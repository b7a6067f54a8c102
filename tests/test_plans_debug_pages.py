import pytest

from api.pages import safe_redirect_path
from auth.tokens import TokenCodec

from conftest import TEST_SECRET


def test_plans_ordered_by_price(client):
    response = client.get("/api/plans")

    plans = response.json()["plans"]
    assert response.status_code == 200
    assert [p["name"] for p in plans] == ["free", "pro", "premium"]
    assert plans[2]["tries"] == -1


def test_debug_route_is_not_mounted_by_default(client):
    assert client.get("/api/debug/auth").status_code == 404


def test_debug_route_reports_token_state(make_client):
    client = make_client(enable_debug_routes=True)
    token = TokenCodec(TEST_SECRET).issue("user-1")

    response = client.get("/api/debug/auth", headers={"Authorization": f"Bearer {token}"})

    debug = response.json()["debug"]
    assert response.status_code == 200
    assert debug["isValid"] is True
    assert debug["decoded"]["id"] == "user-1"
    assert debug["tokenSnippet"] == token[:20] + "..."
    assert token not in response.text


def test_debug_route_with_bad_token_is_still_200(make_client):
    client = make_client(enable_debug_routes=True)

    response = client.get("/api/debug/auth", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 200
    assert response.json()["debug"]["isValid"] is False


def test_debug_route_without_token(make_client):
    client = make_client(enable_debug_routes=True)

    response = client.get("/api/debug/auth")

    assert response.status_code == 200
    assert response.json() == {"success": False, "debug": {"hasToken": False}}


def test_verify_page_prefills_email(client):
    response = client.get("/verify", params={"email": "alice@example.com", "next": "/chat"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert '"email": "alice@example.com"' in response.text
    assert '"next": "/chat"' in response.text
    assert "/api/auth/user/verify" in response.text
    assert "/api/auth/user/resend-verification" in response.text


def test_verify_page_escapes_script_injection(client):
    response = client.get("/verify", params={"email": "</script><script>alert(1)</script>"})

    assert "</script><script>alert(1)" not in response.text


@pytest.mark.parametrize(
    "next_path, expected",
    [
        ("/dashboard", "/dashboard"),
        ("/chat?id=1", "/chat?id=1"),
        ("", "/signin"),
        (None, "/signin"),
        ("https://evil.example.com", "/signin"),
        ("//evil.example.com", "/signin"),
        ("/\\evil.example.com", "/signin"),
    ],
)
def test_safe_redirect_path(next_path, expected):
    assert safe_redirect_path(next_path) == expected
