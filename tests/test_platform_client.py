import httpx
import pytest

from storefront_server.errors import AuthError, PlatformError
from storefront_server.models import AuthCredentials
from storefront_server.platform_client import PlatformClient

from conftest import ANON_KEY, BASE_URL, OBJECT_ACCEPT


def test_query_parameters(platform):
    query = (
        platform.table("addresses")
        .select("*")
        .eq("user_id", "u1")
        .neq("is_default", True)
        .order("is_default", ascending=False)
        .order("created_at", ascending=False)
        .limit(3)
    )

    assert query.params() == [
        ("select", "*"),
        ("user_id", "eq.u1"),
        ("is_default", "neq.true"),
        ("order", "is_default.desc,created_at.desc"),
        ("limit", "3"),
    ]


def test_select_defaults_to_all_columns_for_reads(platform):
    assert platform.table("products").params() == [("select", "*")]
    assert platform.table("products").delete().eq("id", "p1").params() == [("id", "eq.p1")]


def test_select_sends_api_key_and_anon_bearer(backend, platform):
    backend.add_category("Shoes", "shoes")

    rows = platform.table("categories").select("*").execute()

    assert [row["slug"] for row in rows] == ["shoes"]
    request = backend.requests[-1]
    assert request.url.path == "/rest/v1/categories"
    assert request.headers["apikey"] == ANON_KEY
    assert request.headers["authorization"] == f"Bearer {ANON_KEY}"


def test_session_token_is_used_when_signed_in(backend, platform, auth_manager):
    auth_manager.save_session("user-token", user_id="u1")

    platform.table("products").select("*").execute()

    assert backend.requests[-1].headers["authorization"] == "Bearer user-token"


def test_explicit_token_overrides_session(backend, platform, auth_manager):
    auth_manager.save_session("user-token", user_id="u1")

    platform.table("profiles", access_token="fresh-token").select("*").execute()

    assert backend.requests[-1].headers["authorization"] == "Bearer fresh-token"


def test_insert_wraps_row_and_asks_for_representation(backend, platform):
    rows = platform.table("categories").insert({"name": "Hats", "slug": "hats"}).select().execute()

    assert rows[0]["slug"] == "hats"
    assert rows[0]["id"]
    request = backend.requests[-1]
    assert request.method == "POST"
    assert request.headers["prefer"] == "return=representation"


def test_single_requests_object(backend, platform):
    row = backend.add_category("Shoes", "shoes")

    result = platform.table("categories").select("*").eq("id", row["id"]).single().execute()

    assert result["slug"] == "shoes"
    assert backend.requests[-1].headers["accept"] == OBJECT_ACCEPT


def test_single_without_match_raises(backend, platform):
    with pytest.raises(PlatformError) as exc_info:
        platform.table("categories").select("*").eq("id", "missing").single().execute()

    assert exc_info.value.status_code == 406
    assert exc_info.value.code == "PGRST116"


def test_unique_violation_is_reported(backend, platform):
    backend.add_category("Shoes", "shoes")

    with pytest.raises(PlatformError) as exc_info:
        platform.table("categories").insert({"name": "Shoes 2", "slug": "shoes"}).execute()

    assert exc_info.value.is_unique_violation
    assert "duplicate key" in exc_info.value.message


def test_server_error_keeps_raw_message(backend, platform):
    backend.fail("GET", "products")

    with pytest.raises(PlatformError) as exc_info:
        platform.table("products").select("*").execute()

    assert exc_info.value.message == "simulated failure on products"
    assert exc_info.value.status_code == 500


def test_empty_response_body(platform):
    client = PlatformClient(
        BASE_URL,
        ANON_KEY,
        platform.auth_manager,
        transport=httpx.MockTransport(lambda request: httpx.Response(204)),
    )

    assert client.table("products").delete().eq("id", "p1").execute() == []
    client.close()


def test_network_error_becomes_platform_error(auth_manager):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = PlatformClient(BASE_URL, ANON_KEY, auth_manager, transport=httpx.MockTransport(refuse))

    with pytest.raises(PlatformError) as exc_info:
        client.table("products").select("*").execute()
    assert "connection refused" in exc_info.value.message
    client.close()


def test_sign_in_with_password(backend, platform):
    user_id = backend.add_user("ann@example.com", "secret")

    payload = platform.sign_in_with_password(AuthCredentials(email="ann@example.com", password="secret"))

    assert payload["user"]["id"] == user_id
    assert payload["access_token"] in backend.tokens
    request = backend.requests[-1]
    assert request.url.path == "/auth/v1/token"
    assert request.url.params["grant_type"] == "password"


def test_sign_in_failure_carries_error_kind(backend, platform):
    backend.add_user("ann@example.com", "secret")

    with pytest.raises(AuthError) as exc_info:
        platform.sign_in_with_password(AuthCredentials(email="ann@example.com", password="wrong"))

    assert exc_info.value.kind == "invalid_credentials"
    assert exc_info.value.message == "Invalid login credentials"
    assert exc_info.value.status_code == 400


def test_legacy_auth_error_shape(auth_manager):
    def legacy(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})

    client = PlatformClient(BASE_URL, ANON_KEY, auth_manager, transport=httpx.MockTransport(legacy))

    with pytest.raises(AuthError) as exc_info:
        client.sign_in_with_password(AuthCredentials(email="a@b.c", password="x"))
    assert exc_info.value.kind == "invalid_grant"
    assert exc_info.value.message == "Invalid login credentials"
    client.close()


def test_get_user_and_sign_out(backend, platform):
    backend.add_user("ann@example.com", "secret")
    token = platform.sign_in_with_password(AuthCredentials(email="ann@example.com", password="secret"))["access_token"]

    assert platform.get_user(token).email == "ann@example.com"

    platform.sign_out(token)

    with pytest.raises(AuthError):
        platform.get_user(token)
