"""Client for the hosted backend platform (data API and auth API)."""

import logging
from typing import Any, Optional, Union

import httpx

from .auth import AuthManager
from .errors import AuthError, PlatformError
from .models import AuthCredentials, User

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"

Rows = Union[list[dict[str, Any]], dict[str, Any]]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class TableQuery:
    """Builder for one request against a collection of the data API.

    Mirrors the chained style of the platform's generated client::

        client.table("products").select("*, categories(*)").eq("is_active", True).limit(8).execute()
    """

    def __init__(self, client: "PlatformClient", table: str, access_token: Optional[str] = None) -> None:
        self._client = client
        self.table = table
        self.access_token = access_token
        self.method = "GET"
        self.columns: Optional[str] = None
        self.body: Any = None
        self.filters: list[tuple[str, str]] = []
        self.ordering: list[str] = []
        self.row_limit: Optional[int] = None
        self.expect_single = False

    def select(self, columns: str = "*") -> "TableQuery":
        self.columns = columns
        return self

    def insert(self, rows: Union[dict[str, Any], list[dict[str, Any]]]) -> "TableQuery":
        self.method = "POST"
        self.body = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: dict[str, Any]) -> "TableQuery":
        self.method = "PATCH"
        self.body = values
        return self

    def delete(self) -> "TableQuery":
        self.method = "DELETE"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self.filters.append((column, f"eq.{_format_value(value)}"))
        return self

    def neq(self, column: str, value: Any) -> "TableQuery":
        self.filters.append((column, f"neq.{_format_value(value)}"))
        return self

    def order(self, column: str, ascending: bool = True) -> "TableQuery":
        self.ordering.append(f"{column}.{'asc' if ascending else 'desc'}")
        return self

    def limit(self, count: int) -> "TableQuery":
        self.row_limit = count
        return self

    def single(self) -> "TableQuery":
        self.expect_single = True
        return self

    def params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if self.columns is not None:
            params.append(("select", self.columns))
        elif self.method == "GET":
            params.append(("select", "*"))
        params.extend(self.filters)
        if self.ordering:
            params.append(("order", ",".join(self.ordering)))
        if self.row_limit is not None:
            params.append(("limit", str(self.row_limit)))
        return params

    def execute(self) -> Rows:
        return self._client.execute(self)


class PlatformClient:
    """Client for the hosted platform's data and auth APIs."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        auth_manager: AuthManager,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize the platform client.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            anon_key: Public anon API key
            auth_manager: Holds the signed-in user's tokens
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.anon_key = anon_key
        self.auth_manager = auth_manager
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": anon_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    def _auth_headers(self, access_token: Optional[str] = None) -> dict[str, str]:
        token = access_token or self.auth_manager.get_access_token() or self.anon_key
        return {"Authorization": f"Bearer {token}"}

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise PlatformError(str(e) or "Network error") from e

    # Data API

    def table(self, name: str, access_token: Optional[str] = None) -> TableQuery:
        """
        Start a query against a collection.

        Args:
            name: Collection name
            access_token: Token to send instead of the stored session token
        """
        return TableQuery(self, name, access_token)

    def execute(self, query: TableQuery) -> Rows:
        """Run a query built with table()."""
        headers = self._auth_headers(query.access_token)
        if query.expect_single:
            headers["Accept"] = "application/vnd.pgrst.object+json"
        if query.method != "GET":
            headers["Prefer"] = "return=representation"

        url = f"{REST_PATH}/{query.table}"
        logger.debug(f"{query.method} {url} params={query.params()}")
        response = self._send(
            query.method,
            url,
            params=query.params(),
            json=query.body,
            headers=headers,
        )

        if response.status_code >= 400:
            raise self._data_error(response)

        if not response.content:
            return {} if query.expect_single else []
        return response.json()

    @staticmethod
    def _data_error(response: httpx.Response) -> PlatformError:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        message = data.get("message") or response.text or f"HTTP {response.status_code}"
        error = PlatformError(
            message,
            code=data.get("code"),
            details=data.get("details"),
            hint=data.get("hint"),
            status_code=response.status_code,
        )
        logger.warning(f"Data API error: status={response.status_code} code={error.code} message={message}")
        return error

    # Auth API

    @staticmethod
    def _auth_error(response: httpx.Response) -> AuthError:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        # Newer auth servers send error_code, older ones a string code or error.
        kind = data.get("error_code")
        if not kind and isinstance(data.get("code"), str):
            kind = data["code"]
        if not kind:
            kind = data.get("error")

        message = (
            data.get("msg")
            or data.get("message")
            or data.get("error_description")
            or response.text
            or f"HTTP {response.status_code}"
        )
        logger.warning(f"Auth API error: status={response.status_code} kind={kind} message={message}")
        return AuthError(message, kind=kind, status_code=response.status_code)

    def _auth_request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = self._send(method, f"{AUTH_PATH}{path}", **kwargs)
        if response.status_code >= 400:
            raise self._auth_error(response)
        if not response.content:
            return {}
        return response.json()

    def sign_in_with_password(self, credentials: AuthCredentials) -> dict[str, Any]:
        """
        Exchange email and password for a session.

        Returns:
            Session payload with access_token, refresh_token and user

        Raises:
            AuthError: If the platform rejects the credentials
        """
        logger.info(f"Signing in as {credentials.email}")
        return self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": credentials.email, "password": credentials.password},
            headers={"Authorization": f"Bearer {self.anon_key}"},
        )

    def sign_up(self, credentials: AuthCredentials, data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Create an auth user.

        Returns:
            Session payload when the platform signs the user in right away,
            otherwise the created user object (email confirmation pending)
        """
        logger.info(f"Signing up {credentials.email}")
        return self._auth_request(
            "POST",
            "/signup",
            json={
                "email": credentials.email,
                "password": credentials.password,
                "data": data or {},
            },
            headers={"Authorization": f"Bearer {self.anon_key}"},
        )

    def sign_out(self, access_token: Optional[str] = None) -> None:
        """Revoke the session token."""
        self._auth_request("POST", "/logout", headers=self._auth_headers(access_token))

    def get_user(self, access_token: Optional[str] = None) -> User:
        """Fetch the identity behind the current token."""
        data = self._auth_request("GET", "/user", headers=self._auth_headers(access_token))
        return User.model_validate(data)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()
