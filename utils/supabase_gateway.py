"""
Supabase Gateway Module

This module provides the single point of access to the hosted Supabase backend:
table reads over PostgREST, the add/deduct inventory procedures, and the email
one-time-code login used to gate the views.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from constants.inventory import (
    ADD_INVENTORY_RPC,
    DEDUCT_INVENTORY_RPC,
    ITEMS_TABLE,
)
from constants.schemas import RowPage

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

# PostgREST returns at most this many rows per request by default
MAX_ROWS_PER_REQUEST = 1000


class GatewayError(Exception):
    """Raised when a remote read, procedure call or auth request fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: requests.Response) -> str:
    """Extract the human-readable message from a PostgREST or GoTrue error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("message", "error_description", "msg", "error"):
            if body.get(key):
                return str(body[key])
    return response.text or f"HTTP {response.status_code}"


def _parse_total_count(content_range: Optional[str]) -> Optional[int]:
    """Parse the total from a Content-Range header such as ``0-29/120`` or ``*/0``."""
    if not content_range or "/" not in content_range:
        return None
    total = content_range.rsplit("/", 1)[1]
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


def _escape_like(term: str) -> str:
    # % and _ are LIKE wildcards; a search box term matches them literally
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _quote_filter_value(value: str) -> str:
    # Values with reserved characters (commas, dots, parentheses) must be double quoted
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class SupabaseGateway:
    """Handle for Supabase table reads, inventory procedures and auth."""

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the gateway with credentials from arguments or environment variables."""
        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.anon_key = anon_key or os.getenv("SUPABASE_ANON_KEY")

        if not self.url or not self.anon_key:
            raise ValueError(
                "Supabase env vars missing. Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )

        self.timeout = timeout or float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))
        self.rest_url = f"{self.url}/rest/v1"
        self.auth_url = f"{self.url}/auth/v1"

        self.access_token: Optional[str] = None
        self.user_email: Optional[str] = None

    # --- Transport ---

    @property
    def headers(self) -> Dict[str, str]:
        token = self.access_token or self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        headers = self.headers
        if extra_headers:
            headers.update(extra_headers)

        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Request to {url} failed: {e}")
            raise GatewayError(f"Could not reach the inventory backend: {e}") from e

        if not response.ok:
            message = _error_message(response)
            logger.error(f"❌ {method} {url} returned {response.status_code}: {message}")
            raise GatewayError(message, status_code=response.status_code)

        return response

    # --- Table reads ---

    def build_params(
        self,
        columns: str = "*",
        eq: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        search_columns: Optional[List[str]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
    ) -> Dict[str, str]:
        """
        Build PostgREST query parameters.

        Args:
            columns: Column projection, may embed relations (``categories(name)``)
            eq: Equality filters; None values are skipped
            search: Case-insensitive substring matched against ``search_columns``
            search_columns: Columns OR-ed together for the search
            order: Sort column
            ascending: Sort direction

        Returns:
            Dict of query string parameters
        """
        params = {"select": columns}

        for column, value in (eq or {}).items():
            if value is None or value == "":
                continue
            params[column] = f"eq.{value}"

        term = (search or "").strip()
        if term and search_columns:
            pattern = _quote_filter_value(f"*{_escape_like(term)}*")
            clauses = ",".join(f"{column}.ilike.{pattern}" for column in search_columns)
            params["or"] = f"({clauses})"

        if order:
            direction = "asc" if ascending else "desc"
            params["order"] = f"{order}.{direction}"

        return params

    def select(
        self,
        table: str,
        columns: str = "*",
        eq: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        search_columns: Optional[List[str]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        count: bool = False,
    ) -> RowPage:
        """
        Read rows from a table.

        Args:
            table: Table name
            columns: Column projection
            eq: Equality filters
            search: Case-insensitive substring search term
            search_columns: Columns the search term is matched against
            order: Sort column
            ascending: Sort direction
            offset: First row to return
            limit: Maximum number of rows
            count: Request the exact total row count

        Returns:
            RowPage with the rows and, when requested, the total count
        """
        params = self.build_params(columns, eq, search, search_columns, order, ascending)

        extra_headers = {}
        if offset is not None or limit is not None:
            start = offset or 0
            end = start + (limit or MAX_ROWS_PER_REQUEST) - 1
            extra_headers["Range-Unit"] = "items"
            extra_headers["Range"] = f"{start}-{end}"
        if count:
            extra_headers["Prefer"] = "count=exact"

        response = self._request(
            "GET", f"{self.rest_url}/{table}", params=params, extra_headers=extra_headers
        )
        rows = response.json() or []
        total = _parse_total_count(response.headers.get("Content-Range")) if count else None
        return RowPage(rows=rows, total_count=total)

    def select_all(
        self,
        table: str,
        columns: str = "*",
        eq: Optional[Dict[str, Any]] = None,
        search: Optional[str] = None,
        search_columns: Optional[List[str]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        page_size: int = MAX_ROWS_PER_REQUEST,
    ) -> List[Dict[str, Any]]:
        """
        Read every row matching the filters, following pages until one comes back empty.

        Returns:
            List of row dicts
        """
        all_rows = []
        offset = 0

        # Loop to handle pagination
        while True:
            try:
                page = self.select(
                    table,
                    columns=columns,
                    eq=eq,
                    search=search,
                    search_columns=search_columns,
                    order=order,
                    ascending=ascending,
                    offset=offset,
                    limit=page_size,
                )
            except GatewayError as e:
                if e.status_code == 416:
                    break  # Offset past the last row
                raise
            if not page.rows:
                break  # No more pages

            all_rows.extend(page.rows)
            # The server may cap a page below page_size, so advance by what came back
            offset += len(page.rows)

        return all_rows

    def get_row(self, table: str, key: Any, columns: str = "*") -> Optional[Dict[str, Any]]:
        """
        Read a single row by its id.

        Returns:
            The row dict, or None when no row has that id
        """
        page = self.select(table, columns=columns, eq={"id": key}, limit=1, offset=0)
        return page.rows[0] if page.rows else None

    def get_item_quantity(self, item_id: str) -> Optional[int]:
        """Fresh read of an item's quantity on hand; None if the item is gone."""
        row = self.get_row(ITEMS_TABLE, item_id, columns="qty_on_hand")
        if row is None or row.get("qty_on_hand") is None:
            return None
        return int(row["qty_on_hand"])

    # --- Remote procedures ---

    def call_rpc(self, name: str, params: Dict[str, Any]) -> Any:
        """
        Invoke a remote procedure.

        Args:
            name: Procedure name
            params: Named arguments

        Returns:
            The decoded JSON result, or None for an empty body
        """
        response = self._request("POST", f"{self.rest_url}/rpc/{name}", json=params)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def add_inventory(self, item_id: str, qty: int, reason: str) -> Any:
        """Increase an item's quantity; the backend appends one transaction record."""
        logger.info(f"➕ add_inventory item={item_id} qty={qty} reason={reason}")
        return self.call_rpc(
            ADD_INVENTORY_RPC, {"p_item_id": item_id, "p_qty": qty, "p_reason": reason}
        )

    def deduct_inventory(self, item_id: str, qty: int, reason: str) -> Any:
        """Decrease an item's quantity; the backend appends one transaction record."""
        logger.info(f"➖ deduct_inventory item={item_id} qty={qty} reason={reason}")
        return self.call_rpc(
            DEDUCT_INVENTORY_RPC, {"p_item_id": item_id, "p_qty": qty, "p_reason": reason}
        )

    # --- Session ---

    @property
    def has_session(self) -> bool:
        return bool(self.access_token)

    def send_login_code(self, email: str) -> None:
        """Ask the backend to email a one-time login code."""
        self._request("POST", f"{self.auth_url}/otp", json={"email": email})
        logger.info(f"📧 Login code sent to {email}")

    def verify_login_code(self, email: str, code: str) -> Dict[str, Any]:
        """
        Exchange an emailed one-time code for a session.

        Returns:
            The session payload (access_token, refresh_token, user)
        """
        response = self._request(
            "POST",
            f"{self.auth_url}/verify",
            json={"type": "email", "email": email, "token": code},
        )
        session = response.json()
        if not session.get("access_token"):
            raise GatewayError("Login failed: no session returned")

        self.access_token = session["access_token"]
        self.user_email = (session.get("user") or {}).get("email") or email
        logger.info(f"🔑 Signed in as {self.user_email}")
        return session

    def sign_out(self) -> None:
        """End the session remotely and forget the local token."""
        if self.access_token:
            try:
                self._request("POST", f"{self.auth_url}/logout")
            finally:
                self.access_token = None
                self.user_email = None
        logger.info("👋 Signed out")
