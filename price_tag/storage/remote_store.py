"""
Cloud store for label designs

Talks to a Supabase project over its REST endpoints: GoTrue for the signed-in
user and PostgREST for the ``projects`` table. Each row stores one serialized
design in its ``data`` column and is owned by exactly one user.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx
from pydantic import BaseModel

from price_tag.config.settings import AppConfig
from price_tag.errors import NotAuthenticated, ParseFailure, RecordNotFound, StorageFailure
from price_tag.models.design import DesignRecord, parse_design_payload, utc_now

log = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"


class Principal(BaseModel):
    """Signed-in cloud user"""
    id: str
    email: Optional[str] = None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_description") or body.get("msg") or body)
    return str(body)


class RemoteStore:
    """
    Designs stored in the cloud, scoped to the signed-in user.

    Every call resolves the current user first; without a session it raises
    NotAuthenticated so callers can carry on local-only.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self._clock = clock
        self._owns_client = False

    @classmethod
    def from_config(cls, config: AppConfig, access_token: Optional[str] = None) -> Optional["RemoteStore"]:
        """Remote store for ``config``, or None when the cloud is not configured"""
        if not config.remote_configured:
            return None
        store = cls(
            httpx.AsyncClient(timeout=config.http_timeout_s),
            config.supabase_url,
            config.supabase_anon_key,
            access_token=access_token or config.access_token,
        )
        store._owns_client = True
        return store

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "RemoteStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        request_headers = {"apikey": self.api_key}
        if authenticated:
            request_headers["Authorization"] = f"Bearer {self.access_token}"
        request_headers.update(headers or {})
        try:
            response = await self.client.request(
                method, f"{self.base_url}{path}", headers=request_headers, **kwargs
            )
        except httpx.HTTPError as e:
            raise StorageFailure(f"Cloud request failed: {e}", store="remote") from e
        if response.status_code in (401, 403):
            raise NotAuthenticated(f"Cloud session rejected: {_error_message(response)}")
        if response.is_error:
            raise StorageFailure(
                f"Cloud store error {response.status_code}: {_error_message(response)}",
                store="remote",
                status_code=response.status_code,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise StorageFailure(f"Cloud store sent invalid JSON: {e}", store="remote") from e

    # Auth

    async def current_principal(self) -> Principal:
        if not self.access_token:
            raise NotAuthenticated()
        user = self._json(await self._request("GET", "/auth/v1/user"))
        if not isinstance(user, dict) or not user.get("id"):
            raise NotAuthenticated("Cloud session has no user")
        return Principal(id=user["id"], email=user.get("email"))

    async def sign_in(self, email: str, password: str) -> Principal:
        """Password sign-in; keeps the session token for later calls"""
        try:
            response = await self._request(
                "POST",
                "/auth/v1/token",
                authenticated=False,
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except StorageFailure as e:
            if e.status_code in (400, 422):
                raise NotAuthenticated("Invalid login credentials") from e
            raise
        body = self._json(response)
        self.access_token = body.get("access_token")
        user = body.get("user") or {}
        if not self.access_token or not user.get("id"):
            raise NotAuthenticated("Sign-in returned no session")
        log.info("Signed in to cloud store as %s", user.get("email") or user["id"])
        return Principal(id=user["id"], email=user.get("email"))

    def sign_out(self) -> None:
        self.access_token = None

    # Designs

    async def put(self, record: DesignRecord) -> DesignRecord:
        """Upsert a design keyed by its id; the backend keeps the last write"""
        principal = await self.current_principal()
        now = self._clock()
        label_id = record.id or f"design_{int(now.timestamp() * 1000)}"
        stored = record.model_copy(update={"id": label_id}).touch(now)
        row = {
            "user_id": principal.id,
            "label_id": label_id,
            "name": stored.display_name,
            "data": stored.to_json(),
            "created_at": stored.created_at.isoformat(),
            "updated_at": now.isoformat(),
        }
        await self._request(
            "POST",
            f"/rest/v1/{PROJECTS_TABLE}",
            params={"on_conflict": "label_id"},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=row,
        )
        return stored

    async def list(self) -> List[DesignRecord]:
        """The signed-in user's designs, newest first; unreadable rows are skipped"""
        principal = await self.current_principal()
        rows = self._json(await self._request(
            "GET",
            f"/rest/v1/{PROJECTS_TABLE}",
            params={
                "select": "*",
                "user_id": f"eq.{principal.id}",
                "order": "updated_at.desc",
            },
        ))
        designs = []
        for row in rows or []:
            try:
                designs.append(self._row_to_design(row, principal))
            except ParseFailure as e:
                log.warning("Skipping cloud design: %s", e)
        return designs

    async def get(self, record_id: str) -> Optional[DesignRecord]:
        principal = await self.current_principal()
        rows = self._json(await self._request(
            "GET",
            f"/rest/v1/{PROJECTS_TABLE}",
            params={
                "select": "*",
                "label_id": f"eq.{record_id}",
                "user_id": f"eq.{principal.id}",
            },
        ))
        if not rows:
            return None
        return self._row_to_design(rows[0], principal)

    async def delete(self, record_id: str) -> bool:
        principal = await self.current_principal()
        rows = self._json(await self._request(
            "DELETE",
            f"/rest/v1/{PROJECTS_TABLE}",
            params={"label_id": f"eq.{record_id}", "user_id": f"eq.{principal.id}"},
            headers={"Prefer": "return=representation"},
        ))
        return bool(rows)

    async def update(self, record_id: str, partial: Mapping[str, Any]) -> DesignRecord:
        existing = await self.get(record_id)
        if existing is None:
            raise RecordNotFound(record_id)
        return await self.put(existing.apply_partial(partial))

    def _row_to_design(self, row: Any, principal: Principal) -> DesignRecord:
        if not isinstance(row, dict):
            raise ParseFailure(f"unexpected row {row!r}")
        label_id = row.get("label_id")
        if row.get("user_id") != principal.id:
            raise ParseFailure(f"row {label_id} belongs to another user")
        data = row.get("data")
        try:
            payload = json.loads(data) if isinstance(data, str) else data
        except ValueError as e:
            raise ParseFailure(f"row {label_id} has invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ParseFailure(f"row {label_id} has no design payload")
        record = parse_design_payload(payload)
        # Row columns are authoritative over the embedded copy
        overrides = {
            "labelId": label_id or record.id,
            "labelName": row.get("name") or record.name,
            "createdAt": row.get("created_at") or record.created_at,
            "updatedAt": row.get("updated_at") or record.updated_at,
        }
        return DesignRecord.from_payload({**record.to_payload(), **overrides})
