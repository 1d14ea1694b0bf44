import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from price_tag.models.design import DesignLayout, DesignRecord, FontConfig, LabelSize, LayoutElement, ProductData
from price_tag.storage.local_store import LocalStore
from price_tag.storage.remote_store import RemoteStore

T0 = datetime(2026, 10, 19, 9, 30, 0, tzinfo=timezone.utc)

SUPABASE_URL = "https://demo.supabase.co"


class SteppingClock:
    """Clock that advances by ``step`` on every call"""

    def __init__(self, start=T0, step=timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


def make_design(label_id="label-1", product_name="Oolong tea", **overrides):
    fields = dict(
        id=label_id,
        name=None,
        size=LabelSize(width=60, height=40),
        product=ProductData(
            name=product_name,
            price=39.9,
            brand="Hillside",
            selling_points=["Hand picked", "Light roast"],
            specs={"weight": "250g"},
        ),
        layout=DesignLayout(elements=[
            LayoutElement(id="product_name", type="core", x=10, y=15, text=product_name),
            LayoutElement(id="price", type="core", x=10, y=60, text="¥39.90"),
            LayoutElement(id="selling_point_0", type="selling_point", x=60, y=15, text="Hand picked"),
        ]),
        font_configs={
            "product_name": FontConfig(font_size=18, font_weight=700),
            "price": FontConfig(font_size=24, color="#E53935"),
        },
    )
    fields.update(overrides)
    return DesignRecord(**fields)


class FakeSupabase:
    """In-memory stand-in for the Supabase auth and PostgREST endpoints"""

    def __init__(self, users=None):
        self.users = users if users is not None else {"token-a": "user-a", "token-b": "user-b"}
        self.rows = []
        self.fail_labels = set()
        self.ignore_user_filter = False
        self.requests = []

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        token = request.headers.get("authorization", "")[len("Bearer "):]

        if path == "/auth/v1/token":
            body = json.loads(request.content)
            if body.get("password") != "secret":
                return httpx.Response(400, json={"error_description": "Invalid login credentials"})
            return httpx.Response(200, json={
                "access_token": "token-a",
                "user": {"id": "user-a", "email": body["email"]},
            })

        user_id = self.users.get(token)
        if user_id is None:
            return httpx.Response(401, json={"msg": "invalid JWT"})

        if path == "/auth/v1/user":
            return httpx.Response(200, json={"id": user_id, "email": f"{user_id}@example.com"})

        if path != "/rest/v1/projects":
            return httpx.Response(404, json={"message": "not found"})

        params = request.url.params
        if request.method == "POST":
            row = json.loads(request.content)
            if row["label_id"] in self.fail_labels:
                return httpx.Response(500, json={"message": "insert failed"})
            self.rows = [r for r in self.rows if r["label_id"] != row["label_id"]]
            self.rows.append(row)
            return httpx.Response(201)

        matching = [r for r in self.rows if self._matches(r, params)]
        if request.method == "GET":
            if params.get("order") == "updated_at.desc":
                matching.sort(key=lambda r: r["updated_at"], reverse=True)
            return httpx.Response(200, json=matching)
        if request.method == "DELETE":
            self.rows = [r for r in self.rows if r not in matching]
            return httpx.Response(200, json=matching)
        return httpx.Response(405)

    def _matches(self, row, params):
        for column in ("user_id", "label_id"):
            if column == "user_id" and self.ignore_user_filter:
                continue
            if column in params and row.get(column) != params[column][len("eq."):]:
                return False
        return True


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def store(tmp_path, clock):
    return LocalStore(tmp_path / "data", clock=clock)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


def make_remote(fake, token="token-a", clock=None):
    return RemoteStore(
        fake.client(),
        SUPABASE_URL,
        "anon-key",
        access_token=token,
        clock=clock or SteppingClock(start=T0 + timedelta(days=1)),
    )
