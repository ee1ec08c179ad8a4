"""End-to-end tests of the gateway HTTP surface."""
import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.proxy import to_page_response
from app.core.config import Settings
from app.main import create_app
from app.services.worker import build_worker

from conftest import ORIGIN

MANIFEST = ["/", "/index.html", "/styles.css"]


@pytest.fixture()
def gateway(session_factory, fake_origin):
    for path in MANIFEST:
        fake_origin.add(f"{ORIGIN}{path}", text=f"shell {path}", headers={"Content-Type": "text/html"})
    test_settings = Settings(
        ORIGIN_URL=ORIGIN,
        STATIC_FILES=MANIFEST,
        CACHE_VERSION="v9",
        PERIODIC_SYNC_INTERVAL_SECONDS=0,
    )
    worker = build_worker(
        test_settings,
        session_factory=session_factory,
        transport=httpx.MockTransport(fake_origin),
    )
    with TestClient(create_app(worker=worker, periodic_sync_interval=0)) as client:
        yield client


def test_health(gateway):
    assert gateway.get("/health").json()["status"] == "healthy"


def test_status_after_startup(gateway):
    body = gateway.get("/_worker/status").json()
    assert body["state"] == "active"
    assert body["controlling"] is True
    assert sorted(body["caches"]) == ["ruralcare-dynamic-v9", "ruralcare-static-v9"]
    assert body["dynamic_cache"] == "ruralcare-dynamic-v9"


def test_precached_shell_served_from_cache(gateway, fake_origin):
    resp = gateway.get("/styles.css")
    assert resp.status_code == 200
    assert resp.text == "shell /styles.css"
    assert resp.headers["X-Served-From"] == "cache"
    assert fake_origin.calls_to(f"{ORIGIN}/styles.css") == 1  # install only


def test_api_call_network_then_offline(gateway, fake_origin):
    fake_origin.add(f"{ORIGIN}/api/pharmacy", json={"medicines": [{"name": "ORS"}]})
    first = gateway.get("/api/pharmacy")
    assert first.headers["X-Served-From"] == "network"

    fake_origin.offline = True
    second = gateway.get("/api/pharmacy")
    assert second.headers["X-Served-From"] == "cache"
    assert second.json() == {"medicines": [{"name": "ORS"}]}


def test_api_call_offline_uncached_gets_fallback(gateway, fake_origin):
    fake_origin.offline = True
    resp = gateway.get("/api/health-records")
    assert resp.status_code == 200
    assert resp.headers["X-Served-From"] == "fallback"
    assert resp.json() == {"records": []}


def test_offline_navigation_gets_app_shell(gateway, fake_origin):
    fake_origin.offline = True
    resp = gateway.get("/video-call", headers={"Sec-Fetch-Mode": "navigate"})
    assert resp.status_code == 200
    assert resp.headers["X-Served-From"] == "offline-page"
    assert resp.text == "shell /index.html"


def test_offline_sub_resource_gets_503(gateway, fake_origin):
    fake_origin.offline = True
    resp = gateway.get("/images/doctor.png")
    assert resp.status_code == 503
    assert resp.text == "Offline - Content not available"


def test_post_passes_through_without_caching(gateway, fake_origin):
    fake_origin.add(f"{ORIGIN}/api/health-records", json={"saved": True})
    resp = gateway.post("/api/health-records", json={"bp": "120/80"})
    assert resp.json() == {"saved": True}
    assert resp.headers["X-Served-From"] == "passthrough"
    assert ("POST", f"{ORIGIN}/api/health-records") in fake_origin.calls

    fake_origin.offline = True
    # Nothing was cached by the POST, so the GET falls back to canned data
    assert gateway.get("/api/health-records").headers["X-Served-From"] == "fallback"


def test_post_while_offline_is_bad_gateway(gateway, fake_origin):
    fake_origin.offline = True
    assert gateway.post("/api/symptoms", json={}).status_code == 502


def test_query_string_is_part_of_identity(gateway, fake_origin):
    fake_origin.add(f"{ORIGIN}/api/pharmacy?q=ors", json={"medicines": [{"name": "ORS"}]})
    gateway.get("/api/pharmacy?q=ors")
    fake_origin.offline = True
    assert gateway.get("/api/pharmacy?q=ors").headers["X-Served-From"] == "cache"
    assert gateway.get("/api/pharmacy?q=zinc").headers["X-Served-From"] == "fallback"


def test_repeated_headers_stay_separate():
    upstream = httpx.Response(200, headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")], text="ok")
    resp = to_page_response(upstream, "network")
    assert [v for k, v in resp.raw_headers if k == b"set-cookie"] == [b"a=1", b"b=2"]


def test_set_cookie_lines_survive_passthrough_and_replay(gateway, fake_origin):
    fake_origin.add(
        f"{ORIGIN}/api/session",
        json={"ok": True},
        headers=[("Set-Cookie", "sid=abc; Path=/"), ("Set-Cookie", "lang=hi; Path=/")],
    )
    online = gateway.get("/api/session")
    fake_origin.offline = True
    offline = gateway.get("/api/session")

    assert offline.headers["X-Served-From"] == "cache"
    for resp in (online, offline):
        assert resp.headers.get_list("set-cookie") == ["sid=abc; Path=/", "lang=hi; Path=/"]


def test_encoded_slash_reaches_origin_unchanged(gateway, fake_origin):
    fake_origin.add(f"{ORIGIN}/api/records/a%2Fb", json={"id": "a/b"})
    resp = gateway.get("/api/records/a%2Fb")
    assert resp.json() == {"id": "a/b"}
    assert fake_origin.calls_to(f"{ORIGIN}/api/records/a%2Fb") == 1


def test_openapi_json_belongs_to_origin(gateway, fake_origin):
    fake_origin.add(f"{ORIGIN}/openapi.json", json={"origin": True})
    assert gateway.get("/openapi.json").json() == {"origin": True}
    assert "openapi" in gateway.get("/_worker/openapi.json").json()


def test_sync_endpoint(gateway):
    body = gateway.post("/_worker/sync", json={"tag": "background-sync"}).json()
    assert body["handled"] is True
    assert body["total"] == 3
    assert body["skipped"] == 3


def test_periodic_sync_endpoint_ignores_unknown_tag(gateway):
    assert gateway.post("/_worker/periodic-sync", json={"tag": "news"}).json() == {"handled": False, "tag": "news"}
    assert gateway.post("/_worker/periodic-sync", json={}).json()["handled"] is True


def test_skip_waiting_message(gateway):
    body = gateway.post("/_worker/message", json={"type": "SKIP_WAITING"}).json()
    assert body == {"handled": True, "state": "active"}


def test_push_then_click(gateway):
    notification = gateway.post(
        "/_worker/push",
        json={"title": "Consultation starting", "body": "Join now", "primaryKey": 3},
    ).json()
    assert notification["data"]["primary_key"] == 3
    assert [a["action"] for a in notification["actions"]] == ["explore", "close"]

    resp = gateway.post(f"/_worker/notifications/{notification['id']}/click", json={"action": "explore"})
    assert resp.json() == {"open_url": "/"}


def test_click_unknown_notification(gateway):
    resp = gateway.post("/_worker/notifications/nope/click", json={"action": "explore"})
    assert resp.status_code == 404
