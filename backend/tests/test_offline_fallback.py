import json

from app.services.offline_fallback import OFFLINE_TEXT, OfflineFallbackProvider, offline_response
from app.services.request_classifier import RequestDescriptor


class TestOfflineFallbackProvider:
    def setup_method(self):
        self.provider = OfflineFallbackProvider()

    def _provide(self, url):
        return self.provider.provide(RequestDescriptor.get(url))

    def test_pharmacy_payload_lists_medicines(self):
        response = self._provide("http://origin.test/api/pharmacy?q=fever")
        assert response.status_code == 200
        medicines = response.json()["medicines"]
        assert len(medicines) > 0
        assert medicines[0]["name"] == "Paracetamol 500mg"

    def test_health_records_payload_is_empty_list(self):
        response = self._provide("http://origin.test/api/health-records")
        assert response.status_code == 200
        assert response.json() == {"records": []}

    def test_symptoms_payload_has_analysis(self):
        analysis = self._provide("http://origin.test/api/symptoms/check").json()["analysis"]
        assert analysis["possibleConditions"]
        assert analysis["recommendedActions"]

    def test_unknown_api_gets_error_envelope(self):
        response = self._provide("http://origin.test/api/consultation")
        assert response.status_code == 503
        assert response.json() == {"error": "Offline", "message": "Service temporarily unavailable"}

    def test_match_uses_path_only(self):
        response = self._provide("http://origin.test/api/doctors?next=pharmacy")
        assert response.status_code == 503

    def test_every_payload_is_json(self):
        for path in ("pharmacy", "health-records", "symptoms", "video"):
            response = self._provide(f"http://origin.test/api/{path}")
            assert response.headers["content-type"].startswith("application/json")
            json.loads(response.content)


def test_offline_response_is_plain_text_503():
    response = offline_response(RequestDescriptor.get("http://origin.test/logo.png"))
    assert response.status_code == 503
    assert response.headers["content-type"] == "text/plain"
    assert response.text == OFFLINE_TEXT
