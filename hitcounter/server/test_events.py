import unittest
from datetime import datetime, timedelta, timezone

from hitcounter.server.events import RawEvent, normalize_event, utc_iso


class TestNormalizeEvent(unittest.TestCase):
    def test_server_time_replaces_client_date(self):
        now = datetime(2025, 9, 25, 8, 30, 1, 123456, tzinfo=timezone.utc)
        raw = RawEvent(project="site", date="1999-01-01", client_ip="8.8.8.8")
        event = normalize_event(raw, now=now)
        self.assertEqual(event.timestamp, "2025-09-25T08:30:01.123Z")
        self.assertNotIn("date", event.to_document())

    def test_masked_octets_setting(self):
        raw = RawEvent(project="site", client_ip="8.8.4.4")
        self.assertEqual(normalize_event(raw, ipv4_masked_octets=1).anonymized_ip, "8.8.4.x")
        self.assertEqual(normalize_event(raw).anonymized_ip, "8.8.x.x")

    def test_document_keys(self):
        doc = normalize_event(RawEvent(project="site")).to_document()
        self.assertEqual(set(doc), {"project", "page", "userAgent", "anonymizedIP", "referrer", "timestamp"})
        self.assertIsNone(doc["page"])
        self.assertIsNone(doc["userAgent"])

    def test_from_request_prefers_body(self):
        raw = RawEvent.from_request(
            {"project": "p", "userAgent": "body-ua"},
            client_ip="8.8.8.8",
            header_user_agent="header-ua",
            header_referrer="https://hdr.example/",
        )
        self.assertEqual(raw.user_agent, "body-ua")
        self.assertEqual(raw.referrer, "https://hdr.example/")

    def test_utc_iso_converts_offsets(self):
        dt = datetime(2025, 1, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        self.assertEqual(utc_iso(dt), "2025-01-01T00:00:00.000Z")


if __name__ == "__main__":
    unittest.main()
