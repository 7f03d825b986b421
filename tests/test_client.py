import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

import requests

from tests._test_path import SRC  # noqa: F401

from flagbooth.api.client import CampaignClient
from flagbooth.app.config import AppConfig
from flagbooth.app.storage import LocalStore


def _response(status=200, payload=None):
    res = mock.Mock()
    res.status_code = status
    res.ok = 200 <= status < 300
    if isinstance(payload, Exception):
        res.json.side_effect = payload
    else:
        res.json.return_value = payload if payload is not None else {}
    return res


class ClientTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = LocalStore(Path(self._tmp.name) / "store.json")
        self.http = mock.Mock()
        self.client = CampaignClient(AppConfig(api_base="http://api.test/api"), self.store, session=self.http)

    def tearDown(self):
        self._tmp.cleanup()


class TestCheckin(ClientTestCase):
    def test_success_returns_offer(self):
        self.http.post.return_value = _response(200, {"success": True, "offer": {"code": "FLAG10"}})
        result = self.client.checkin("a@b.c", "Sam", "west-end", "portrait")

        self.assertTrue(result.success)
        self.assertFalse(result.queued)
        self.assertEqual(result.offer, {"code": "FLAG10"})
        args, kwargs = self.http.post.call_args
        self.assertEqual(args[0], "http://api.test/api/checkin")
        self.assertEqual(
            kwargs["json"],
            {"email": "a@b.c", "firstName": "Sam", "locationId": "west-end", "format": "portrait"},
        )
        self.assertEqual(kwargs["timeout"], 10.0)
        self.assertEqual(self.client.cached_progress().visited, ["west-end"])
        self.assertEqual(self.client.cached_visitor(), {"email": "a@b.c", "firstName": "Sam"})

    def test_duplicate_checkin_counts_once(self):
        self.http.post.return_value = _response(409, {"error": "Already checked in"})
        self.client.checkin("a@b.c", "Sam", "west-end", "square")
        result = self.client.checkin("a@b.c", "Sam", "west-end", "square")

        self.assertTrue(result.success)
        self.assertFalse(result.queued)
        self.assertEqual(self.client.cached_progress().visited, ["west-end"])
        self.assertEqual(self.client.queued_checkins(), [])

    def test_network_error_queues(self):
        self.http.post.side_effect = requests.ConnectionError("offline")
        result = self.client.checkin("a@b.c", "Sam", "west-end", "square")

        self.assertTrue(result.success)
        self.assertTrue(result.queued)
        self.assertEqual(len(self.client.queued_checkins()), 1)
        self.assertEqual(self.client.cached_progress().count, 1)

    def test_server_error_queues(self):
        self.http.post.return_value = _response(500)
        result = self.client.checkin("a@b.c", "Sam", "west-end", "square")
        self.assertTrue(result.queued)
        self.assertEqual(self.client.queued_checkins()[0]["locationId"], "west-end")

    def test_knockout_phase_is_sent_and_recorded(self):
        self.http.post.return_value = _response(200, {"success": True})
        self.client.checkin("a@b.c", "Sam", "piedmont-park", "story", phase="round_of_16")

        self.assertEqual(self.http.post.call_args.kwargs["json"]["phase"], "round_of_16")
        self.assertEqual(
            self.client.cached_knockout_progress(),
            [{"location_id": "piedmont-park", "phase": "round_of_16"}],
        )

    def test_group_stage_phase_is_not_sent(self):
        self.http.post.return_value = _response(200, {"success": True})
        self.client.checkin("a@b.c", "Sam", "west-end", "story", phase="group_stage")
        self.assertNotIn("phase", self.http.post.call_args.kwargs["json"])
        self.assertEqual(self.client.cached_knockout_progress(), [])


class TestRetryQueue(ClientTestCase):
    def test_flush_keeps_failures(self):
        self.http.post.side_effect = requests.ConnectionError("offline")
        self.client.checkin("a@b.c", "Sam", "west-end", "square")
        self.client.checkin("a@b.c", "Sam", "piedmont-park", "square")

        self.http.post.side_effect = [_response(200), _response(503)]
        self.assertEqual(self.client.flush_queue(), 1)
        self.assertEqual(self.client.queued_checkins()[0]["locationId"], "piedmont-park")

        self.http.post.side_effect = [_response(409)]
        self.assertEqual(self.client.flush_queue(), 0)

    def test_checkin_queued_during_flush_is_kept(self):
        self.http.post.side_effect = requests.ConnectionError("offline")
        self.client.checkin("a@b.c", "Sam", "west-end", "square")

        replay_started = threading.Event()
        release_replay = threading.Event()

        def post(url, json=None, timeout=None):
            if json["locationId"] == "west-end":
                replay_started.set()
                release_replay.wait(5)
                return _response(200)
            raise requests.ConnectionError("offline")

        self.http.post.side_effect = post
        remaining = []
        flusher = threading.Thread(target=lambda: remaining.append(self.client.flush_queue()))
        flusher.start()
        self.assertTrue(replay_started.wait(5))

        result = self.client.checkin("a@b.c", "Sam", "piedmont-park", "square")
        self.assertTrue(result.queued)
        release_replay.set()
        flusher.join(5)

        self.assertEqual(remaining, [1])
        self.assertEqual([e["locationId"] for e in self.client.queued_checkins()], ["piedmont-park"])
        self.assertEqual(self.client.cached_progress().visited, ["west-end", "piedmont-park"])

    def test_flush_drops_only_one_copy_of_a_repeated_entry(self):
        self.http.post.side_effect = requests.ConnectionError("offline")
        self.client.checkin("a@b.c", "Sam", "west-end", "square")
        self.client.checkin("a@b.c", "Sam", "west-end", "square")
        self.assertEqual(len(self.client.queued_checkins()), 2)

        self.http.post.side_effect = [_response(200), requests.ConnectionError("offline")]
        self.assertEqual(self.client.flush_queue(), 1)

    def test_flush_empty_queue_does_nothing(self):
        self.assertEqual(self.client.flush_queue(), 0)
        self.http.post.assert_not_called()


class TestReads(ClientTestCase):
    def test_progress_merges_server_and_local(self):
        self.http.post.side_effect = requests.ConnectionError("offline")
        self.client.checkin("a@b.c", "Sam", "west-end", "square")

        self.http.get.return_value = _response(200, {"visited": ["piedmont-park"], "total": 16})
        progress = self.client.fetch_progress("a@b.c")
        self.assertEqual(progress.visited, ["piedmont-park", "west-end"])
        self.assertEqual(progress.total, 16)
        self.assertFalse(progress.complete)
        self.assertEqual(self.http.get.call_args.kwargs["params"], {"email": "a@b.c"})

    def test_progress_offline_uses_cache(self):
        self.store.set("ctf_progress", {"visited": ["west-end"]})
        self.http.get.side_effect = requests.Timeout("slow")
        self.assertEqual(self.client.fetch_progress("a@b.c").visited, ["west-end"])

    def test_config_cached_for_offline_use(self):
        overrides = [{"location_id": "west-end", "country": "Brazil"}]
        self.http.get.return_value = _response(200, {"phase": "quarter_final", "overrides": overrides})
        cfg = self.client.fetch_config()
        self.assertEqual(cfg.phase, "quarter_final")

        self.http.get.side_effect = requests.ConnectionError("offline")
        cached = self.client.fetch_config()
        self.assertEqual(cached.phase, "quarter_final")
        self.assertEqual(cached.overrides, overrides)

    def test_config_defaults_to_group_stage(self):
        self.http.get.side_effect = requests.ConnectionError("offline")
        self.assertEqual(self.client.fetch_config().phase, "group_stage")

    def test_leaderboard_offline_is_empty(self):
        self.http.get.side_effect = requests.ConnectionError("offline")
        self.assertEqual(self.client.fetch_leaderboard(), {"leaders": [], "locationStats": []})


class TestUploadAndSubmit(ClientTestCase):
    def test_upload_photo(self):
        self.http.post.return_value = _response(200, {"photoUrl": "https://cdn.test/p.jpg"})
        result = self.client.upload_photo("a@b.c", "west-end", "data:image/jpeg;base64,AAAA")
        self.assertTrue(result.success)
        self.assertEqual(result.photo_url, "https://cdn.test/p.jpg")
        self.assertEqual(self.http.post.call_args.kwargs["json"]["imageData"], "data:image/jpeg;base64,AAAA")

    def test_upload_failure(self):
        self.http.post.return_value = _response(413)
        self.assertFalse(self.client.upload_photo("a@b.c", "west-end", "x").success)

    def test_submit(self):
        self.http.post.return_value = _response(200, {"submissionId": 7})
        self.assertEqual(self.client.submit_for_review("a@b.c").submission_id, 7)

        self.http.post.return_value = _response(400, {"error": "Not all locations captured"})
        result = self.client.submit_for_review("a@b.c")
        self.assertFalse(result.success)
        self.assertEqual(result.error, "Not all locations captured")

        self.http.post.side_effect = requests.ConnectionError("offline")
        self.assertEqual(self.client.submit_for_review("a@b.c").error, "Network error")


class TestMalformedResponses(ClientTestCase):
    def test_non_object_bodies_fall_back(self):
        self.store.set("ctf_progress", {"visited": ["west-end"]})
        self.store.set("ctf_config", {"phase": "semifinal", "overrides": []})
        self.http.get.return_value = _response(200, ["not", "an", "object"])

        self.assertEqual(self.client.fetch_progress("a@b.c").visited, ["west-end"])
        self.assertEqual(self.client.fetch_config().phase, "semifinal")
        self.assertEqual(self.client.fetch_leaderboard(), {"leaders": [], "locationStats": []})

    def test_non_object_bodies_on_posts(self):
        self.http.post.return_value = _response(200, [1, 2])
        result = self.client.checkin("a@b.c", "Sam", "west-end", "square")
        self.assertTrue(result.success)
        self.assertIsNone(result.offer)

        self.assertFalse(self.client.upload_photo("a@b.c", "west-end", "x").success)
        self.assertEqual(self.client.submit_for_review("a@b.c").error, "Unexpected response from server")
