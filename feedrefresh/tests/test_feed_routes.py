"""
Tests for the HTTP routes.
"""

import pytest

from feedrefresh.exceptions import HTTPStatusError

from conftest import FEED_URL, START, entries, make_rss


@pytest.fixture
def alice(users):
    return users[0]


@pytest.fixture
def subscribed(client, fetcher, alice):
    """alice subscribed to FEED_URL through the API; returns the feed as listed."""
    fetcher.serve(FEED_URL, make_rss(entries("a", "b", "c")))
    response = client.post(f"/users/{alice}/feeds", json={"url": FEED_URL})
    assert response.status_code == 202

    job = client.get(f"/users/{alice}/subscribe_jobs/{response.json()['id']}").json()
    assert job["state"] == "SUCCESS"
    feeds = client.get(f"/users/{alice}/feeds").json()
    return next(f for f in feeds if f["id"] == job["feed_id"])


class TestHealth:
    """Tests for /health."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data
        assert data["scheduler_running"] is False


class TestFeeds:
    """Tests for /users/{id}/feeds."""

    def test_list_empty(self, client, alice):
        response = client.get(f"/users/{alice}/feeds")
        assert response.status_code == 200
        assert response.json() == []

    def test_unknown_user(self, client):
        response = client.get("/users/999/feeds")
        assert response.status_code == 404

    def test_subscribe(self, subscribed, client, alice):
        assert subscribed["fetch_url"] == FEED_URL
        assert subscribed["unread_entries"] == 3
        assert subscribed["available"] is True

        feeds = client.get(f"/users/{alice}/feeds").json()
        assert [f["id"] for f in feeds] == [subscribed["id"]]

    def test_subscribe_twice_conflicts(self, subscribed, client, alice):
        response = client.post(f"/users/{alice}/feeds", json={"url": FEED_URL})
        assert response.status_code == 409

    def test_subscribe_blocked_url(self, client, alice):
        response = client.post(f"/users/{alice}/feeds", json={"url": "http://10.0.0.1/feed"})
        assert response.status_code == 400
        assert response.json()["kind"] == "blocked_url"

    def test_subscribe_empty_url(self, client, alice):
        response = client.post(f"/users/{alice}/feeds", json={"url": ""})
        assert response.status_code == 422

    def test_unsubscribe(self, subscribed, client, alice):
        response = client.delete(f"/users/{alice}/feeds/{subscribed['id']}")
        assert response.status_code == 200
        assert response.json() == {"success": True, "feed_deleted": True}

    def test_unsubscribe_not_subscribed(self, client, alice):
        response = client.delete(f"/users/{alice}/feeds/12345")
        assert response.status_code == 404


class TestSubscribeJobs:
    """Tests for /users/{id}/subscribe_jobs."""

    def test_subscribe_returns_running_job(self, client, fetcher, alice):
        fetcher.serve(FEED_URL, make_rss(entries("a")))

        response = client.post(f"/users/{alice}/feeds", json={"url": FEED_URL})

        job = response.json()
        assert job["state"] == "RUNNING"
        assert job["feed_id"] is None
        assert job["fetch_url"] == FEED_URL

    def test_subscribe_fetch_failure(self, client, fetcher, alice):
        fetcher.serve(FEED_URL, HTTPStatusError(FEED_URL, 404))

        response = client.post(f"/users/{alice}/feeds", json={"url": FEED_URL})
        assert response.status_code == 202

        job = client.get(f"/users/{alice}/subscribe_jobs/{response.json()['id']}").json()
        assert job["state"] == "ERROR"
        assert job["error"] == "http_error"
        assert job["feed_id"] is None
        assert client.get(f"/users/{alice}/feeds").json() == []

    def test_list_jobs(self, subscribed, client, alice):
        jobs = client.get(f"/users/{alice}/subscribe_jobs").json()
        assert [j["feed_id"] for j in jobs] == [subscribed["id"]]

    def test_other_users_job(self, subscribed, client, users):
        alice, bob = users
        job_id = client.get(f"/users/{alice}/subscribe_jobs").json()[0]["id"]

        response = client.get(f"/users/{bob}/subscribe_jobs/{job_id}")
        assert response.status_code == 404

    def test_unknown_job(self, client, alice):
        response = client.get(f"/users/{alice}/subscribe_jobs/999")
        assert response.status_code == 404


class TestRefresh:
    """Tests for POST /users/{id}/feeds/{feed_id}/refresh."""

    def test_background_refresh(self, subscribed, client, fetcher, alice, test_db):
        """The background task runs after the response is sent."""
        fetcher.serve(FEED_URL, make_rss(entries("a", "b", "c", "d")))

        response = client.post(f"/users/{alice}/feeds/{subscribed['id']}/refresh")

        assert response.status_code == 200
        assert response.json() == {"status": "refresh started"}
        assert test_db.get_feed(subscribed["id"]).entry_count == 4

    def test_failed_refresh_visible_in_listing(self, subscribed, client, fetcher, alice):
        """A failing background refresh shows up as backoff on the listed feed."""
        fetcher.serve(FEED_URL, HTTPStatusError(FEED_URL, 503))

        response = client.post(f"/users/{alice}/feeds/{subscribed['id']}/refresh")

        assert response.json() == {"status": "refresh started"}
        feed = client.get(f"/users/{alice}/feeds").json()[0]
        assert feed["fetch_interval_secs"] == 3960
        assert feed["failing_since"] == START.isoformat()
        assert feed["last_fetched"] == subscribed["last_fetched"]
        assert feed["available"] is True

    def test_wait_flag_ignored(self, subscribed, client, alice):
        """Manual refreshes never run inside the request."""
        response = client.post(f"/users/{alice}/feeds/{subscribed['id']}/refresh?wait=true")
        assert response.json() == {"status": "refresh started"}

    def test_refresh_not_subscribed(self, client, users):
        _, bob = users
        response = client.post(f"/users/{bob}/feeds/1/refresh")
        assert response.status_code == 404


class TestEntries:
    """Tests for entry listings and read state."""

    def test_feed_entries(self, subscribed, client, alice):
        response = client.get(f"/users/{alice}/feeds/{subscribed['id']}/entries")
        assert response.status_code == 200
        assert [e["title"] for e in response.json()] == ["Entry c", "Entry b", "Entry a"]

    def test_invalid_page(self, subscribed, client, alice):
        response = client.get(f"/users/{alice}/entries?page=0")
        assert response.status_code == 422

    def test_mark_read(self, subscribed, client, alice):
        entry_id = client.get(f"/users/{alice}/entries").json()[0]["id"]

        response = client.put(f"/users/{alice}/entries/{entry_id}", json={"read": True})

        assert response.status_code == 200
        assert response.json() == {"unread": {str(subscribed["id"]): 2}}
        assert len(client.get(f"/users/{alice}/entries").json()) == 2
        assert len(client.get(f"/users/{alice}/entries?include_read=true").json()) == 3

    def test_mark_whole_feed_read(self, subscribed, client, alice):
        entry_id = client.get(f"/users/{alice}/entries").json()[0]["id"]

        client.put(f"/users/{alice}/entries/{entry_id}", json={"read": True, "whole_feed": True})

        assert client.get(f"/users/{alice}/unread").json() == {
            "total": 0, "folders": {}, "feeds": {str(subscribed["id"]): 0},
        }

    def test_unknown_entry(self, subscribed, client, alice):
        response = client.put(f"/users/{alice}/entries/9999", json={"read": True})
        assert response.status_code == 404


class TestFolders:
    """Tests for folder routes."""

    def test_move_and_list(self, subscribed, client, alice):
        response = client.put(
            f"/users/{alice}/feeds/{subscribed['id']}/folder", json={"title": "News"}
        )
        assert response.status_code == 200
        folder = response.json()
        assert folder["title"] == "News"
        assert folder["unread_entries"] == 3

        assert client.get(f"/users/{alice}/folders").json() == [folder]
        entries_response = client.get(f"/users/{alice}/folders/{folder['id']}/entries")
        assert len(entries_response.json()) == 3

    def test_move_requires_target(self, subscribed, client, alice):
        response = client.put(f"/users/{alice}/feeds/{subscribed['id']}/folder", json={})
        assert response.status_code == 400

    def test_remove_from_folder(self, subscribed, client, alice):
        client.put(f"/users/{alice}/feeds/{subscribed['id']}/folder", json={"title": "News"})

        response = client.delete(f"/users/{alice}/feeds/{subscribed['id']}/folder")

        assert response.json() == {"success": True, "folder_deleted": True}
        assert client.get(f"/users/{alice}/folders").json() == []

    def test_unknown_folder(self, client, alice):
        response = client.get(f"/users/{alice}/folders/999/entries")
        assert response.status_code == 404
