import asyncio
import re
import uuid
from datetime import UTC, datetime
from urllib.parse import urlsplit

from fastapi.testclient import TestClient

from api.infra.database import Database
from api.v1.core.exceptions import QueueFullError, StorageError
from api.v1.newsletter.models import Newsletter
from api.v1.newsletter.service import NewsletterService
from tests.helpers import wait_until_sync

TOKEN_RE = re.compile(r"token=([0-9a-f]+)")
LINK_RE = re.compile(r"http://\S+/newsletter/confirm\?token=[0-9a-f]+")
GIFT_RE = re.compile(r"http://test(/v1/gifts/[a-z0-9-]+\.svg)")


def _sent(client: TestClient) -> list:
    return client.app.state.email_sender.sent


def _seed_newsletters(settings, titles: list[str]) -> None:
    async def seed():
        database = Database(settings)
        try:
            await database.create_all()
            async with database.SessionLocal() as session:
                now = datetime.now(UTC)
                for title in titles:
                    session.add(
                        Newsletter(
                            title=title,
                            summary="",
                            body=f"{title} body",
                            created_at=now,
                            updated_at=now,
                        )
                    )
                await session.commit()
        finally:
            await database.close()

    asyncio.run(seed())


class TestSignup:
    def test_signup_redirects_and_sends_confirmation(self, client: TestClient):
        response = client.post("/v1/newsletter/signup", json={"email": "A@B.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["data"] == {"redirect": "/newsletter/thanks"}

        wait_until_sync(lambda: len(_sent(client)) == 1)
        email = _sent(client)[0]
        assert email.to == "a@b.com"
        assert TOKEN_RE.search(email.text)

    def test_invalid_email_is_a_400(self, client: TestClient):
        response = client.post("/v1/newsletter/signup", json={"email": "not-an-email"})

        assert response.status_code == 400
        data = response.json()
        assert data["ok"] is False
        assert data["error"]["message"] == "email is invalid"
        assert _sent(client) == []

    def test_missing_email_field_is_rejected(self, client: TestClient):
        response = client.post("/v1/newsletter/signup", json={})

        assert response.status_code == 422

    def test_queue_failure_is_a_502(self, client: TestClient, monkeypatch):
        async def full(message):
            raise QueueFullError("job queue is full")

        monkeypatch.setattr(client.app.state.job_queue, "send", full)

        response = client.post("/v1/newsletter/signup", json={"email": "a@b.com"})

        assert response.status_code == 502
        assert response.json()["error"]["message"] == (
            "error signing up, refresh to try again"
        )

    def test_storage_failure_is_a_502(self, client: TestClient, monkeypatch):
        async def broken(self, session, email):
            raise StorageError("error signing up for newsletter")

        monkeypatch.setattr(NewsletterService, "signup_for_newsletter", broken)

        response = client.post("/v1/newsletter/signup", json={"email": "a@b.com"})

        assert response.status_code == 502
        assert _sent(client) == []

    def test_signup_after_confirming_sends_nothing(self, client: TestClient):
        client.post("/v1/newsletter/signup", json={"email": "a@b.com"})
        wait_until_sync(lambda: len(_sent(client)) == 1)
        token = TOKEN_RE.search(_sent(client)[0].text).group(1)
        client.post("/v1/newsletter/confirm", json={"token": token})
        wait_until_sync(lambda: len(_sent(client)) == 2)

        response = client.post("/v1/newsletter/signup", json={"email": "a@b.com"})

        assert response.status_code == 200
        assert response.json()["data"] == {"redirect": "/newsletter/thanks"}
        wait_until_sync(lambda: client.app.state.job_queue.stats().queue_depth == 0)
        assert len(_sent(client)) == 2


class TestConfirm:
    def test_confirm_page_echoes_token(self, client: TestClient):
        response = client.get("/v1/newsletter/confirm", params={"token": "abc"})

        assert response.status_code == 200
        assert response.json()["data"] == {"token": "abc"}

    def test_emailed_link_opens_the_confirm_page(self, client: TestClient):
        client.post("/v1/newsletter/signup", json={"email": "a@b.com"})
        wait_until_sync(lambda: len(_sent(client)) == 1)

        link = urlsplit(LINK_RE.search(_sent(client)[0].text).group(0))
        assert f"{link.scheme}://{link.netloc}" == "http://test"

        page = client.get(f"{link.path}?{link.query}")

        assert page.status_code == 200
        token = page.json()["data"]["token"]
        assert token

        response = client.post("/v1/newsletter/confirm", json={"token": token})
        assert response.status_code == 200

    def test_bad_token_is_a_400(self, client: TestClient):
        response = client.post("/v1/newsletter/confirm", json={"token": "nope"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "bad token"

    def test_full_signup_confirm_and_gift_flow(self, client: TestClient):
        client.post("/v1/newsletter/signup", json={"email": "reader@example.com"})
        wait_until_sync(lambda: len(_sent(client)) == 1)
        token = TOKEN_RE.search(_sent(client)[0].text).group(1)

        response = client.post("/v1/newsletter/confirm", json={"token": token})

        assert response.status_code == 200
        assert response.json()["data"] == {"redirect": "/newsletter/confirmed"}

        wait_until_sync(lambda: len(_sent(client)) == 2)
        welcome = _sent(client)[1]
        assert welcome.to == "reader@example.com"
        assert welcome.tag == "newsletter-welcome"

        gift_path = GIFT_RE.search(welcome.text).group(1)
        assert gift_path.startswith("/v1/gifts/reader-")
        gift = client.get(gift_path)
        assert gift.status_code == 200
        assert gift.headers["content-type"].startswith("image/svg+xml")
        assert gift.text.startswith("<svg")

        # The token was used up
        again = client.post("/v1/newsletter/confirm", json={"token": token})
        assert again.status_code == 400

    def test_queue_failure_after_confirm_is_a_502(
        self, client: TestClient, monkeypatch
    ):
        client.post("/v1/newsletter/signup", json={"email": "a@b.com"})
        wait_until_sync(lambda: len(_sent(client)) == 1)
        token = TOKEN_RE.search(_sent(client)[0].text).group(1)

        async def closed(message):
            raise QueueFullError("job queue is full")

        monkeypatch.setattr(client.app.state.job_queue, "send", closed)

        response = client.post("/v1/newsletter/confirm", json={"token": token})

        assert response.status_code == 502


class TestGifts:
    def test_unknown_gift_is_a_404(self, client: TestClient):
        response = client.get("/v1/gifts/nobody-00000000.svg")

        assert response.status_code == 404

    def test_invalid_gift_name_is_a_404(self, client: TestClient):
        response = client.get("/v1/gifts/..%2Fsecret.txt")

        assert response.status_code == 404


class TestNewsletters:
    def test_empty_list(self, client: TestClient):
        response = client.get("/v1/newsletters")

        assert response.status_code == 200
        assert response.json()["data"] == {"newsletters": [], "total": 0}

    def test_list_and_get_by_id(self, client: TestClient, test_settings):
        _seed_newsletters(test_settings, ["Issue 1", "Issue 2"])

        listing = client.get("/v1/newsletters").json()["data"]
        assert listing["total"] == 2

        newsletter_id = listing["newsletters"][0]["id"]
        response = client.get("/v1/newsletters", params={"id": newsletter_id})

        assert response.status_code == 200
        assert response.json()["data"]["id"] == newsletter_id

    def test_malformed_id_is_a_404(self, client: TestClient):
        response = client.get("/v1/newsletters", params={"id": "42"})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Newsletter not found"

    def test_unknown_id_is_a_404(self, client: TestClient):
        response = client.get("/v1/newsletters", params={"id": str(uuid.uuid4())})

        assert response.status_code == 404
