import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from fastapi.testclient import TestClient

from sticker_market.api.server import create_app
from sticker_market.auth.security import create_access_token
from sticker_market.config import Config


SECRET = "api-test-secret"
PNG = b"\x89PNG\r\n\x1a\nbadge"


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        root = Path(self._tmp.name)
        self.cfg = Config(
            DB_DSN=str(root / "api.sqlite"),
            UPLOAD_DIR=str(root / "uploads"),
            AUTH_JWT_SECRET=SECRET,
            AUTH_PASSWORD_ROUNDS=1000,
        )
        self.client = TestClient(create_app(self.cfg))

    def signup(self, name: str, user_id: str, password: str):
        return self.client.post("/signup", json={"name": name, "userId": user_id, "password": password})

    def login(self, user_id: str, password: str):
        return self.client.post("/login", json={"userId": user_id, "password": password})

    def auth(self, user_id: str, password: str) -> dict:
        r = self.login(user_id, password)
        self.assertEqual(r.status_code, 200, r.text)
        return {"Authorization": f"Bearer {r.json()['token']}"}

    def upload(self, headers: dict, name="Badge", price="100", image=PNG):
        files = {"image": ("badge.png", image, "image/png")} if image is not None else None
        data = {k: v for k, v in (("name", name), ("price", price)) if v is not None}
        return self.client.post("/api/upload-sticker", data=data, files=files, headers=headers)


class AuthApiTests(ApiTestCase):
    def test_root_and_health(self):
        self.assertTrue(self.client.get("/").json()["isSuccess"])
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_signup_and_login(self):
        r = self.signup("Ann", "ann1", "pw1")
        self.assertEqual(r.status_code, 201)
        self.assertTrue(r.json()["isSuccess"])

        r = self.login("ann1", "pw1")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertTrue(body["isSuccess"])
        self.assertTrue(body["token"])
        self.assertEqual(body["user"]["userId"], "ann1")
        self.assertEqual(body["user"]["name"], "Ann")
        self.assertEqual(body["user"]["coins"], 5000)
        self.assertEqual(set(body["user"]), {"id", "name", "userId", "coins"})

    def test_signup_missing_field_is_400(self):
        r = self.client.post("/signup", json={"name": "Ann", "userId": "ann1"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["isSuccess"], False)
        self.assertIn("message", r.json())

    def test_duplicate_signup_is_500(self):
        self.signup("Ann", "ann1", "pw1")
        r = self.signup("Ann again", "ann1", "pw2")
        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json(), {"isSuccess": False, "message": "user_create_failed"})

    def test_login_failures(self):
        self.signup("Ann", "ann1", "pw1")
        self.assertEqual(self.login("ann1", "").status_code, 400)
        self.assertEqual(self.login("nobody", "pw1").status_code, 401)
        r = self.login("ann1", "wrong")
        self.assertEqual(r.status_code, 401)
        self.assertFalse(r.json()["isSuccess"])
        self.assertNotIn("token", r.json())

    def test_guard_status_codes(self):
        self.assertEqual(self.client.get("/userinfo").status_code, 401)
        r = self.client.get("/userinfo", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.json()["isSuccess"], False)

        expired = create_access_token(
            secret=SECRET,
            user_id=1,
            name="Ann",
            login_id="ann1",
            expires_minutes=60,
            now=datetime.now(timezone.utc) - timedelta(hours=2),
        )
        r = self.client.get("/userinfo", headers={"Authorization": f"Bearer {expired}"})
        self.assertEqual(r.status_code, 403)

    def test_userinfo(self):
        self.signup("Ann", "ann1", "pw1")
        r = self.client.get("/userinfo", headers=self.auth("ann1", "pw1"))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["user"]["coins"], 5000)

    def test_userinfo_for_vanished_user_is_404(self):
        token = create_access_token(secret=SECRET, user_id=42, name="Ghost", login_id="ghost", expires_minutes=60)
        r = self.client.get("/userinfo", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(r.status_code, 404)

    def test_change_password(self):
        self.signup("Ann", "ann1", "old")
        headers = self.auth("ann1", "old")

        r = self.client.post("/changepassword", json={"currentPassword": "old"}, headers=headers)
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/changepassword", json={"currentPassword": "nope", "newPassword": "new"}, headers=headers)
        self.assertEqual(r.status_code, 401)

        r = self.client.post("/changepassword", json={"currentPassword": "old", "newPassword": "new"}, headers=headers)
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["isSuccess"])

        self.assertEqual(self.login("ann1", "old").status_code, 401)
        self.assertEqual(self.login("ann1", "new").status_code, 200)
        # Tokens issued before the change keep working until they expire.
        self.assertEqual(self.client.get("/userinfo", headers=headers).status_code, 200)


class StickerApiTests(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.signup("Ann", "ann1", "pw1")
        self.signup("Bob", "bob1", "pw2")
        self.ann = self.auth("ann1", "pw1")
        self.bob = self.auth("bob1", "pw2")

    def test_upload_requires_auth(self):
        self.assertEqual(self.upload({}).status_code, 401)
        self.assertEqual(self.upload({"Authorization": "Bearer nope"}).status_code, 403)

    def test_upload_missing_fields(self):
        self.assertEqual(self.upload(self.ann, name=None).status_code, 400)
        self.assertEqual(self.upload(self.ann, price=None).status_code, 400)
        self.assertEqual(self.upload(self.ann, image=None).status_code, 400)
        self.assertEqual(self.client.get("/api/stickers").json()["stickers"], [])

    def test_price_past_64_bits_is_400(self):
        r = self.upload(self.ann, price="99999999999999999999")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"isSuccess": False, "message": "invalid_price"})

    def test_huge_sticker_id_is_400(self):
        r = self.client.post("/api/purchase-sticker", json={"stickerId": 99999999999999999999}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"isSuccess": False, "message": "invalid_sticker_id"})

    def test_non_image_upload_is_400(self):
        files = {"image": ("page.html", b"<script>alert(1)</script>", "text/html")}
        r = self.client.post("/api/upload-sticker", data={"name": "Evil", "price": "10"}, files=files, headers=self.ann)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["message"], "invalid_image_type")
        self.assertEqual(self.client.get("/api/stickers").json()["stickers"], [])

    def test_bodies_must_be_json(self):
        r = self.client.post("/login", data={"userId": "ann1", "password": "pw1"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json(), {"isSuccess": False, "message": "invalid_request"})

    def test_uploaded_image_is_served(self):
        r = self.upload(self.ann)
        self.assertEqual(r.status_code, 201)
        sticker = self.client.get("/api/stickers").json()["stickers"][0]
        img = self.client.get(sticker["imageUrl"])
        self.assertEqual(img.status_code, 200)
        self.assertEqual(img.content, PNG)

    def test_purchase_errors(self):
        free_id = self.upload(self.ann, name="Free", price="0").json()["stickerId"]
        r = self.client.post("/api/purchase-sticker", json={}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/api/purchase-sticker", json={"stickerId": "abc"}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        r = self.client.post("/api/purchase-sticker", json={"stickerId": 9999}, headers=self.bob)
        self.assertEqual(r.status_code, 404)
        r = self.client.post("/api/purchase-sticker", json={"stickerId": free_id}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["message"], "free_sticker_not_purchasable")
        r = self.client.post("/api/purchase-sticker", json={"stickerId": free_id})
        self.assertEqual(r.status_code, 401)
        self.assertEqual(self.client.get("/userinfo", headers=self.bob).json()["user"]["coins"], 5000)

    def test_insufficient_coins(self):
        sid = self.upload(self.ann, name="Gold", price="6000").json()["stickerId"]
        r = self.client.post("/api/purchase-sticker", json={"stickerId": sid}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["message"], "insufficient_coins")
        self.assertEqual(self.client.get("/api/user-stickers", headers=self.bob).json()["stickers"], [])

    def test_end_to_end_purchase(self):
        r = self.upload(self.ann, name="Badge", price="100")
        self.assertEqual(r.status_code, 201)
        sid = r.json()["stickerId"]

        r = self.client.post("/api/purchase-sticker", json={"stickerId": sid}, headers=self.bob)
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["isSuccess"])
        self.assertEqual(r.json()["coins"], 4900)

        user = self.client.get("/userinfo", headers=self.bob).json()["user"]
        self.assertEqual(user["coins"], 4900)

        owned = self.client.get("/api/user-stickers", headers=self.bob).json()["stickers"]
        self.assertEqual([s["name"] for s in owned], ["Badge"])

        uploads = self.client.get("/api/my-uploads", headers=self.ann).json()["stickers"]
        self.assertEqual([s["name"] for s in uploads], ["Badge"])
        listed = self.client.get("/api/stickers").json()["stickers"]
        self.assertEqual([(s["name"], s["userId"]) for s in listed], [("Badge", "ann1")])

        # Buying it again is refused and costs nothing.
        r = self.client.post("/api/purchase-sticker", json={"stickerId": sid}, headers=self.bob)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(self.client.get("/userinfo", headers=self.bob).json()["user"]["coins"], 4900)


if __name__ == "__main__":
    unittest.main()
