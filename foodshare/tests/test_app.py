import unittest

from fastapi.testclient import TestClient

from foodshare.app import create_app
from foodshare.config import Settings
from foodshare.db import FoodStatus, InMemoryDbClient


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, use_in_memory_backends=True, **overrides)


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.app = create_app(_settings(), db=self.db)
        self.donor = self._client_for("a@x.com", name="Ann")
        self.requester = self._client_for("b@x.com", name="Bob")
        self.anonymous = TestClient(self.app)

    def _client_for(self, email: str, **identity) -> TestClient:
        client = TestClient(self.app)
        response = client.post("/jwt", json={"email": email, **identity})
        self.assertEqual(response.status_code, 200)
        return client

    def _add_food(self, client=None, **fields) -> str:
        body = {"name": "Bread", "quantity": 5}
        body.update(fields)
        response = (client or self.donor).post("/add-food", json=body)
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertTrue(payload["acknowledged"])
        return payload["inserted_id"]

    def test_jwt_sets_http_only_cookie(self):
        client = TestClient(self.app)
        response = client.post("/jwt", json={"email": "a@x.com"})
        self.assertEqual(response.json(), {"success": True})
        cookie = response.headers["set-cookie"]
        self.assertIn("token=", cookie)
        self.assertIn("HttpOnly", cookie)
        self.assertIn("SameSite=strict", cookie)
        self.assertNotIn("Secure", cookie)

    def test_jwt_cookie_is_cross_site_in_production(self):
        app = create_app(
            _settings(
                environment="production",
                access_token_secret="prod-secret-0123456789abcdef0123456789",
            ),
            db=InMemoryDbClient(),
        )
        response = TestClient(app).post("/jwt", json={"email": "a@x.com"})
        cookie = response.headers["set-cookie"]
        self.assertIn("Secure", cookie)
        self.assertIn("SameSite=none", cookie)

    def test_jwt_requires_email(self):
        response = self.anonymous.post("/jwt", json={"name": "nobody"})
        self.assertEqual(response.status_code, 422)

    def test_protected_routes_require_cookie(self):
        response = self.anonymous.post("/add-food", json={"name": "Bread"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "unauthorized")

        response = self.anonymous.get("/my-requests/a@x.com")
        self.assertEqual(response.status_code, 401)

    def test_tampered_cookie_is_rejected(self):
        self.anonymous.cookies.set("token", "not-a-token")
        response = self.anonymous.post("/add-food", json={"name": "Bread"})
        self.assertEqual(response.status_code, 401)

    def test_tampered_cookie_can_map_to_forbidden(self):
        app = create_app(_settings(invalid_token_status=403), db=InMemoryDbClient())
        client = TestClient(app)
        client.cookies.set("token", "not-a-token")
        response = client.post("/add-food", json={"name": "Bread"})
        self.assertEqual(response.status_code, 403)

    def test_logout_clears_cookie(self):
        response = self.donor.post("/logout")
        self.assertEqual(response.json(), {"success": True})
        self.assertIn('token=""', response.headers["set-cookie"])
        response = self.donor.post("/add-food", json={"name": "Bread"})
        self.assertEqual(response.status_code, 401)

    def test_add_food_ignores_supplied_status_and_donor_email(self):
        food_id = self._add_food(
            status="requested",
            donor={"name": "Ann", "email": "someone@else.com", "image": "a.png"},
        )
        response = self.anonymous.get(f"/food/{food_id}")
        self.assertEqual(response.status_code, 200)
        food = response.json()
        self.assertEqual(food["status"], "available")
        self.assertEqual(food["donor"]["email"], "a@x.com")
        self.assertEqual(food["donor"]["image"], "a.png")

    def test_add_food_validates_payload(self):
        response = self.donor.post("/add-food", json={"name": "", "quantity": -1})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.db.foods, {})

    def test_get_missing_food_is_404(self):
        response = self.anonymous.get("/food/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_end_to_end_claim(self):
        food_id = self._add_food(name="Bread", quantity=5)
        self.assertEqual(self.anonymous.get(f"/food/{food_id}").json()["status"], "available")

        response = self.requester.post(
            "/request-food",
            json={"food_id": food_id, "details": {"name": "Bread", "note": "tonight"}},
        )
        self.assertEqual(response.status_code, 201, response.text)
        claim = response.json()
        self.assertEqual(claim["food_id"], food_id)
        self.assertEqual(claim["requester"]["email"], "b@x.com")
        self.assertEqual(claim["details"]["note"], "tonight")

        self.assertEqual(self.anonymous.get(f"/food/{food_id}").json()["status"], "requested")

        mine = self.requester.get("/my-requests/b@x.com").json()
        self.assertEqual([c["claim_id"] for c in mine], [claim["claim_id"]])

        other = self._client_for("c@x.com")
        self.assertEqual(other.get("/my-requests/c@x.com").json(), [])

    def test_requested_food_leaves_available_listing(self):
        food_id = self._add_food(name="Bread")
        self.requester.post("/request-food", json={"food_id": food_id})
        names = [f["food_id"] for f in self.anonymous.get("/available-foods").json()]
        self.assertNotIn(food_id, names)

    def test_second_claim_is_conflict(self):
        food_id = self._add_food()
        first = self.requester.post("/request-food", json={"food_id": food_id})
        self.assertEqual(first.status_code, 201)

        late = self._client_for("c@x.com")
        second = late.post("/request-food", json={"food_id": food_id})
        self.assertEqual(second.status_code, 409)
        self.assertEqual(len(self.db.claims), 1)

    def test_claim_on_missing_food_creates_nothing(self):
        response = self.requester.post("/request-food", json={"food_id": "missing"})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.db.claims, {})

    def test_donor_cannot_claim_own_food(self):
        food_id = self._add_food()
        response = self.donor.post("/request-food", json={"food_id": food_id})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.db.claims, {})

    def test_owner_scoped_lists_reject_other_emails(self):
        self._add_food()
        for path in ("/manage-foods/a@x.com", "/my-requests/a@x.com", "/manage-foods/A@x.com"):
            response = self.requester.get(path)
            self.assertEqual(response.status_code, 403, path)
            self.assertEqual(response.json()["code"], "forbidden")

    def test_manage_foods_lists_own_offers_in_any_status(self):
        kept = self._add_food(name="Soup")
        claimed = self._add_food(name="Rice")
        self._add_food(client=self.requester, name="Apples")
        self.requester.post("/request-food", json={"food_id": claimed})

        response = self.donor.get("/manage-foods/a@x.com")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            sorted(f["food_id"] for f in response.json()), sorted([kept, claimed])
        )

    def test_search_is_case_insensitive_substring(self):
        self._add_food(name="Pizza Margherita")
        self._add_food(name="SPICY PIZZA")
        self._add_food(name="Bread")

        response = self.anonymous.get("/all-foods", params={"search": "piz"})
        names = sorted(f["name"] for f in response.json())
        self.assertEqual(names, ["Pizza Margherita", "SPICY PIZZA"])

        everything = self.anonymous.get("/available-foods").json()
        self.assertEqual(len(everything), 3)

    def test_search_treats_pattern_characters_literally(self):
        self._add_food(name="Bread")
        for term in ("(a+)+$", ".*", "%", "_"):
            response = self.anonymous.get("/available-foods", params={"search": term})
            self.assertEqual(response.status_code, 200, term)
            self.assertEqual(response.json(), [], term)

    def test_sort_by_expiry(self):
        self._add_food(name="late", expires_at="2030-01-03T00:00:00Z")
        self._add_food(name="never")
        self._add_food(name="early", expires_at="2030-01-01T00:00:00Z")

        response = self.anonymous.get("/available-foods", params={"sort": "expiry"})
        self.assertEqual([f["name"] for f in response.json()], ["early", "late", "never"])

    def test_unknown_sort_is_rejected(self):
        response = self.anonymous.get("/available-foods", params={"sort": "name"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_featured_foods_are_six_largest_available(self):
        ids = [self._add_food(name=f"item-{q}", quantity=q) for q in range(1, 9)]
        self.requester.post("/request-food", json={"food_id": ids[-1]})

        response = self.anonymous.get("/featured-foods")
        quantities = [f["quantity"] for f in response.json()]
        self.assertEqual(quantities, [7, 6, 5, 4, 3, 2])

    def test_edit_replaces_editable_fields(self):
        food_id = self._add_food(name="Bread", notes="fresh", location="Main St")
        response = self.donor.put(
            f"/food/{food_id}",
            json={"name": "Rye bread", "quantity": 2, "status": "requested"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["matched_count"], 1)
        self.assertEqual(response.json()["modified_count"], 1)

        food = self.anonymous.get(f"/food/{food_id}").json()
        self.assertEqual(food["name"], "Rye bread")
        self.assertEqual(food["quantity"], 2)
        self.assertIsNone(food["notes"])
        self.assertIsNone(food["location"])
        self.assertEqual(food["status"], "available")
        self.assertEqual(food["donor"]["email"], "a@x.com")

    def test_edit_and_delete_of_foreign_food_are_forbidden(self):
        food_id = self._add_food()
        response = self.requester.put(f"/food/{food_id}", json={"name": "Mine now"})
        self.assertEqual(response.status_code, 403)
        response = self.requester.delete(f"/food/{food_id}")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.anonymous.get(f"/food/{food_id}").json()["name"], "Bread")

    def test_edit_missing_food_is_404(self):
        response = self.donor.put("/food/missing", json={"name": "Bread"})
        self.assertEqual(response.status_code, 404)

    def test_delete_is_idempotent(self):
        food_id = self._add_food()
        response = self.donor.delete(f"/food/{food_id}")
        self.assertEqual(response.json(), {"acknowledged": True, "deleted_count": 1})
        response = self.donor.delete(f"/food/{food_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["deleted_count"], 0)

    def test_api_prefix(self):
        app = create_app(_settings(api_prefix="/api"), db=InMemoryDbClient())
        client = TestClient(app)
        self.assertEqual(client.get("/api/featured-foods").status_code, 200)

    def test_store_state_matches_api(self):
        food_id = self._add_food()
        self.requester.post("/request-food", json={"food_id": food_id})
        self.assertEqual(self.db.foods[food_id].status, FoodStatus.REQUESTED)


if __name__ == "__main__":
    unittest.main()
