import json
import os
import sys
import tempfile
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

import httpx  # noqa: E402

from api.backend import LOCAL_BASE_URL, LocalBackendTransport  # noqa: E402
from api.client import ApiError, StoreClient  # noqa: E402
from db import database as db_database  # noqa: E402

MUG = "650000000000000000000001"
CANDLES = "650000000000000000000002"
IDOL = "650000000000000000000004"


class LocalBackendClientTestCase(unittest.IsolatedAsyncioTestCase):
    """StoreClient talking to the in-process backend over a temp database."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database._initialized = False

        self.address_file = os.path.join(self.temp_dir.name, "addressData.json")
        with open(self.address_file, "w", encoding="utf-8") as f:
            json.dump({"KA": {"statename": "Karnataka", "districts": []}}, f)

    async def asyncSetUp(self):
        self.client = StoreClient(
            LOCAL_BASE_URL,
            transport=LocalBackendTransport(address_file=self.address_file),
        )

    async def asyncTearDown(self):
        await self.client.aclose()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_protected_routes_require_login(self):
        self.assertIsNone(await self.client.get_user())
        with self.assertRaises(ApiError) as ctx:
            await self.client.list_cart()
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertTrue(ctx.exception.is_unauthorized)

    async def test_login_sets_session_cookie(self):
        user = await self.client.login("asha@example.com", "giftbox123")
        self.assertEqual(user.user_id, "GS000001")

        me = await self.client.get_user()
        self.assertEqual(me, user)

        lines = await self.client.list_cart()
        self.assertEqual([l.product_id for l in lines], [CANDLES])
        self.assertEqual(lines[0].product.price, "49.50")

        await self.client.logout()
        self.assertIsNone(await self.client.get_user())

    async def test_bad_credentials(self):
        with self.assertRaises(ApiError) as ctx:
            await self.client.login("asha@example.com", "nope")
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.message, "Invalid credentials")

    async def test_register_logs_in(self):
        user = await self.client.register("new@example.com", "secret1", "New", "User")
        self.assertEqual(user.email, "new@example.com")
        self.assertEqual(await self.client.get_user(), user)
        self.assertEqual(await self.client.list_cart(), [])

    async def test_cart_errors_carry_message_and_code(self):
        await self.client.login("asha@example.com", "giftbox123")

        with self.assertRaises(ApiError) as ctx:
            await self.client.add_to_cart(IDOL, 10)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "insufficient_stock")
        self.assertIn("Insufficient stock", ctx.exception.message)

        with self.assertRaises(ApiError) as ctx:
            await self.client.add_to_cart("bogus-id", 1)
        self.assertEqual(ctx.exception.code, "invalid_id")
        self.assertIn("BSONError", ctx.exception.message)

    async def test_cart_mutations(self):
        await self.client.login("asha@example.com", "giftbox123")

        await self.client.add_to_cart(MUG, 2)
        await self.client.update_cart_item(MUG, 3)
        lines = {l.product_id: l.quantity for l in await self.client.list_cart()}
        self.assertEqual(lines, {MUG: 3, CANDLES: 1})

        await self.client.remove_from_cart(MUG)
        await self.client.clear_cart()
        self.assertEqual(await self.client.list_cart(), [])

    async def test_wishlist_endpoints(self):
        await self.client.login("asha@example.com", "giftbox123")

        self.assertFalse(await self.client.check_wishlist(MUG))
        await self.client.add_to_wishlist(MUG)
        self.assertTrue(await self.client.check_wishlist(MUG))

        entries = await self.client.list_wishlist()
        self.assertEqual([e.product_id for e in entries], [MUG])

        with self.assertRaises(ApiError) as ctx:
            await self.client.add_to_wishlist(MUG)
        self.assertEqual(ctx.exception.message, "Product is already in your wishlist")

        await self.client.remove_from_wishlist(MUG)
        self.assertEqual(await self.client.list_wishlist(), [])

    async def test_products(self):
        products = await self.client.list_products(search="mug")
        self.assertEqual([p.id for p in products], [MUG])

        page = await self.client.list_products(limit=3, offset=0)
        self.assertEqual(len(page), 3)

        self.assertIsNone(await self.client.get_product("ffffffffffffffffffffffff"))
        self.assertEqual((await self.client.get_product(MUG)).name, "Personalised Photo Mug")

    async def test_address_data_and_unknown_routes(self):
        text = await self.client.fetch_address_data()
        self.assertEqual(json.loads(text)["KA"]["statename"], "Karnataka")

        with self.assertRaises(ApiError) as ctx:
            await self.client.request("GET", "/api/nothing-here")
        self.assertEqual(ctx.exception.status_code, 404)

        with self.assertRaises(ApiError) as ctx:
            await self.client.request("PATCH", "/api/cart")
        self.assertEqual(ctx.exception.status_code, 405)


class ApiErrorTestCase(unittest.TestCase):
    def test_from_response_reads_json_body(self):
        response = httpx.Response(
            400, json={"message": "Cannot add 5 more items.", "code": "insufficient_stock"}
        )
        err = ApiError.from_response(response)
        self.assertEqual(err.status_code, 400)
        self.assertEqual(err.message, "Cannot add 5 more items.")
        self.assertEqual(err.code, "insufficient_stock")

    def test_from_response_plain_text_and_empty(self):
        err = ApiError.from_response(httpx.Response(502, text="Bad gateway"))
        self.assertEqual(err.message, "Bad gateway")
        self.assertIsNone(err.code)

        err = ApiError.from_response(httpx.Response(500))
        self.assertEqual(err.message, "")
        self.assertEqual(str(err), "HTTP 500")


if __name__ == "__main__":
    unittest.main()
