import asyncio
import unittest

from fakes import FakeStoreApi, make_session, product

from store.notices import ErrorKind

MUG = "650000000000000000000001"
IDOL = "650000000000000000000004"


class WishlistStoreTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.api = FakeStoreApi()
        self.api.add_product(product(MUG, "Personalised Photo Mug", "100.00"))
        self.api.add_product(product(IDOL, "Brass Ganesha Idol", "1249.00", stock=3))
        self.redirects = []
        self.session = make_session(self.api, self.redirects)
        self.wishlist = self.session.wishlist

    async def asyncTearDown(self):
        await self.session.close()

    async def test_add_contains_remove(self):
        result = await self.wishlist.add(MUG)
        self.assertTrue(result.ok)
        self.assertEqual(result.notice.title, "Added to Wishlist")

        entries = await self.wishlist.items()
        self.assertEqual([e.product_id for e in entries], [MUG])
        self.assertEqual(entries[0].product.name, "Personalised Photo Mug")
        self.assertTrue(self.wishlist.contains(MUG))
        self.assertFalse(self.wishlist.contains(IDOL))

        result = await self.wishlist.remove(MUG)
        self.assertEqual(result.notice.title, "Removed from Wishlist")
        await self.wishlist.items()
        self.assertFalse(self.wishlist.contains(MUG))

    async def test_toggle_follows_server_membership(self):
        result = await self.wishlist.toggle(IDOL)
        self.assertEqual(result.notice.title, "Added to Wishlist")
        self.assertEqual(self.api.count("POST", "/api/wishlist"), 1)

        # the stale cache is refreshed before deciding
        result = await self.wishlist.toggle(IDOL)
        self.assertEqual(result.notice.title, "Removed from Wishlist")
        self.assertEqual(self.api.count("DELETE", f"/api/wishlist/{IDOL}"), 1)
        self.assertEqual(await self.wishlist.items(), [])

    async def test_already_present(self):
        self.api.fail[("POST", "/api/wishlist")] = (
            400,
            {"message": "Product is already in your wishlist"},
        )
        result = await self.wishlist.add(MUG)
        self.assertFalse(result.ok)
        self.assertEqual(result.kind, ErrorKind.ALREADY_PRESENT)
        self.assertEqual(result.notice.title, "Already in Wishlist")
        self.assertEqual(result.notice.description, "Product is already in your wishlist")

    async def test_check_status(self):
        self.assertFalse(await self.wishlist.check_status(MUG))
        await self.wishlist.add(MUG)
        self.assertTrue(await self.wishlist.check_status(MUG))

        self.api.fail[("GET", f"/api/wishlist/check/{MUG}")] = (500, "boom")
        self.assertFalse(await self.wishlist.check_status(MUG))

    async def test_logged_out_add_asks_for_login(self):
        self.session.user = None

        result = await self.wishlist.add(MUG)

        self.assertFalse(result.ok)
        self.assertEqual(result.notice.title, "Login Required")
        self.assertEqual(result.notice.description, "Please login to add items to wishlist")
        self.assertEqual(self.api.count("POST", "/api/wishlist"), 0)
        self.assertFalse(await self.wishlist.check_status(MUG))

        await asyncio.sleep(0.05)
        self.assertEqual(self.redirects, ["/login"])

    async def test_unauthorized_remove(self):
        self.api.fail[("DELETE", f"/api/wishlist/{MUG}")] = (401, {"message": "Unauthorized"})
        result = await self.wishlist.remove(MUG)
        self.assertEqual(result.kind, ErrorKind.UNAUTHORIZED)
        self.assertIsNone(self.session.user)

        await asyncio.sleep(0.05)
        self.assertEqual(self.redirects, ["/login"])


if __name__ == "__main__":
    unittest.main()
