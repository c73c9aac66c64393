import asyncio
import dataclasses
import unittest

from fakes import ASHA, FakeStoreApi, make_session, product

from api.client import ApiError

MUG = "650000000000000000000001"


class SessionContextTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.api = FakeStoreApi()
        self.api.add_product(product(MUG, "Personalised Photo Mug", "100.00"))
        self.redirects = []
        self.session = make_session(self.api, self.redirects, logged_in=False)

    async def asyncTearDown(self):
        await self.session.close()

    async def test_restore(self):
        self.assertEqual(await self.session.restore(), ASHA)
        self.assertTrue(self.session.is_authenticated)

        self.api.user = None
        self.assertIsNone(await self.session.restore())
        self.assertFalse(self.session.is_authenticated)

    async def test_restore_survives_server_errors(self):
        self.api.fail[("GET", "/api/auth/user")] = (500, {"message": "down"})
        self.assertIsNone(await self.session.restore())

    async def test_login_resets_stores(self):
        self.api.put_line(MUG, 1)
        await self.session.cart.items()
        self.assertEqual(self.session.cart.lines, [])

        user = await self.session.login("asha@example.com", "giftbox123")
        self.assertEqual(user, ASHA)
        self.assertTrue(self.session.cart.is_stale)
        self.assertEqual(len(await self.session.cart.items()), 1)

    async def test_bad_login_raises(self):
        self.api.fail[("POST", "/api/auth/login")] = (401, {"message": "Invalid credentials"})
        with self.assertRaises(ApiError) as ctx:
            await self.session.login("asha@example.com", "nope")
        self.assertEqual(ctx.exception.message, "Invalid credentials")
        self.assertIsNone(self.session.user)

    async def test_end_clears_session_even_if_logout_fails(self):
        self.session.user = ASHA
        self.api.fail[("POST", "/api/auth/logout")] = (500, {"message": "down"})
        await self.session.end()
        self.assertIsNone(self.session.user)
        self.assertEqual(self.api.count("POST", "/api/auth/logout"), 1)

        # nothing to end
        await self.session.end()
        self.assertEqual(self.api.count("POST", "/api/auth/logout"), 1)

    async def test_login_cancels_pending_redirect(self):
        self.session.settings = dataclasses.replace(self.session.settings, redirect_delay=0.05)
        self.session.handle_unauthorized()
        self.assertTrue(self.session.redirect_pending)

        await self.session.login("asha@example.com", "giftbox123")
        self.assertFalse(self.session.redirect_pending)

        await asyncio.sleep(0.1)
        self.assertEqual(self.redirects, [])

    async def test_redirect_fires_once_after_delay(self):
        self.session.user = ASHA
        self.session.handle_unauthorized()
        self.session.handle_unauthorized()
        await asyncio.sleep(0.05)
        self.assertEqual(self.redirects, ["/login"])
        self.assertFalse(self.session.redirect_pending)


if __name__ == "__main__":
    unittest.main()
