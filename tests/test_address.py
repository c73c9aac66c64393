import json
import os
import unittest

from fakes import ROOT, FakeStoreApi, make_session

from store.address import (
    AddressResolver,
    AddressSelection,
    AreaMatch,
    LoadState,
    ShippingAddress,
    parse_location_table,
)

TABLE = {
    "KA": {
        "statename": "Karnataka",
        "districts": [
            {
                "districtname": "Bengaluru Urban",
                "areas": [
                    {"areaname": "Koramangala", "pincode": 560034},
                    {"areaname": "Indiranagar", "pincode": "560038"},
                    {"areaname": "Whitefield"},
                ],
            },
            {
                "districtname": "Mysuru",
                "areas": [{"areaname": "Gokulam", "pincode": 570002}],
            },
        ],
    },
    "TN": {
        "statename": "Tamil Nadu",
        "districts": [
            {
                "districtname": "Chennai",
                "areas": [
                    {"areaname": "Adyar", "pincode": 600020},
                    {"areaname": "Besant Nagar", "pincode": 600090},
                    {"pincode": 600001},
                ],
            }
        ],
    },
}


def _ready() -> AddressResolver:
    resolver = AddressResolver()
    resolver.load(TABLE)
    return resolver


class AddressLookupTestCase(unittest.TestCase):
    def setUp(self):
        self.resolver = _ready()

    def test_starts_loading(self):
        resolver = AddressResolver()
        self.assertEqual(resolver.status, LoadState.LOADING)
        self.assertEqual(resolver.list_states(), [])

    def test_cascading_lists(self):
        r = self.resolver
        self.assertTrue(r.is_ready)
        self.assertEqual(r.list_states(), ["Karnataka", "Tamil Nadu"])
        self.assertEqual(r.list_districts("Karnataka"), ["Bengaluru Urban", "Mysuru"])
        self.assertEqual(
            r.list_areas("Karnataka", "Bengaluru Urban"),
            ["Koramangala", "Indiranagar", "Whitefield"],
        )
        # area rows without a name are dropped
        self.assertEqual(r.list_areas("Tamil Nadu", "Chennai"), ["Adyar", "Besant Nagar"])

    def test_lookups_ignore_case(self):
        r = self.resolver
        self.assertEqual(r.list_districts("karnataka"), ["Bengaluru Urban", "Mysuru"])
        self.assertEqual(r.list_areas("TAMIL NADU", "chennai"), ["Adyar", "Besant Nagar"])
        self.assertEqual(r.pincode_for("karnataka", "bengaluru urban", "KORAMANGALA"), "560034")

    def test_unknown_or_unselected_ancestors_are_empty(self):
        r = self.resolver
        self.assertEqual(r.list_districts(""), [])
        self.assertEqual(r.list_districts("Kerala"), [])
        self.assertEqual(r.list_areas("Karnataka", ""), [])
        self.assertEqual(r.list_areas("Karnataka", "Chennai"), [])
        self.assertIsNone(r.pincode_for("Karnataka", "Mysuru", "Adyar"))
        self.assertIsNone(r.pincode_for("Karnataka", "Bengaluru Urban", "Whitefield"))

    def test_search_areas(self):
        r = self.resolver
        self.assertEqual(
            r.search_areas("nagar"),
            [
                AreaMatch("Karnataka", "Bengaluru Urban", "Indiranagar", "560038"),
                AreaMatch("Tamil Nadu", "Chennai", "Besant Nagar", "600090"),
            ],
        )
        self.assertEqual(len(r.search_areas("a", limit=2)), 2)
        self.assertEqual(r.search_areas("   "), [])
        self.assertEqual(r.search_areas("zzz"), [])

    def test_search_pincode(self):
        r = self.resolver
        self.assertEqual(
            r.search_pincode("600020"), [AreaMatch("Tamil Nadu", "Chennai", "Adyar", "600020")]
        )
        self.assertEqual(r.search_pincode("999999"), [])
        self.assertEqual(r.search_pincode("6000"), [])

    def test_statistics(self):
        self.assertEqual(
            self.resolver.statistics(),
            {"states": 2, "districts": 3, "areas": 6, "pincodes": 5},
        )


class AddressSelectionTestCase(unittest.TestCase):
    FULL = AddressSelection("Karnataka", "Mysuru", "Gokulam", "570002")

    def test_changing_a_field_clears_the_ones_below(self):
        change = AddressResolver.apply_field_change
        self.assertEqual(
            change(self.FULL, "state", "Tamil Nadu"), AddressSelection("Tamil Nadu")
        )
        self.assertEqual(
            change(self.FULL, "district", "Bengaluru Urban"),
            AddressSelection("Karnataka", "Bengaluru Urban"),
        )
        self.assertEqual(
            change(self.FULL, "area", "Koramangala"),
            AddressSelection("Karnataka", "Mysuru", "Koramangala"),
        )
        self.assertEqual(
            change(self.FULL, "pincode", "570001"),
            AddressSelection("Karnataka", "Mysuru", "Gokulam", "570001"),
        )

    def test_selection_for_search_hit(self):
        r = _ready()
        (hit,) = r.search_pincode("570002")
        selection = r.selection_for(hit)
        self.assertEqual(selection, self.FULL)
        self.assertTrue(r.validate(selection).is_valid)

        (hit,) = r.search_areas("whitefield")
        self.assertEqual(
            r.selection_for(hit),
            AddressSelection("Karnataka", "Bengaluru Urban", "Whitefield", ""),
        )

    def test_unknown_field(self):
        with self.assertRaises(ValueError):
            AddressResolver.apply_field_change(self.FULL, "country", "India")

    def test_validate(self):
        r = _ready()
        self.assertTrue(r.validate(self.FULL).is_valid)

        result = r.validate(AddressSelection())
        self.assertFalse(result.is_valid)
        self.assertEqual(
            result.errors,
            (
                "State is required",
                "District is required",
                "Area is required",
                "Pincode must be exactly 6 digits",
            ),
        )

        result = r.validate(AddressSelection("Kerala", "Kochi", "Fort", "682001"))
        self.assertEqual(result.errors, ("Unknown state: Kerala",))

        result = r.validate(AddressSelection("Karnataka", "Mysuru", "Adyar", "5700"))
        self.assertEqual(
            result.errors, ("Unknown area: Adyar", "Pincode must be exactly 6 digits")
        )

    def test_validate_pincode_against_area(self):
        r = _ready()
        result = r.validate(AddressSelection("Karnataka", "Mysuru", "Gokulam", "570001"))
        self.assertEqual(
            result.errors,
            ('Pincode 570001 does not match the area "Gokulam". Expected pincode: 570002',),
        )
        # areas without a pincode accept any six digits
        ok = r.validate(AddressSelection("Karnataka", "Bengaluru Urban", "Whitefield", "560066"))
        self.assertTrue(ok.is_valid)

    def test_validate_before_load(self):
        result = AddressResolver().validate(self.FULL)
        self.assertEqual(result.errors, ("Address data not loaded yet",))

    def test_validate_shipping(self):
        r = _ready()
        address = ShippingAddress(
            self.FULL,
            recipient_name="Asha Menon",
            phone_number="+91 98450-12345",
            address_line1="12, 4th Cross",
        )
        self.assertTrue(r.validate_shipping(address).is_valid)
        self.assertIn("Near MG Road", ShippingAddress(self.FULL, landmark="MG Road").summary_lines())

        result = r.validate_shipping(
            ShippingAddress(AddressSelection("Karnataka"), phone_number="12345")
        )
        self.assertEqual(
            result.errors,
            (
                "Recipient name is required",
                "Valid phone number is required",
                "Address line 1 is required",
                "District is required",
                "Area is required",
                "Pincode must be exactly 6 digits",
            ),
        )


class AddressLoadingTestCase(unittest.IsolatedAsyncioTestCase):
    def test_malformed_tables(self):
        malformed = (
            [],
            {},
            {"KA": {"districts": []}},
            {"KA": {"statename": "Karnataka", "districts": "Mysuru"}},
        )
        for payload in malformed:
            with self.subTest(payload=payload):
                with self.assertRaises(ValueError):
                    parse_location_table(payload)

                resolver = _ready()
                self.assertFalse(resolver.load(payload))
                self.assertEqual(resolver.status, LoadState.ERROR)
                self.assertEqual(resolver.list_states(), [])

    def test_load_json_errors(self):
        resolver = AddressResolver()
        self.assertFalse(resolver.load_json(""))
        self.assertEqual(resolver.error, "Address data is empty")

        self.assertFalse(resolver.load_json("{not json"))
        self.assertTrue(resolver.error.startswith("Address data is not valid JSON"))

        self.assertFalse(resolver.load_json("{}"))
        self.assertEqual(resolver.error, "No address data available")

        self.assertTrue(resolver.load_json(json.dumps(TABLE)))
        self.assertIsNone(resolver.error)

    def test_bundled_table_parses(self):
        with open(os.path.join(ROOT, "data", "addressData.json"), encoding="utf-8") as f:
            resolver = AddressResolver()
            self.assertTrue(resolver.load_json(f.read()))
        self.assertIn("Karnataka", resolver.list_states())
        self.assertEqual(
            resolver.pincode_for("Karnataka", "Bengaluru Urban", "Koramangala"), "560034"
        )

    async def test_load_from_client(self):
        api = FakeStoreApi()
        session = make_session(api, [])
        resolver = AddressResolver()
        try:
            self.assertFalse(await resolver.load_from(session.client))
            self.assertEqual(resolver.status, LoadState.ERROR)
            self.assertEqual(resolver.error, "HTTP error! status: 404")

            api.address_payload = json.dumps(TABLE)
            self.assertTrue(await resolver.load_from(session.client))
            self.assertEqual(resolver.status, LoadState.READY)
            self.assertEqual(len(resolver.list_states()), 2)
        finally:
            await session.close()


if __name__ == "__main__":
    unittest.main()
