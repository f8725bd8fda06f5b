import tempfile
import unittest
from pathlib import Path

from concierge.classifier import Capabilities, RoutingTables, classify, contains_any, load_routing_tables


class TestClassify(unittest.TestCase):
    def setUp(self):
        self.tables = load_routing_tables()

    def test_contains_any_substring(self):
        self.assertTrue(contains_any("is it sunny", ["sun"]))
        self.assertFalse(contains_any("is it sunny", ["rain"]))
        self.assertFalse(contains_any("anything", []))

    def test_classify_both(self):
        caps = classify(
            "Is it SUNNY and do you have outdoor seating?",
            weather_keywords=self.tables.router_weather_keywords,
            business_keywords=self.tables.business_keywords,
        )
        self.assertEqual(caps, Capabilities(needs_weather=True, needs_business_context=True))

    def test_context_list_treats_patio_as_weather(self):
        message = "Is the patio open?"
        router_caps = classify(
            message,
            weather_keywords=self.tables.router_weather_keywords,
            business_keywords=self.tables.business_keywords,
        )
        context_caps = classify(
            message,
            weather_keywords=self.tables.context_weather_keywords,
            business_keywords=self.tables.business_keywords,
        )
        self.assertFalse(router_caps.needs_weather)
        self.assertTrue(context_caps.needs_weather)

    def test_degree_symbols_match(self):
        caps = classify("Is it above 70°F?", weather_keywords=self.tables.context_weather_keywords,
                        business_keywords=())
        self.assertTrue(caps.needs_weather)


class TestRoutingTables(unittest.TestCase):
    def test_packaged_tables(self):
        tables = load_routing_tables()
        self.assertEqual(tables.default_business_id, "cellar-sc")
        self.assertEqual(tables.facet_names[:3], ("hours", "menu", "wifi"))
        self.assertEqual(tables.business_aliases[0], ("the cellar", "cellar-sc"))
        self.assertEqual(tables.relative_timeframes[0], "tomorrow")

    def test_entries_are_lowercased(self):
        tables = RoutingTables.from_mapping({
            "default_business_id": "x",
            "business_keywords": ["Hours"],
            "facet_triggers": {"hours": ["OPEN"]},
            "business_aliases": [["Blue Bottle", "blue-bottle-sf"]],
        })
        self.assertEqual(tables.business_keywords, ("hours",))
        self.assertEqual(tables.facet_triggers, (("hours", ("open",)),))
        self.assertEqual(tables.business_aliases, (("blue bottle", "blue-bottle-sf"),))

    def test_default_business_id_required(self):
        with self.assertRaises(ValueError):
            RoutingTables.from_mapping({"business_keywords": ["hours"]})

    def test_load_from_custom_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "tables.yaml"
            path.write_text(
                "default_business_id: corner-cafe\nbusiness_aliases:\n  - [corner, corner-cafe]\n",
                encoding="utf-8",
            )
            tables = load_routing_tables(path)
        self.assertEqual(tables.default_business_id, "corner-cafe")
        self.assertEqual(tables.router_weather_keywords, ())


if __name__ == "__main__":
    unittest.main()
