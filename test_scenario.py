"""Unit tests for scenario loading."""

import json
import os
import tempfile
import unittest
from pathlib import Path

from scenario import DEFAULT_SCENARIO, SCENARIO_DIR, Scenario, load_scenario


class TestScenario(unittest.TestCase):

    def test_bundled_scenario(self):
        scenario = load_scenario(DEFAULT_SCENARIO)
        self.assertEqual(scenario.name, "Ring road")
        self.assertEqual(scenario.config_path, SCENARIO_DIR / "ring.xodr")
        self.assertEqual(scenario.scale, 4.0)

    def test_invalid_scale(self):
        for bad in (0, -1.0, "2", True):
            with self.subTest(scale=bad):
                with self.assertRaises(ValueError):
                    Scenario(name="bad", config_path=Path("x.xodr"), scale=bad)

    def test_relative_path_resolved_against_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "custom.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"road_network": "roads/loop.xodr", "scale": 2}, f)
            scenario = load_scenario(path)
        self.assertEqual(scenario.config_path, Path(tmp) / "roads" / "loop.xodr")
        self.assertEqual(scenario.name, "loop")
        self.assertEqual(scenario.scale, 2)

    def test_missing_road_network_entry(self):
        with self.assertRaises(ValueError):
            Scenario.from_dict({"name": "empty"})

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "broken.json")
            with open(path, "w", encoding="utf-8") as f:
                f.write("{not json")
            with self.assertRaises(ValueError):
                load_scenario(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_scenario("no/such/scenario.json")


if __name__ == "__main__":
    unittest.main()
