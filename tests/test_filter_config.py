import os
import shutil
import tempfile
import unittest

from filter_config import DEFAULT_PARAMS, ConfigError, FilterParams, load_presets


class TestFilterParams(unittest.TestCase):

    def test_defaults(self):
        params = FilterParams("matrix")
        self.assertEqual(params.char_size, 12)
        self.assertEqual(params.contrast, 7)
        self.assertEqual(params.as_dict(), DEFAULT_PARAMS["matrix"])

    def test_overrides_and_updates(self):
        params = FilterParams("rotoscope", {"color_levels": 4})
        self.assertEqual(params.color_levels, 4)
        params.update("painterliness", 0.0)
        self.assertEqual(params.painterliness, 0.0)
        # Out-of-range values are stored untouched
        params.update("edge_opacity", 7)
        self.assertEqual(params.edge_opacity, 7)

    def test_unknown_names(self):
        with self.assertRaises(ValueError):
            FilterParams("sepia")
        params = FilterParams("cel_shade")
        with self.assertRaises(KeyError):
            params.update("char_size", 10)
        with self.assertRaises(KeyError):
            FilterParams("cel_shade", {"wobble_speed": 1})
        with self.assertRaises(AttributeError):
            params.char_size

    def test_as_dict_is_a_copy(self):
        params = FilterParams("cel_shade")
        d = params.as_dict()
        d["color_levels"] = 99
        self.assertEqual(params.color_levels, 6)
        self.assertEqual(DEFAULT_PARAMS["cel_shade"]["color_levels"], 6)


class TestLoadPresets(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def write(self, text):
        path = os.path.join(self.test_dir, "presets.yaml")
        with open(path, "w") as f:
            f.write(text)
        return path

    def test_missing_file_gives_defaults(self):
        with self.assertLogs("filter_config", level="WARNING"):
            presets = load_presets(os.path.join(self.test_dir, "nope.yaml"))
        self.assertEqual(presets, DEFAULT_PARAMS)
        self.assertIsNot(presets["matrix"], DEFAULT_PARAMS["matrix"])

    def test_overrides_are_merged(self):
        path = self.write("matrix:\n  char_size: 16\nrotoscope:\n  painterliness: 0.1\n")
        presets = load_presets(path)
        self.assertEqual(presets["matrix"]["char_size"], 16)
        self.assertEqual(presets["matrix"]["contrast"], 7)
        self.assertEqual(presets["rotoscope"]["painterliness"], 0.1)
        self.assertEqual(presets["cel_shade"], DEFAULT_PARAMS["cel_shade"])
        self.assertEqual(DEFAULT_PARAMS["matrix"]["char_size"], 12)

    def test_unknown_entries_are_skipped(self):
        path = self.write("sepia:\n  tone: 3\ncel_shade:\n  glow: 2\n  color_levels: 4\n")
        with self.assertLogs("filter_config", level="WARNING") as logs:
            presets = load_presets(path)
        self.assertNotIn("sepia", presets)
        self.assertNotIn("glow", presets["cel_shade"])
        self.assertEqual(presets["cel_shade"]["color_levels"], 4)
        self.assertEqual(len(logs.records), 2)

    def test_empty_file(self):
        self.assertEqual(load_presets(self.write("")), DEFAULT_PARAMS)

    def test_malformed_yaml(self):
        with self.assertRaises(ConfigError):
            load_presets(self.write("matrix: [char_size: 3\n"))

    def test_wrong_shapes(self):
        with self.assertRaises(ConfigError):
            load_presets(self.write("- matrix\n- rotoscope\n"))
        with self.assertRaises(ConfigError):
            load_presets(self.write("matrix: 12\n"))

    def test_values_must_be_numbers(self):
        with self.assertRaises(ConfigError):
            load_presets(self.write("matrix:\n  char_size: big\n"))
        with self.assertRaises(ConfigError):
            load_presets(self.write("rotoscope:\n  painterliness: true\n"))


if __name__ == "__main__":
    unittest.main()
