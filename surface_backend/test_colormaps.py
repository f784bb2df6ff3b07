import math
import unittest

import numpy as np
from matplotlib.colors import LinearSegmentedColormap

from surface_backend.colormaps import (
    COLORMAPS,
    CYCLIC,
    DEFAULT_COLORMAPS,
    DISTINCT_BASE_COLORS,
    DIVERGING,
    SEQUENTIAL,
    complex_to_phase,
    get_color_map,
    get_color_maps_by_type,
    get_distinct_colors,
    phase_to_hue,
    resolve_cmap,
    surface_colors,
)


class TestCatalog(unittest.TestCase):

    def test_lookup(self):
        self.assertEqual(get_color_map("Viridis").type, SEQUENTIAL)
        self.assertEqual(get_color_map("RdBu").type, DIVERGING)
        self.assertIsNone(get_color_map("nope"))

    def test_by_type(self):
        self.assertEqual(len(get_color_maps_by_type(SEQUENTIAL)), 10)
        self.assertEqual(len(get_color_maps_by_type(DIVERGING)), 5)
        self.assertEqual([cm.name for cm in get_color_maps_by_type(CYCLIC)], ["HSV", "Phase", "Twilight", "IceFire"])

    def test_defaults_are_in_catalog(self):
        for name in DEFAULT_COLORMAPS.values():
            self.assertIsNotNone(get_color_map(name))

    def test_distinct_colors(self):
        self.assertEqual(get_distinct_colors(0), [])
        self.assertEqual(get_distinct_colors(3), ["#1f77b4", "#ff7f0e", "#2ca02c"])
        self.assertEqual(get_distinct_colors(10), list(DISTINCT_BASE_COLORS))

        many = get_distinct_colors(12)
        self.assertEqual(len(many), 12)
        self.assertEqual(many[0], "hsl(0, 70%, 50%)")
        self.assertEqual(many[1], "hsl(30, 70%, 50%)")


class TestResolveCmap(unittest.TestCase):

    def test_every_catalog_entry_resolves(self):
        for cm in COLORMAPS:
            with self.subTest(colormap=cm.name):
                rgba = resolve_cmap(cm.name)(0.5)
                self.assertEqual(len(rgba), 4)

    def test_matplotlib_names(self):
        self.assertEqual(resolve_cmap("Viridis").name, "viridis")
        self.assertEqual(resolve_cmap("Jet").name, "jet")
        self.assertEqual(resolve_cmap("coolwarm").name, "coolwarm")

    def test_custom_stops(self):
        cmap = resolve_cmap("Picnic")
        self.assertIsInstance(cmap, LinearSegmentedColormap)
        np.testing.assert_allclose(cmap(0.0)[:3], [0.0, 0.0, 1.0])
        np.testing.assert_allclose(cmap(1.0)[:3], [1.0, 0.0, 0.0])

    def test_unknown_falls_back(self):
        self.assertEqual(resolve_cmap("does-not-exist").name, "viridis")
        self.assertEqual(resolve_cmap(None).name, "viridis")

    def test_surface_colors(self):
        values = np.array([[0.0, 1.0], [np.nan, np.inf]])
        colors = surface_colors(values, (0.0, 1.0), "Viridis")
        self.assertEqual(colors.shape, (2, 2, 3))
        cmap = resolve_cmap("Viridis")
        np.testing.assert_allclose(colors[1, 0], cmap(0.5)[:3])
        np.testing.assert_allclose(colors[1, 1], cmap(1.0)[:3])
        np.testing.assert_allclose(colors[0, 0], cmap(0.0)[:3])


class TestPhase(unittest.TestCase):

    def test_complex_to_phase(self):
        self.assertAlmostEqual(complex_to_phase(0.0, 1.0), math.pi / 2)
        self.assertAlmostEqual(complex_to_phase(-1.0, 0.0), math.pi)
        self.assertAlmostEqual(complex_to_phase(1.0, 0.0), 0.0)
        np.testing.assert_allclose(complex_to_phase(np.array([1.0, 0.0]), np.array([0.0, -1.0])), [0.0, -math.pi / 2])

    def test_phase_to_hue(self):
        self.assertAlmostEqual(phase_to_hue(-math.pi), 0.0)
        self.assertAlmostEqual(phase_to_hue(0.0), 180.0)
        self.assertAlmostEqual(phase_to_hue(math.pi), 360.0)


if __name__ == "__main__":
    unittest.main()
