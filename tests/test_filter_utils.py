import unittest

import numpy as np

from filter_utils import (
    NoiseTable, bilinear_sample, boost_saturation, disc_kernel, fit_frame, luma,
    quantize, sobel_magnitude,
)


class TestColorHelpers(unittest.TestCase):

    def test_luma_weights(self):
        self.assertAlmostEqual(float(luma([255, 0, 0])), 255 * 0.299)
        self.assertAlmostEqual(float(luma([0, 255, 0])), 255 * 0.587)
        self.assertAlmostEqual(float(luma([0, 0, 255, 255])), 255 * 0.114)

    def test_saturation_of_gray_is_unchanged(self):
        gray = np.full((4, 4, 3), 90.0)
        out = boost_saturation(gray, luma(gray), 3.0)
        np.testing.assert_allclose(out, gray)

    def test_quantize_snaps_to_levels(self):
        # 4 levels -> 0, 85, 170, 255
        np.testing.assert_array_equal(quantize([0, 40, 43, 128, 200, 255], 4),
                                      [0, 0, 85, 170, 170, 255])

    def test_quantize_clamps(self):
        np.testing.assert_array_equal(quantize([-50, 400], 8), [0, 255])

    def test_quantize_is_idempotent(self):
        values = np.linspace(-20, 300, 641)
        for levels in range(2, 17):
            once = quantize(values, levels)
            np.testing.assert_array_equal(quantize(once, levels), once)

    def test_quantize_survives_degenerate_levels(self):
        out = quantize([10, 200], 1)
        np.testing.assert_array_equal(out, [0, 255])
        self.assertTrue(np.all(np.isfinite(quantize([10, 200], 0))))


class TestNoiseTable(unittest.TestCase):

    def setUp(self):
        self.noise = NoiseTable(np.random.default_rng(11), size=8)

    def test_lattice_points_return_table_values(self):
        t = self.noise.table
        for x in (-9, -1, 0, 3, 7, 8, 15, 21):
            for y in (-4, 0, 5, 8, 13):
                self.assertEqual(float(self.noise.sample(x, y)), t[y % 8, x % 8])

    def test_samples_stay_in_unit_range(self):
        xs = np.linspace(-20, 20, 301)
        values = self.noise.sample(xs, xs * 0.7)
        self.assertTrue(np.all(values >= 0.0))
        self.assertTrue(np.all(values < 1.0))

    def test_single_octave_fbm_is_plain_noise(self):
        rng = np.random.default_rng(5)
        xs = rng.uniform(-50, 50, 200)
        ys = rng.uniform(-50, 50, 200)
        np.testing.assert_allclose(self.noise.fbm(xs, ys, 1), self.noise.sample(xs, ys),
                                   rtol=0, atol=1e-15)

    def test_fbm_is_normalized(self):
        xs = np.linspace(0, 30, 400)
        values = self.noise.fbm(xs, xs[::-1], 3)
        self.assertTrue(np.all(values >= 0.0))
        self.assertTrue(np.all(values <= 1.0))

    def test_table_is_read_only(self):
        with self.assertRaises(ValueError):
            self.noise.table[0, 0] = 0.5

    def test_same_seed_same_table(self):
        other = NoiseTable(np.random.default_rng(11), size=8)
        np.testing.assert_array_equal(other.table, self.noise.table)


class TestConvolution(unittest.TestCase):

    def test_uniform_image_has_no_gradient(self):
        mag = sobel_magnitude(np.full((10, 12), 77.0))
        self.assertLess(mag.max(), 1e-9)

    def test_vertical_step_edge(self):
        img = np.zeros((8, 8))
        img[:, 4:] = 100.0
        mag = sobel_magnitude(img)
        # (1 + 2 + 1) * 100 on both columns touching the step
        self.assertAlmostEqual(mag[4, 3], 400.0)
        self.assertAlmostEqual(mag[4, 4], 400.0)
        self.assertEqual(mag[4, 1], 0.0)
        # Border stays untouched
        self.assertTrue(np.all(mag[0] == 0) and np.all(mag[:, -1] == 0))

    def test_disc_kernel(self):
        k = disc_kernel(2)
        self.assertEqual(k.shape, (5, 5))
        self.assertEqual(k[2, 2], 1)
        self.assertEqual(k[0, 2], 1)
        self.assertEqual(k[0, 0], 0)
        np.testing.assert_array_equal(disc_kernel(0), [[1]])

    def test_fit_frame(self):
        self.assertIsNone(fit_frame(None, 4, 4))
        frame = np.zeros((10, 20, 4), dtype=np.uint8)
        frame[..., 1] = 200
        out = fit_frame(frame, 8, 6)
        self.assertEqual(out.shape, (6, 8, 3))
        self.assertTrue(np.all(out[..., 1] == 200))

    def test_bilinear_sample_identity_and_clamp(self):
        img = np.arange(48, dtype=np.uint8).reshape(4, 4, 3)
        xs, ys = np.meshgrid(np.arange(4.0), np.arange(4.0))
        np.testing.assert_array_equal(bilinear_sample(img, xs, ys), img)
        far = bilinear_sample(img, xs + 50, ys)
        np.testing.assert_array_equal(far[:, 0], img[:, 3])

    def test_bilinear_sample_keeps_fractions(self):
        img = np.zeros((2, 2, 3), dtype=np.uint8)
        img[:, 1] = 1
        xs = np.array([[0.25, 0.5, 0.75]])
        out = bilinear_sample(img, xs, np.zeros_like(xs))
        self.assertEqual(out.dtype, np.float32)
        np.testing.assert_allclose(out[0, :, 0], [0.25, 0.5, 0.75], atol=1e-6)


if __name__ == "__main__":
    unittest.main()
