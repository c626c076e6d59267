import unittest
import warnings

import numpy as np

from handshare.core.compositor import Compositor
from handshare.core.surface import Surface, hex_to_bgr
from helpers import make_payload


class SurfaceTests(unittest.TestCase):
    def test_hex_to_bgr(self):
        self.assertEqual(hex_to_bgr("#aabbcc"), (0xCC, 0xBB, 0xAA))
        with self.assertRaises(ValueError):
            hex_to_bgr("#abc")

    def test_mirror_is_applied_to_x_only(self):
        surface = Surface(100, 50, mirrored=True)
        pts = surface.to_device([(10.0, 20.0, 0.0), (90.0, 5.0, 3.0)])
        self.assertEqual(pts.tolist(), [[90, 20], [10, 5]])

        plain = Surface(100, 50, mirrored=False)
        self.assertEqual(plain.to_device([(10.0, 20.0)]).tolist(), [[10, 20]])

    def test_opaque_polyline_paints_requested_color(self):
        surface = Surface(40, 40, mirrored=False)
        surface.polyline([(5, 20, 0), (35, 20, 0)], "#ff0000", 4, alpha=1.0)
        self.assertEqual(surface.image[20, 20].tolist(), [0, 0, 255])

    def test_translucent_polyline_blends(self):
        surface = Surface(40, 40, mirrored=False)
        surface.polyline([(5, 20, 0), (35, 20, 0)], "#000000", 4, alpha=0.5)
        value = int(surface.image[20, 20, 0])
        self.assertGreater(value, 100)
        self.assertLess(value, 150)
        self.assertTrue(np.all(surface.image[0, 0] == 255))

    def test_polyline_outside_surface_is_ignored(self):
        surface = Surface(20, 20, mirrored=False)
        surface.polyline([(500, 500, 0), (600, 600, 0)], "#000000", 4, alpha=0.5)
        self.assertTrue(np.all(surface.image == 255))

    def test_far_coordinates_are_clipped_before_int_cast(self):
        surface = Surface(100, 50, mirrored=False)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            pts = surface.to_device([(1e300, 3e9), (-1e12, 0.0), (10.0, 20.0)])
        self.assertEqual(pts.dtype, np.int32)
        self.assertEqual(pts.tolist(), [[400, 400], [-400, 0], [10, 20]])

    def test_render_survives_far_coordinates(self):
        surface = Surface(64, 48, mirrored=True)
        compositor = Compositor("#aaaaaa")
        payload = make_payload("#bbbbbb", offset=1e15)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            drawn = compositor.render(surface, None, [("#bbbbbb", payload)])
        self.assertEqual(drawn, 5)


if __name__ == "__main__":
    unittest.main()
