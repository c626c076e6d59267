import unittest

import numpy as np

from handshare.core.compositor import Compositor
from handshare.core.constants import FINGER_GROUPS
from handshare.core.wire import PosePayload
from helpers import RecordingSurface, make_payload, make_skeleton

LOCAL = "#112233"
PEER = "#aabbcc"


class CompositorTests(unittest.TestCase):
    def setUp(self):
        self.compositor = Compositor(LOCAL)
        self.surface = RecordingSurface()

    def test_local_skeleton_draws_five_finger_polylines(self):
        skeleton = make_skeleton()
        payload = PosePayload(identity=LOCAL, skeletons=(skeleton,))
        drawn = self.compositor.render(self.surface, payload, ())
        self.assertEqual(drawn, 5)
        self.assertEqual(len(self.surface.polylines), 5)
        for call, indices in zip(self.surface.polylines, FINGER_GROUPS.values()):
            self.assertEqual(len(call["points"]), 5)
            self.assertEqual(call["points"], [skeleton[i] for i in indices])
            self.assertEqual(call["color"], LOCAL)
            self.assertEqual(call["width"], 16)
            self.assertAlmostEqual(call["alpha"], 0xDA / 255.0)

    def test_fade_runs_every_frame_even_when_empty(self):
        drawn = self.compositor.render(self.surface, None, ())
        self.assertEqual(drawn, 0)
        self.assertEqual(self.surface.fades, [0.6])

    def test_only_first_skeleton_per_payload(self):
        payload = make_payload(PEER, hands=3)
        self.compositor.render(self.surface, None, ((PEER, payload),))
        self.assertEqual(len(self.surface.polylines), 5)
        self.assertEqual(self.surface.polylines[0]["points"][0], payload.skeletons[0][0])

    def test_peers_drawn_after_local_in_table_order(self):
        local = make_payload(LOCAL)
        snapshot = (
            ("#000001", make_payload("#000001")),
            ("#000002", PosePayload(identity="#000002", skeletons=())),
            ("#000003", make_payload("#000003")),
        )
        drawn = self.compositor.render(self.surface, local, snapshot)
        self.assertEqual(drawn, 15)
        colors = [call["color"] for call in self.surface.polylines]
        self.assertEqual(colors, [LOCAL] * 5 + ["#000001"] * 5 + ["#000003"] * 5)

    def test_empty_local_payload_draws_no_local_polylines(self):
        local = PosePayload(identity=LOCAL, skeletons=())
        drawn = self.compositor.render(self.surface, local, ((PEER, make_payload(PEER)),))
        self.assertEqual(drawn, 5)
        self.assertTrue(all(call["color"] == PEER for call in self.surface.polylines))

    def test_fade_keeps_previous_strokes_faintly(self):
        surface = RecordingSurface(width=64, height=64, mirrored=False)
        surface.image[:] = 0
        self.compositor.render(surface, None, ())
        # 0.6 * 255 + 0.4 * 0
        self.assertTrue(np.all(surface.image == 153))


if __name__ == "__main__":
    unittest.main()
