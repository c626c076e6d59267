HAND_JOINTS = [
    "wrist",
    "thumb_cmc",
    "thumb_mcp",
    "thumb_ip",
    "thumb_tip",
    "index_finger_mcp",
    "index_finger_pip",
    "index_finger_dip",
    "index_finger_tip",
    "middle_finger_mcp",
    "middle_finger_pip",
    "middle_finger_dip",
    "middle_finger_tip",
    "ring_finger_mcp",
    "ring_finger_pip",
    "ring_finger_dip",
    "ring_finger_tip",
    "pinky_mcp",
    "pinky_pip",
    "pinky_dip",
    "pinky_tip",
]

LANDMARK_COUNT = len(HAND_JOINTS)

# One polyline per finger, each anchored at the wrist (index 0).
FINGER_GROUPS = {
    "thumb": (0, 1, 2, 3, 4),
    "index_finger": (0, 5, 6, 7, 8),
    "middle_finger": (0, 9, 10, 11, 12),
    "ring_finger": (0, 13, 14, 15, 16),
    "pinky": (0, 17, 18, 19, 20),
}
