"""Configuration constants for scene_reel."""
from __future__ import annotations

import os
from typing import Dict, Tuple

# Requested scene durations are clamped to this range (seconds)
DURATION_MIN = 1.0
DURATION_MAX = 30.0
DURATION_DEFAULT = 6.0

FPS_OPTIONS = (24, 30, 60)
FPS_DEFAULT = 30

CANVAS_PRESETS: Dict[str, Tuple[str, int, int]] = {
    "hd": ("HD 16:9 (1280x720)", 1280, 720),
    "fhd": ("FHD 16:9 (1920x1080)", 1920, 1080),
    "square": ("Square 1:1 (1080x1080)", 1080, 1080),
    "vertical": ("Vertical 9:16 (1080x1920)", 1080, 1920),
}
CANVAS_DEFAULT = "hd"

SAMPLE_RATE = int(os.environ.get("SCENE_REEL_SAMPLE_RATE") or 48000)
BUS_CHANNELS = 2

# Delay before the first scene's audio is due, absorbs encoder startup
AUDIO_LEAD_IN = float(os.environ.get("SCENE_REEL_LEAD_IN") or 0.4)

# Media time between two reads of freshly encoded bytes
CHUNK_INTERVAL = float(os.environ.get("SCENE_REEL_CHUNK_INTERVAL") or 0.5)

VIDEO_BITRATE = "6000k"
AUDIO_BITRATE = "192k"
