"""Constants for the court coordinate space and entity identifiers."""

import re

# Logical court space (tokens are positioned by their top-left corner)
COURT_SIZE = 600
TOKEN_SIZE = 50
NET_OFFSET = 4

# Supported court view rotations (degrees clockwise)
ROTATIONS = (0, 90, 180, 270)

# Fixed duration of a formation transition, in seconds
ANIMATION_DURATION = 1.0

# ~60 frames per second
FRAME_INTERVAL = 1 / 60

# Id prefixes per entity type
ID_PREFIXES = {
    'player': 'ply',
    'position': 'pos',
    'scenario': 'scen',
    'sequence': 'seq',
}

# Data format versions
LEGACY_VERSION = '3.0'
CURRENT_VERSION = '4.0'

# Legacy position names like "Rotation 3 - Serve Receive" belong to "Rotation 3"
LEGACY_ROTATION_PATTERN = re.compile(r'^(Rotation \d+)')
