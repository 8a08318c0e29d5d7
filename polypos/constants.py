# constants.py
import math

QUARTER = math.pi / 2
HALF = math.pi
FULL = 2 * math.pi

# values closer to zero than this are skipped, and positions closer than this compare equal
EQUALS_ERROR = 1e-11
EQUALS_ERROR_SQR = EQUALS_ERROR * EQUALS_ERROR
