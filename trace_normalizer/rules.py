"""
Deterministic trace formatting rules.

Output is always comma-joined integers, one row per line, UTF-8, no header.
"""

OUTPUT_DELIMITER = ","
OUTPUT_ENCODING = "utf-8"
OUTPUT_NEWLINE = "\n"

# Delimiters the reader will sniff for; anything else falls back to whitespace.
INPUT_DELIMITERS = [",", ";", "\t", "|"]
COMMENT_PREFIX = "#"

# Python's round(): ties go to the even neighbour (round(2.5) == 2).
ROUNDING = "half_to_even"
