"""
MVP Report Writer

Turns a completed frequency map into the fixed-format report: a two-line
header followed by one row per distinct key, highest count first.
"""

from mvp_errors import OutOfMemory, ReportWriteError

REPORT_PATH = "reporte mvp.txt"
KEY_COLUMN_WIDTH = 24
HEADER_RULE_WIDTH = 35

HEADER_TITLE = b"Jugador MVP"
HEADER_COUNT = b"Premios"


def visible_char_count(key):
    """
    Count UTF-8 code points in a byte string.

    Every byte except continuation bytes (top bits 10) starts a character.
    Combining marks and wide characters are not accounted for.
    """
    return sum(1 for byte in key if byte & 0xC0 != 0x80)


def pad_key(key, width=KEY_COLUMN_WIDTH):
    """Append ASCII spaces until the key shows `width` characters."""
    missing = width - visible_char_count(key)
    if missing <= 0:
        return key
    return key + b" " * missing


def sorted_entries(frequency_map):
    """
    Snapshot the map into (key, count) pairs sorted by count descending.

    Equal counts are ordered by key bytes ascending so repeated runs produce
    identical reports.
    """
    try:
        entries = frequency_map.items()
    except MemoryError as e:
        raise OutOfMemory(f"Cannot allocate {len(frequency_map):,} report rows") from e

    entries.sort(key=lambda pair: (-pair[1], pair[0]))
    return entries


def format_report(entries):
    """Yield the report lines as bytes, newline included."""
    title_padding = KEY_COLUMN_WIDTH - len(HEADER_TITLE)
    yield HEADER_TITLE + b" " * title_padding + b"|\t" + HEADER_COUNT + b"\n"
    yield b"-" * HEADER_RULE_WIDTH + b"\n"

    for key, count in entries:
        yield pad_key(key) + b"|\t" + str(count).encode("ascii") + b"\n"


def write_report(frequency_map, output_file=REPORT_PATH):
    """Write the sorted report for frequency_map. Returns the number of rows."""
    entries = sorted_entries(frequency_map)

    try:
        with open(output_file, "wb") as f:
            for line in format_report(entries):
                f.write(line)
    except OSError as e:
        raise ReportWriteError(f"Cannot write report {output_file}: {e}") from e

    return len(entries)
