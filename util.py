import os
import re
import math
import glob
import datetime, pytz
from decimal import Decimal, ROUND_HALF_UP

class SummaryOptions:
    """Stores some parameters of the descriptor snapshot format."""
    bytes_per_mib = 1048576
    seconds_per_day = 86400
    # collector names files like 2025-02-11-10-05-00-server-descriptors
    descriptor_file_pattern = "*-server-descriptors"
    descriptor_marker = "@type server-descriptor"
    filename_time_format = "%Y-%m-%d-%H-%M-%S"
    ndigits = 2

FILENAME_TIMESTAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2})")
LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def find_descriptor_files(in_dir, pattern=None):
    """Returns the sorted list of descriptor files of a snapshot directory."""
    if pattern is None:
        pattern = SummaryOptions.descriptor_file_pattern
    pathnames = [path for path in glob.glob(os.path.join(in_dir, pattern))
            if os.path.isfile(path)]
    pathnames.sort()
    return pathnames

def timestamp_from_filename(filename):
    match = FILENAME_TIMESTAMP_RE.search(os.path.basename(filename))
    if match:
        return match.group(1)
    return ""

def latest_file_timestamp(filenames):
    # timestamps are fixed width, string order is time order
    latest = ""
    for filename in filenames:
        ts = timestamp_from_filename(filename)
        if ts > latest:
            latest = ts
    return latest

def parse_snapshot_time(ts):
    """Returns a UTC datetime for a filename timestamp, None if it does not parse"""
    if not ts:
        return None
    try:
        t = datetime.datetime.strptime(ts, SummaryOptions.filename_time_format)
    except ValueError:
        return None
    return t.replace(tzinfo=pytz.UTC)

def timestamp(t):
    """Returns UNIX timestamp"""
    td = t - datetime.datetime(1970, 1, 1, tzinfo=pytz.UTC)
    ts = td.days*24*60*60 + td.seconds
    return ts

def to_float(text):
    """
    Lenient numeric coercion of a descriptor field: the leading numeric part
    of the text, 0.0 when there is none.
    """
    if text is None:
        return 0.0
    match = LEADING_FLOAT_RE.match(str(text))
    if not match:
        return 0.0
    return float(match.group(0))

def round_half_up(value, ndigits=SummaryOptions.ndigits):
    """round() with ties going away from zero instead of to even"""
    # past 1e15 a double has no digits left after the point to round
    if not math.isfinite(value) or abs(value) >= 1e15:
        return value
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))

def mean(vals):
    if len(vals) == 0:
        return 0
    return sum(vals)/len(vals)
