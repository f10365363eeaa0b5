import re
import logging
from slim_desc import RelayRecord
from util import SummaryOptions

"""

Reads Tor server descriptor files as published by Collector and keeps, for
each descriptor block, the handful of fields we need to summarize relay
families. This is a best-effort line parser: signatures are not verified and
malformed lines are skipped rather than rejected.

"""

log = logging.getLogger('family_summary.descriptors')

BLOCK_START_RE = re.compile(r"(?={})".format(re.escape(SummaryOptions.descriptor_marker)))


def parse_relay_block(block, logger=log):
    """Parses one descriptor block into a slim_desc.RelayRecord"""
    relay = RelayRecord()
    for line in block.split("\n"):
        line = line.strip()
        if not line:
            continue
        if "accept" in line.lower():
            relay.exit_relay = True
            logger.debug("Found 'accept' in line: '%s'; marking relay as exit.", line)

        tokens = line.split()
        keyword = tokens[0].lower()
        if keyword == "@type":
            continue
        elif keyword == "router":
            # router <nickname> <address> <ORPort> <SOCKSPort> <DirPort>
            if len(tokens) >= 6:
                relay.nickname, relay.ipv4, relay.orport, relay.socksport, \
                        relay.dirport = tokens[1:6]
                logger.debug("Parsed router line. Nickname: %s, IPv4: %s, ORPort: %s, "
                        "SOCKSPort: %s, DirPort: %s", relay.nickname, relay.ipv4,
                        relay.orport, relay.socksport, relay.dirport)
            else:
                logger.debug("Incomplete router line: %s", line)
        elif keyword == "uptime":
            if len(tokens) >= 2:
                relay.uptime = tokens[1]
        elif keyword == "bandwidth":
            # bandwidth <avg> <burst> <observed>, all in bytes/s
            if len(tokens) >= 4:
                relay.bandwidth_avg, relay.bandwidth_burst, \
                        relay.bandwidth_observed = tokens[1:4]
        elif keyword == "family":
            if len(tokens) >= 2:
                relay.family = " ".join(tokens[1:])
        elif keyword == "contact":
            # several contact lines add up, and an empty one still counts
            relay.add_contact(" ".join(tokens[1:]))
        elif keyword == "fingerprint":
            if len(tokens) >= 2:
                relay.fingerprint = " ".join(tokens[1:])
        else:
            logger.debug("Unhandled keyword: %s - line: %s", keyword, line)
    return relay

def split_blocks(contents):
    """
    Yields the raw descriptor blocks of a file's contents, cutting right
    before every '@type server-descriptor' marker. Text before the first
    marker comes out as its own block.
    """
    start = 0
    for match in BLOCK_START_RE.finditer(contents):
        if match.start() > start:
            yield contents[start:match.start()]
        start = match.start()
    if start < len(contents):
        yield contents[start:]

def read_relay_file(path, logger=log):
    """Yields the usable slim_desc.RelayRecord of a descriptor file"""
    with open(path, encoding="utf-8", errors="replace") as f:
        contents = f.read()
    num_blocks = 0
    num_relays = 0
    for block in split_blocks(contents):
        block = block.strip()
        if not block:
            continue
        num_blocks += 1
        relay = parse_relay_block(block, logger)
        if not relay.is_usable():
            logger.debug("Dropping block %d of %s: no router nickname", num_blocks, path)
            continue
        num_relays += 1
        yield relay
    logger.info("%s: %d blocks, %d relays kept", path, num_blocks, num_relays)

def read_relay_files(paths, logger=log):
    for path in paths:
        for relay in read_relay_file(path, logger):
            yield relay
