import re
import logging
from slim_desc import RelayRecord
"""

This file takes parsed relays and clusters them by the family they declare.
Two relays land in the same cluster when their family lines list the same
set of $fingerprints, whatever the order.

Relays without any recognizable $fingerprint in their family line all end up
in the NO_FAMILY cluster, together with relays that declare no family at all.

"""

log = logging.getLogger('family_summary.families')

NO_FAMILY = "no family"
FAMILY_FINGERPRINT_RE = re.compile(r"\$[A-Za-z0-9]{40}")


class FamilyGroup:

    def __init__(self, key):
        self.key = key
        # relay identity -> slim_desc.RelayRecord
        self.relays = {}

    def add_relay(self, relay):
        assert(isinstance(relay, RelayRecord))
        # same relay seen again: keep the latest descriptor
        self.relays[relay.identity] = relay

    def __len__(self):
        return len(self.relays)

    def __iter__(self):
        return iter(self.relays.values())


def family_fingerprints(family):
    if not family:
        return []
    return sorted(FAMILY_FINGERPRINT_RE.findall(family))

def family_key(relay):
    fingerprints = family_fingerprints(relay.family)
    if len(fingerprints) == 0:
        return NO_FAMILY
    return ",".join(fingerprints)

def group_relays_by_family(relays):
    """
    Returns a dict family key -> FamilyGroup, in the order in which each
    family key is first met.
    """
    family_groups = {}
    for relay in relays:
        key = family_key(relay)
        if key not in family_groups:
            family_groups[key] = FamilyGroup(key)
        family_groups[key].add_relay(relay)
        log.debug("Grouping relay '%s' under family key: %s", relay.nickname, key)
    return family_groups
