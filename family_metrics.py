import logging
import pandas
from util import SummaryOptions, to_float, round_half_up, mean

"""

Computes, for each relay family, the summary metrics we report on a
snapshot: relay counts, uptime, bandwidth and address/AS diversity.

Bandwidths are announced in bytes/s and reported in MiB/s, uptimes are
announced in seconds and reported in days. Fields missing from a descriptor
are left out of the corresponding sum and average instead of counting as 0.

"""

log = logging.getLogger('family_summary.metrics')

FAMILY_COLUMN = "Family (Fingerprints)"

# column label -> FamilySummary attribute, in presentation order
SUMMARY_COLUMNS = [
    ("Contact", "contact"),
    ("# of Relays", "relay_count"),
    ("Exit Count", "exit_count"),
    ("Non-Exit Count", "non_exit_count"),
    ("Avg Uptime (days)", "avg_uptime_days"),
    ("Total Bandwidth Observed (MiB/s)", "total_bw_observed"),
    ("Avg Bandwidth Observed (MiB/s)", "avg_bw_observed"),
    ("Unique IPv4 Addresses", "unique_ipv4"),
    ("Unique ORPorts", "unique_orports"),
    ("Unique ASN Count", "unique_asn_count"),
    ("IPv4 w/o ASN Count", "ipv4_without_asn_count"),
    ("Total Bandwidth Sustained (MiB/s)", "total_bw_sustained"),
    ("Avg Bandwidth Sustained (MiB/s)", "avg_bw_sustained"),
    ("Avg Bandwidth Burst (MiB/s)", "avg_bw_burst"),
    ("Total Bandwidth Burst (MiB/s)", "total_bw_burst"),
]


class FamilySummary:

    def __init__(self, key, contact="", relay_count=0, exit_count=0,
            avg_uptime_days=0.0, total_bw_observed=0.0, avg_bw_observed=0.0,
            total_bw_sustained=0.0, avg_bw_sustained=0.0, total_bw_burst=0.0,
            avg_bw_burst=0.0, unique_ipv4=0, unique_orports=0, unique_asn_count=0,
            ipv4_without_asn_count=0):
        self.key = key
        self.contact = contact
        self.relay_count = relay_count
        self.exit_count = exit_count
        self.non_exit_count = relay_count - exit_count
        self.avg_uptime_days = avg_uptime_days
        # MiB/s
        self.total_bw_observed = total_bw_observed
        self.avg_bw_observed = avg_bw_observed
        self.total_bw_sustained = total_bw_sustained
        self.avg_bw_sustained = avg_bw_sustained
        self.total_bw_burst = total_bw_burst
        self.avg_bw_burst = avg_bw_burst
        self.unique_ipv4 = unique_ipv4
        self.unique_orports = unique_orports
        self.unique_asn_count = unique_asn_count
        self.ipv4_without_asn_count = ipv4_without_asn_count

    def as_row(self):
        return {label: getattr(self, attr) for label, attr in SUMMARY_COLUMNS}

    def __repr__(self):
        return "FamilySummary({!r}, relays={})".format(self.key, self.relay_count)


def unique(vals):
    """Distinct values, in order of first appearance"""
    return list(dict.fromkeys(vals))

def overall_parsing_stats(relays):
    """
    Totals over the flat list of parsed relays, before any grouping. Relays
    without fingerprint are counted by nickname.
    """
    relays = list(relays)
    fingerprints = []
    contacts = []
    ipv4_addresses = []
    for relay in relays:
        if relay.fingerprint is not None:
            fingerprints.append(relay.fingerprint)
        elif relay.nickname is not None:
            fingerprints.append(relay.nickname)
        if relay.contact is not None:
            contacts.append(relay.contact)
        if relay.ipv4 is not None:
            ipv4_addresses.append(relay.ipv4)
    return {
        'totalRelays': len(relays),
        'uniqueFingerprints': len(set(fingerprints)),
        'uniqueContacts': len(set(contacts)),
        'uniqueIPv4': len(set(ipv4_addresses)),
    }

def to_mib(num_bytes):
    return round_half_up(num_bytes / SummaryOptions.bytes_per_mib)

def summarize_family(group, as_cache):
    """Returns the FamilySummary of a families.FamilyGroup"""
    uptimes, bws_avg, bws_burst, bws_observed = [], [], [], []
    ipv4s, orports, contacts = [], [], []
    exit_count = 0
    for relay in group:
        if relay.uptime is not None:
            uptimes.append(to_float(relay.uptime))
        if relay.bandwidth_avg is not None:
            bws_avg.append(to_float(relay.bandwidth_avg))
        if relay.bandwidth_burst is not None:
            bws_burst.append(to_float(relay.bandwidth_burst))
        if relay.bandwidth_observed is not None:
            bws_observed.append(to_float(relay.bandwidth_observed))
        if relay.ipv4 is not None:
            ipv4s.append(relay.ipv4)
        if relay.orport is not None:
            orports.append(relay.orport)
        if relay.exit_relay is True:
            exit_count += 1
        if relay.contact is not None:
            contacts.append(relay.contact)

    # one lookup per distinct address
    valid_ases = set()
    ipv4_no_asn = []
    for ip in unique(ipv4s):
        result = as_cache.resolve(ip)
        if result.is_valid():
            valid_ases.add(result.org)
        else:
            ipv4_no_asn.append(ip)

    return FamilySummary(group.key,
            contact="; ".join(unique(contacts)),
            relay_count=len(group),
            exit_count=exit_count,
            avg_uptime_days=round_half_up(mean(uptimes) / SummaryOptions.seconds_per_day),
            total_bw_observed=to_mib(sum(bws_observed)),
            avg_bw_observed=to_mib(mean(bws_observed)),
            total_bw_sustained=to_mib(sum(bws_avg)),
            avg_bw_sustained=to_mib(mean(bws_avg)),
            total_bw_burst=to_mib(sum(bws_burst)),
            avg_bw_burst=to_mib(mean(bws_burst)),
            unique_ipv4=len(set(ipv4s)),
            unique_orports=len(set(orports)),
            unique_asn_count=len(valid_ases),
            ipv4_without_asn_count=len(set(ipv4_no_asn)))

def prepare_summary_metrics(family_groups, as_cache):
    """
    Returns a dict family key -> FamilySummary, largest families first. Ties
    keep the order of family_groups.
    """
    summaries = []
    for key, group in family_groups.items():
        summaries.append((key, summarize_family(group, as_cache)))
        log.debug("Summarized family %s (%d relays)", key, len(group))
    summaries.sort(key=lambda item: item[1].relay_count, reverse=True)
    return dict(summaries)

def summary_dataframe(summary):
    """One row per family, columns in presentation order"""
    columns = [FAMILY_COLUMN] + [label for label, _ in SUMMARY_COLUMNS]
    rows = []
    for key, family_summary in summary.items():
        row = {FAMILY_COLUMN: key}
        row.update(family_summary.as_row())
        rows.append(row)
    return pandas.DataFrame(rows, columns=columns)
