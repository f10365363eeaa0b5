import argparse
import sys, os
import json
import logging
from util import SummaryOptions, find_descriptor_files, latest_file_timestamp, \
        parse_snapshot_time, timestamp
from process_descriptors import read_relay_file
from families import group_relays_by_family
from family_metrics import overall_parsing_stats, prepare_summary_metrics, \
        summary_dataframe
from as_cache import ASCache

"""

Takes a directory of Tor server descriptor files (one Collector snapshot),
groups relays by declared family, and outputs per-family metrics: relay
counts, uptime, bandwidth, and address/AS diversity.

AS information comes from ipinfo.io and is cached in a JSON file shared
between runs. The token is taken from --ipinfo_token, then from the
IPINFO_TOKEN environment variable, then from the "ipinfo_token" key of the
--secrets JSON file.

"""

parser = argparse.ArgumentParser(description="Summarize relay families of a Tor server descriptor snapshot")
parser.add_argument("--in_dir", help="directory where are located the server descriptor files", required=True)
parser.add_argument("--pattern", help="glob pattern of descriptor files in in_dir",
        default=SummaryOptions.descriptor_file_pattern)
parser.add_argument("--as_cache", help="path to the JSON file caching AS lookups", default="as_cache.json")
parser.add_argument("--ipinfo_token", help="ipinfo.io API token")
parser.add_argument("--secrets", help="JSON file with an ipinfo_token entry")
parser.add_argument("--lookup_workers", type=int, default=1,
        help="number of concurrent AS lookups for addresses not yet cached")
parser.add_argument("--lookup_timeout", type=float, default=None,
        help="timeout in seconds of one AS lookup (default: wait forever)")
parser.add_argument("--out_csv", help="write the family summary to this CSV file")
parser.add_argument("--out_json", help="write totals and family summary to this JSON file")
parser.add_argument("--debug", action="store_true", default=False)

log = logging.getLogger('family_summary')


def setup_logging(debug=False):
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt="%(asctime)s [%(levelname)s]: "
                                                   "%(message)s"))
        log.addHandler(handler)
    log.setLevel(logging.DEBUG if debug else logging.INFO)

def load_token(args, environ=None):
    """Returns the ipinfo token: flag first, then environment, then secrets file"""
    if environ is None:
        environ = os.environ
    if args.ipinfo_token:
        return args.ipinfo_token
    if environ.get("IPINFO_TOKEN"):
        return environ["IPINFO_TOKEN"]
    if args.secrets:
        try:
            with open(args.secrets) as f:
                secrets = json.load(f)
        except (OSError, ValueError) as e:
            raise ValueError("Cannot read secrets file {}: {}".format(args.secrets, e))
        if isinstance(secrets, dict) and secrets.get("ipinfo_token"):
            return secrets["ipinfo_token"]
    return None

def read_snapshot(pathnames):
    """Parses every descriptor file, skipping (and logging) the unreadable ones"""
    relays = []
    for pathname in pathnames:
        print("Processing descriptor file {0}".format(os.path.basename(pathname)))
        try:
            relays.extend(read_relay_file(pathname))
        except OSError as e:
            log.error("Cannot read %s: %s", pathname, e)
    return relays

def summarize_snapshot(relays, as_cache, lookup_workers=1):
    """
    Returns (overall totals, family key -> family_metrics.FamilySummary),
    i.e. all the data needed to render a snapshot report.
    """
    overall = overall_parsing_stats(relays)
    family_groups = group_relays_by_family(relays)
    if lookup_workers > 1:
        as_cache.prefetch([relay.ipv4 for relay in relays], workers=lookup_workers)
    summary = prepare_summary_metrics(family_groups, as_cache)
    return overall, summary

def write_json(outpath, snapshot, overall, summary):
    snapshot_time = parse_snapshot_time(snapshot)
    out = {
        'snapshot': snapshot,
        'snapshot_unix': timestamp(snapshot_time) if snapshot_time is not None else None,
        'overall': overall,
        'families': {key: family_summary.as_row() for key, family_summary in summary.items()},
    }
    with open(outpath, "w") as f:
        json.dump(out, f, indent=2)

def main(args):
    setup_logging(args.debug)
    token = load_token(args)
    if token is None:
        log.warning("No ipinfo token given, AS lookups will be rate limited")

    pathnames = find_descriptor_files(args.in_dir, args.pattern)
    if len(pathnames) == 0:
        log.warning("No file matching %s in %s", args.pattern, args.in_dir)
    snapshot = latest_file_timestamp(pathnames)
    relays = read_snapshot(pathnames)
    log.info("Total relays parsed from all files: %d", len(relays))

    with ASCache(args.as_cache, token=token, timeout=args.lookup_timeout).load() as as_cache:
        overall, summary = summarize_snapshot(relays, as_cache, args.lookup_workers)
        log.info("AS cache: %d hits, %d misses, %d lookups", as_cache.hits,
                as_cache.misses, as_cache.lookups)

    print("# of relays parsed: {0}".format(overall['totalRelays']))
    print("# of unique fingerprints parsed: {0}".format(overall['uniqueFingerprints']))
    print("# of unique contact information parsed: {0}".format(overall['uniqueContacts']))
    print("# of unique IPv4 Addresses parsed: {0}".format(overall['uniqueIPv4']))
    print("Summary as of {0} from Tor server descriptor files".format(snapshot))
    df = summary_dataframe(summary)
    if not df.empty:
        print(df.to_string(index=False))

    if args.out_csv:
        df.to_csv(args.out_csv, index=False)
        print("Family summary written to {0}".format(args.out_csv))
    if args.out_json:
        write_json(args.out_json, snapshot, overall, summary)
        print("Totals and family summary written to {0}".format(args.out_json))
    return 0

def cli():
    return main(parser.parse_args())

if __name__ == "__main__":

    args = parser.parse_args()
    sys.exit(main(args))
