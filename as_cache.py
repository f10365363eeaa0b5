import os
import json
import logging
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
import ipaddress
import requests
from slim_ases import ASLookup

"""

Resolves relay IPv4 addresses to the organization (AS) announcing them using
ipinfo.io, and keeps every answer in a JSON file so that the next snapshot
does not ask again.

Failed lookups are kept as well (invalid address, no AS data, transport
error) and are never retried unless the cache file is removed.

"""

IPINFO_URL = "https://ipinfo.io/{ip}/json?token={token}"

log = logging.getLogger('family_summary.as_cache')


def is_valid_ipv4(ip):
    """Dotted-quad check: ASCII digits only, no leading zeros"""
    try:
        ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return True


class ASCache:
    """
    IPv4 -> AS lookup result, backed by a JSON object file mapping each IPv4
    to the org string or to the error text of the failed lookup.

    Lifecycle: construct, load(), any number of resolve(), persist(). With
    persist_every_write (the default) the file is rewritten after each new
    entry, so a crash loses at most the lookup in flight.
    """

    def __init__(self, path, token=None, session=None, timeout=None,
            persist_every_write=True):
        self.path = path
        self.token = token or ""
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.persist_every_write = persist_every_write
        self.persist_enabled = path is not None
        self.entries = {}
        self.dirty = False
        self.hits = 0
        self.misses = 0
        self.lookups = 0
        # guards entries, counters and the cache file
        self._lock = threading.Lock()
        self._ip_locks = {}
        self._ip_locks_guard = threading.Lock()

    def load(self):
        self.entries = {}
        if self.path is None or not os.path.exists(self.path):
            return self
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Could not read AS cache %s (%s), starting empty", self.path, e)
            return self
        if not isinstance(data, dict):
            log.warning("AS cache %s does not hold a JSON object, starting empty", self.path)
            return self
        for ip, value in data.items():
            if value is not None:
                self.entries[ip] = str(value)
        log.info("Loaded %d AS cache entries from %s", len(self.entries), self.path)
        return self

    def resolve(self, ip):
        """Returns the slim_ases.ASLookup of ip, asking ipinfo.io only on a cache miss"""
        ip_lock = self._lock_for(ip)
        try:
            with ip_lock:
                value = self.entries.get(ip)
                if value is not None:
                    with self._lock:
                        self.hits += 1
                    return ASLookup.from_cache_value(value)
                with self._lock:
                    self.misses += 1
                result = self._lookup(ip)
                self._store(ip, result)
                return result
        finally:
            self._drop_lock(ip, ip_lock)

    def get_as(self, ip):
        return self.resolve(ip).to_cache_value()

    def prefetch(self, ips, workers=1):
        """
        Resolves all distinct ips ahead of aggregation. Lookups are I/O bound,
        so with workers > 1 they run in a thread pool; the same ip is never
        fetched twice at once.
        """
        ips = list(dict.fromkeys(ip for ip in ips if ip is not None))
        missing = [ip for ip in ips if ip not in self.entries]
        log.info("Prefetching AS information for %d addresses (%d not cached)",
                len(ips), len(missing))
        if workers <= 1:
            for ip in missing:
                self.resolve(ip)
            return
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.resolve, ip): ip for ip in missing}
            for future in as_completed(futures):
                future.result()

    def persist(self):
        with self._lock:
            return self._persist_locked()

    def _lock_for(self, ip):
        # ip -> [lock, number of resolve() calls holding or waiting on it]
        with self._ip_locks_guard:
            if ip not in self._ip_locks:
                self._ip_locks[ip] = [threading.Lock(), 0]
            self._ip_locks[ip][1] += 1
            return self._ip_locks[ip][0]

    def _drop_lock(self, ip, ip_lock):
        with self._ip_locks_guard:
            entry = self._ip_locks.get(ip)
            if entry is None or entry[0] is not ip_lock:
                return
            entry[1] -= 1
            if entry[1] == 0:
                del self._ip_locks[ip]

    def _lookup(self, ip):
        if not is_valid_ipv4(ip):
            log.debug("Not a valid IPv4 address: %s", ip)
            return ASLookup.invalid_address()
        url = IPINFO_URL.format(ip=ip, token=self.token)
        with self._lock:
            self.lookups += 1
        try:
            r = self.session.get(url, headers={"Accept": "application/json"},
                    timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            log.warning("AS lookup for %s failed: %s", ip, e)
            return ASLookup.transport_error(str(e))
        # ipinfo answers errors with a JSON body too, the status code is not used
        try:
            data = r.json()
        except ValueError:
            log.debug("AS lookup for %s did not return JSON", ip)
            return ASLookup.not_found()
        if isinstance(data, dict) and data.get("org") is not None:
            return ASLookup.found(str(data["org"]))
        return ASLookup.not_found()

    def _store(self, ip, result):
        with self._lock:
            self.entries[ip] = result.to_cache_value()
            self.dirty = True
            if self.persist_every_write:
                self._persist_locked()

    def _persist_locked(self):
        if not self.persist_enabled or not self.dirty:
            return False
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".as_cache-", suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(self.entries, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            log.error("Could not write AS cache %s: %s. Keeping lookups in memory "
                    "for the rest of the run", self.path, e)
            self.persist_enabled = False
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False
        self.dirty = False
        return True

    def __contains__(self, ip):
        return ip in self.entries

    def __len__(self):
        return len(self.entries)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.persist()
