"""

Used to keep the required information from Tor server descriptors in a fixed
shape. Numeric fields are kept as they appear in the descriptor text and only
converted when metrics are computed.

"""

class RelayRecord:

    def __init__(self, nickname=None, ipv4=None, orport=None, socksport=None,
            dirport=None, uptime=None, bandwidth_avg=None, bandwidth_burst=None,
            bandwidth_observed=None, family=None, contact=None, fingerprint=None,
            exit_relay=False):
        self.nickname = nickname
        self.ipv4 = ipv4
        self.orport = orport
        self.socksport = socksport
        self.dirport = dirport
        # seconds
        self.uptime = uptime
        # bytes/s, as announced on the bandwidth line
        self.bandwidth_avg = bandwidth_avg
        self.bandwidth_burst = bandwidth_burst
        self.bandwidth_observed = bandwidth_observed
        self.family = family
        self.contact = contact
        self.fingerprint = fingerprint
        # coarse: any line mentioning "accept", not a parsed exit policy
        self.exit_relay = exit_relay

    @property
    def identity(self):
        """Fingerprint when the descriptor had one, nickname otherwise."""
        if self.fingerprint is not None:
            return self.fingerprint
        return self.nickname

    def is_usable(self):
        return bool(self.nickname)

    def add_contact(self, contact_info):
        if self.contact is None:
            self.contact = contact_info
        else:
            self.contact = "{}; {}".format(self.contact, contact_info)

    def __eq__(self, other):
        if not isinstance(other, RelayRecord):
            return NotImplemented
        return self.__dict__ == other.__dict__

    def __repr__(self):
        return "RelayRecord(nickname={!r}, ipv4={!r}, fingerprint={!r})".format(
                self.nickname, self.ipv4, self.fingerprint)
