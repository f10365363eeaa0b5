from process_descriptors import parse_relay_block, split_blocks, read_relay_file, \
        read_relay_files

FP_A = "A" * 40
FP_B = "B" * 40

ALICE = """@type server-descriptor 1.0
router alice 1.2.3.4 9001 0 0
platform Tor 0.4.8.9 on Linux
published 2025-02-11 09:14:03
fingerprint 0123 4567 89AB CDEF 0123 4567 89AB CDEF 0123 4567
uptime 86400
bandwidth 1048576 2097152 3145728
family ${} ${}
contact alice at example dot org
reject *:*
""".format(FP_B, FP_A)

BOB = """@type server-descriptor 1.0
router bob 5.6.7.8 443 0 80
family ${}
exitpolicy accept *:*
""".format(FP_A)


def test_router_line():
    relay = parse_relay_block(ALICE)
    assert(relay.nickname == "alice")
    assert(relay.ipv4 == "1.2.3.4")
    assert(relay.orport == "9001")
    assert(relay.socksport == "0")
    assert(relay.dirport == "0")

def test_fields_stay_text():
    relay = parse_relay_block(ALICE)
    assert(relay.uptime == "86400")
    assert(relay.bandwidth_avg == "1048576")
    assert(relay.bandwidth_burst == "2097152")
    assert(relay.bandwidth_observed == "3145728")
    assert(relay.family == "${} ${}".format(FP_B, FP_A))
    assert(relay.fingerprint == "0123 4567 89AB CDEF 0123 4567 89AB CDEF 0123 4567")
    assert(relay.contact == "alice at example dot org")
    assert(relay.exit_relay is False)

def test_short_router_line_is_ignored():
    relay = parse_relay_block("router alice 1.2.3.4 9001 0\nuptime 10\n")
    assert(relay.nickname is None)
    assert(relay.ipv4 is None)
    assert(relay.uptime == "10")

def test_short_lines_only_skip_their_field():
    relay = parse_relay_block("bandwidth 1 2\nuptime\nfamily\nfingerprint\n"
            "router carol 10.0.0.1 9001 0 0\n")
    assert(relay.bandwidth_avg is None)
    assert(relay.uptime is None)
    assert(relay.family is None)
    assert(relay.fingerprint is None)
    assert(relay.nickname == "carol")

def test_contact_lines_accumulate():
    relay = parse_relay_block("router a 1.1.1.1 1 0 0\ncontact A\ncontact B\n")
    assert(relay.contact == "A; B")

def test_empty_contact_line():
    relay = parse_relay_block("router a 1.1.1.1 1 0 0\ncontact\ncontact B\n")
    assert(relay.contact == "; B")

def test_family_spacing_normalized():
    relay = parse_relay_block("family   $x    $y\t$z\n")
    assert(relay.family == "$x $y $z")

def test_accept_anywhere_marks_exit():
    relay = parse_relay_block(BOB)
    assert(relay.exit_relay is True)
    relay = parse_relay_block("router a 1.1.1.1 1 0 0\ncontact ACCEPTS donations\n")
    assert(relay.exit_relay is True)

def test_keywords_are_case_insensitive():
    relay = parse_relay_block("ROUTER dave 4.4.4.4 9001 0 0\nUpTime 5\n")
    assert(relay.nickname == "dave")
    assert(relay.uptime == "5")

def test_split_blocks():
    blocks = list(split_blocks(ALICE + BOB))
    assert(len(blocks) == 2)
    assert(blocks[0].startswith("@type server-descriptor"))
    assert("router bob" in blocks[1])

def test_split_blocks_keeps_leading_text():
    blocks = list(split_blocks("junk\n" + BOB))
    assert(blocks == ["junk\n", BOB])

def test_read_relay_file_drops_blocks_without_nickname(tmp_path):
    path = tmp_path / "2025-02-11-10-05-00-server-descriptors"
    path.write_text(ALICE + "\n\n@type server-descriptor 1.0\nuptime 5\n" + BOB)
    relays = list(read_relay_file(str(path)))
    assert([relay.nickname for relay in relays] == ["alice", "bob"])

def test_read_relay_files_chains_in_order(tmp_path):
    first = tmp_path / "2025-02-11-10-05-00-server-descriptors"
    second = tmp_path / "2025-02-11-11-05-00-server-descriptors"
    first.write_text(BOB)
    second.write_text(ALICE)
    relays = list(read_relay_files([str(first), str(second)]))
    assert([relay.nickname for relay in relays] == ["bob", "alice"])
