from polarkern.icmp import ICMP_ECHO_REPLY, ICMP_ECHO_REQUEST, echo_reply
from polarkern.ip import PROTO_ICMP, IpPacket, NicInterface, checksum

PEER_MAC = bytes.fromhex("020000000002")
PEER_IP = bytes([192, 168, 10, 1])


def make_nic():
    return NicInterface(mac=bytes.fromhex("020000000001"),
                        ip_address=bytes([192, 168, 10, 10]))


def make_echo(kind):
    body = bytes([kind, 0, 0, 0]) + b"\x00\x01\x00\x02ping"
    return IpPacket(protocol=PROTO_ICMP, source=PEER_IP,
                    destination=bytes([192, 168, 10, 10]), data=body)


def test_request_gets_reply():
    nic = make_nic()
    request = make_echo(ICMP_ECHO_REQUEST)
    echo_reply(request, PEER_MAC, nic)
    dest_mac, frame, _ = nic.sent[0]
    assert dest_mac == PEER_MAC
    reply = IpPacket.parse(frame)
    assert reply.data[0] == ICMP_ECHO_REPLY
    assert checksum(reply.data) == 0
    assert reply.data[4:] == request.data[4:]
    assert reply.destination == PEER_IP
    assert reply.protocol == PROTO_ICMP


def test_non_request_ignored():
    nic = make_nic()
    assert echo_reply(make_echo(ICMP_ECHO_REPLY), PEER_MAC, nic) is None
    assert nic.sent == []


def test_request_not_mutated():
    nic = make_nic()
    request = make_echo(ICMP_ECHO_REQUEST)
    original = request.data
    echo_reply(request, PEER_MAC, nic)
    assert request.data == original