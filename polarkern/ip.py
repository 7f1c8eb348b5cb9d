"""IPv4 headers, the internet checksum and sending IP packets."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

REQ_TYPE_IP = 0x0800
REQ_TYPE_ARP = 0x0806

PROTO_ICMP = 1
PROTO_UDP = 17

IP_HEADER_SIZE = 20
DEFAULT_TTL = 64
DONT_FRAGMENT = 0x4000

_HEADER = struct.Struct("!BBHHHBBH4s4s")


def checksum(data: bytes) -> int:
    """Internet checksum of ``data``, to be stored big-endian.

    An odd trailing byte is padded with a zero byte.
    """
    data = bytes(data)
    if len(data) % 2:
        data += b"\0"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def _swap16(value: int) -> int:
    return ((value & 0xFF) << 8) | ((value >> 8) & 0xFF)


@dataclass
class NicInterface:
    """A network card: its addresses and a way to put frames on the wire.

    Frames go to ``transmit`` when given, otherwise they are kept in
    ``sent`` as ``(dest_mac, payload, ethertype)`` tuples.
    """

    mac: bytes
    ip_address: bytes
    transmit: Optional[Callable[[bytes, bytes, int], None]] = None
    sent: list[tuple[bytes, bytes, int]] = field(default_factory=list)

    def send_packet(self, dest_mac: bytes, payload: bytes, ethertype: int) -> None:
        frame = (bytes(dest_mac), bytes(payload), ethertype)
        if self.transmit is not None:
            self.transmit(*frame)
        else:
            self.sent.append(frame)


@dataclass
class IpPacket:
    """An IPv4 packet: header fields and the payload after the header."""

    version: int = 4
    internet_header_length: int = 5
    type_of_service: int = 0
    length: int = 0
    id: int = 0
    fragment_offset: int = 0
    time_to_live: int = 0
    protocol: int = 0
    checksum: int = 0
    source: bytes = bytes(4)
    destination: bytes = bytes(4)
    data: bytes = b""

    @classmethod
    def parse(cls, data: bytes) -> "IpPacket":
        if len(data) < IP_HEADER_SIZE:
            raise ValueError("IP packet shorter than its header")
        (first, tos, length, ident, frag, ttl, proto, csum,
         source, destination) = _HEADER.unpack_from(data)
        ihl = first & 0x0F
        header_len = max(ihl * 4, IP_HEADER_SIZE)
        if header_len > len(data):
            raise ValueError("IP header length exceeds the packet")
        return cls(
            version=first >> 4,
            internet_header_length=ihl,
            type_of_service=tos,
            length=length,
            id=ident,
            fragment_offset=frag,
            time_to_live=ttl,
            protocol=proto,
            checksum=csum,
            source=source,
            destination=destination,
            data=bytes(data[header_len:]),
        )

    def header(self) -> bytes:
        """The fixed 20-byte header."""
        if len(self.source) != 4 or len(self.destination) != 4:
            raise ValueError("IPv4 addresses must be 4 bytes")
        return _HEADER.pack(
            ((self.version & 0x0F) << 4) | (self.internet_header_length & 0x0F),
            self.type_of_service,
            self.length,
            self.id,
            self.fragment_offset,
            self.time_to_live,
            self.protocol,
            self.checksum,
            bytes(self.source),
            bytes(self.destination),
        )

    def pack(self) -> bytes:
        return self.header() + bytes(self.data)


def send_ip(packet: IpPacket, destination: bytes, dest_mac: bytes,
            nic: NicInterface) -> IpPacket:
    """Fill in the header of ``packet``, send it and return what was sent.

    The identifier's byte order is swapped, as on the reply path.
    """
    outgoing = replace(
        packet,
        version=4,
        internet_header_length=5,
        length=(IP_HEADER_SIZE + len(packet.data)) & 0xFFFF,
        id=_swap16(packet.id),
        fragment_offset=DONT_FRAGMENT,
        time_to_live=DEFAULT_TTL,
        checksum=0,
        destination=bytes(destination),
        source=bytes(nic.ip_address),
    )
    outgoing.checksum = checksum(outgoing.header())
    nic.send_packet(dest_mac, outgoing.pack(), REQ_TYPE_IP)
    return outgoing