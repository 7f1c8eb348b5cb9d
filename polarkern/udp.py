"""UDP headers, the echo service and sending datagrams."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import Optional

from polarkern.ip import PROTO_UDP, IpPacket, NicInterface, send_ip

ECHO_PORT = 7
UDP_HEADER_SIZE = 8

_UDP = struct.Struct("!HHHH")


@dataclass
class UdpHeader:
    source_port: int
    destination_port: int
    length: int = 0
    checksum: int = 0

    @classmethod
    def parse(cls, data: bytes) -> "UdpHeader":
        if len(data) < UDP_HEADER_SIZE:
            raise ValueError("UDP datagram shorter than its header")
        return cls(*_UDP.unpack_from(data))

    def pack(self) -> bytes:
        return _UDP.pack(self.source_port, self.destination_port,
                         self.length, self.checksum)


def handle_udp(packet: IpPacket, dest_mac: bytes,
               nic: NicInterface) -> Optional[IpPacket]:
    """Echo datagrams sent to the echo port back to their sender."""
    header = UdpHeader.parse(packet.data)
    if header.destination_port != ECHO_PORT:
        return None
    swapped = replace(header, source_port=header.destination_port,
                      destination_port=header.source_port)
    reply = replace(packet,
                    data=swapped.pack() + packet.data[UDP_HEADER_SIZE:])
    return send_ip(reply, packet.source, dest_mac, nic)


def send_udp(payload: bytes, destination: bytes, dest_mac: bytes,
             dest_port: int, source_port: int,
             nic: NicInterface) -> IpPacket:
    """Send ``payload`` as one datagram; the checksum is left zero."""
    header = UdpHeader(source_port, dest_port,
                       len(payload) + UDP_HEADER_SIZE, 0)
    packet = IpPacket(protocol=PROTO_UDP, data=header.pack() + bytes(payload))
    return send_ip(packet, destination, dest_mac, nic)