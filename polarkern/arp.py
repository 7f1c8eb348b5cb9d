"""ARP packets and the address cache."""

from __future__ import annotations

import struct
from dataclasses import dataclass, replace
from typing import Optional

from polarkern.ip import REQ_TYPE_ARP, REQ_TYPE_IP, NicInterface

HW_TYPE_ETHERNET = 1
ARP_REQUEST = 1
ARP_REPLY = 2

BROADCAST_IP = b"\xff" * 4
BROADCAST_MAC = b"\xff" * 6
DEFAULT_IP = bytes([192, 168, 10, 10])

_ARP = struct.Struct("!HHBBH6s4s6s4s")


@dataclass
class ArpPacket:
    hw_type: int = 0
    protocol: int = 0
    hw_addr_len: int = 0
    protocol_addr_len: int = 0
    opcode: int = 0
    source_mac: bytes = bytes(6)
    source_protocol_addr: bytes = bytes(4)
    destination_mac: bytes = bytes(6)
    destination_protocol_addr: bytes = bytes(4)

    @classmethod
    def parse(cls, data: bytes) -> "ArpPacket":
        if len(data) < _ARP.size:
            raise ValueError("ARP packet too short")
        return cls(*_ARP.unpack_from(data))

    def pack(self) -> bytes:
        return _ARP.pack(
            self.hw_type, self.protocol, self.hw_addr_len,
            self.protocol_addr_len, self.opcode, bytes(self.source_mac),
            bytes(self.source_protocol_addr), bytes(self.destination_mac),
            bytes(self.destination_protocol_addr),
        )


class ArpCache:
    """Learnt IP-to-MAC mappings plus the address last asked for."""

    def __init__(self, my_ip: bytes = DEFAULT_IP) -> None:
        self.my_ip = bytes(my_ip)
        self.pending_ip = bytes(4)
        self._entries: dict[bytes, bytes] = {}

    @property
    def entries(self) -> dict[bytes, bytes]:
        return dict(self._entries)

    def lookup_entry(self, ip: bytes) -> Optional[bytes]:
        """Return the MAC address learnt for ``ip``, or None."""
        return self._entries.get(bytes(ip))

    def handle(self, packet: ArpPacket, nic: NicInterface) -> Optional[ArpPacket]:
        """Answer requests and record replies; return a reply if one was sent."""
        sender_mac = bytes(packet.source_mac)
        sender_ip = bytes(packet.source_protocol_addr)

        if packet.opcode == ARP_REQUEST:
            reply = ArpPacket(
                hw_type=HW_TYPE_ETHERNET,
                protocol=REQ_TYPE_IP,
                hw_addr_len=6,
                protocol_addr_len=4,
                opcode=ARP_REPLY,
                source_mac=bytes(nic.mac),
                source_protocol_addr=bytes(nic.ip_address),
                destination_mac=sender_mac,
                destination_protocol_addr=sender_ip,
            )
            nic.send_packet(sender_mac, reply.pack(), REQ_TYPE_ARP)
            return reply

        if packet.opcode == ARP_REPLY:
            if sender_ip != self.my_ip:
                return None
            self._entries.setdefault(self.pending_ip, sender_mac)
            self.pending_ip = bytes(4)
        return None

    def send(self, packet: ArpPacket, nic: NicInterface) -> ArpPacket:
        """Send ``packet`` as a request from ``nic``; return what was sent."""
        outgoing = replace(
            packet,
            source_mac=bytes(nic.mac),
            source_protocol_addr=bytes(nic.ip_address),
            opcode=ARP_REQUEST,
            hw_addr_len=6,
            protocol_addr_len=4,
            hw_type=HW_TYPE_ETHERNET,
            protocol=REQ_TYPE_IP,
        )
        nic.send_packet(outgoing.destination_mac, outgoing.pack(), REQ_TYPE_ARP)
        return outgoing

    def request(self, ip: bytes, nic: NicInterface) -> ArpPacket:
        """Broadcast a request for the MAC address of ``ip``."""
        self.pending_ip = bytes(ip)
        return self.send(
            ArpPacket(destination_protocol_addr=bytes(ip),
                      destination_mac=BROADCAST_MAC),
            nic,
        )