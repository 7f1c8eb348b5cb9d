"""Dispatching received Ethernet frames to the protocol handlers."""

from __future__ import annotations

import logging
import struct
from dataclasses import replace
from typing import Optional

from polarkern.arp import ArpCache, ArpPacket
from polarkern.icmp import echo_reply
from polarkern.ip import (
    PROTO_ICMP,
    PROTO_UDP,
    REQ_TYPE_ARP,
    REQ_TYPE_IP,
    IpPacket,
    NicInterface,
)
from polarkern.udp import handle_udp

logger = logging.getLogger(__name__)

_ETHERNET = struct.Struct("!6s6sH")


class NetworkStack:
    """Routes frames to ARP, ICMP and UDP."""

    def __init__(self, arp: Optional[ArpCache] = None) -> None:
        self.arp = arp if arp is not None else ArpCache()

    def handle_packet(self, frame: bytes, nic: NicInterface) -> object:
        """Handle one Ethernet frame; return whatever its handler returned."""
        if len(frame) < _ETHERNET.size:
            raise ValueError("frame shorter than an Ethernet header")
        _, source_mac, ethertype = _ETHERNET.unpack_from(frame)
        payload = bytes(frame[_ETHERNET.size:])

        if ethertype == REQ_TYPE_ARP:
            return self.arp.handle(ArpPacket.parse(payload), nic)
        if ethertype == REQ_TYPE_IP:
            return self.handle_ip(IpPacket.parse(payload), source_mac, nic)
        logger.warning("NET: Unknown request type 0x%x", ethertype)
        return None

    def handle_ip(self, packet: IpPacket, dest_mac: bytes,
                  nic: NicInterface) -> Optional[IpPacket]:
        if packet.protocol == PROTO_ICMP:
            return echo_reply(replace(packet), dest_mac, nic)
        if packet.protocol == PROTO_UDP:
            return handle_udp(packet, dest_mac, nic)
        return None