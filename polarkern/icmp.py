"""Answering ICMP echo requests."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from polarkern.ip import IpPacket, NicInterface, checksum, send_ip

ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8


def echo_reply(packet: IpPacket, dest_mac: bytes,
               nic: NicInterface) -> Optional[IpPacket]:
    """Send the reply to an echo request; other messages are ignored."""
    data = packet.data
    if len(data) < 4 or data[0] != ICMP_ECHO_REQUEST:
        return None
    body = bytearray(data)
    body[0] = ICMP_ECHO_REPLY
    body[2:4] = b"\0\0"
    body[2:4] = checksum(body).to_bytes(2, "big")
    return send_ip(replace(packet, data=bytes(body)), packet.source,
                   dest_mac, nic)