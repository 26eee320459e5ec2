"""Wake-on-LAN magic packets."""

from __future__ import annotations

import asyncio
import logging
import socket

from unraid_control.const import WOL_PORT
from unraid_control.exceptions import UnraidConfigurationError, UnraidConnectionError
from unraid_control.models import normalize_mac

_LOGGER = logging.getLogger(__name__)


def build_magic_packet(mac: str) -> bytes:
    """Build a Wake-on-LAN magic packet.

    Args:
        mac: MAC address, colon or dash separated.

    Returns:
        Six 0xFF bytes followed by the MAC repeated 16 times.

    Raises:
        UnraidConfigurationError: The MAC address is malformed.

    """
    try:
        normalized = normalize_mac(mac)
    except ValueError as err:
        raise UnraidConfigurationError(str(err)) from err
    address = bytes.fromhex(normalized.replace(":", ""))
    return b"\xff" * 6 + address * 16


async def send_magic_packet(
    mac: str,
    broadcast: str = "255.255.255.255",
    port: int = WOL_PORT,
) -> None:
    """Broadcast a magic packet for ``mac``.

    Args:
        mac: MAC address of the host to wake.
        broadcast: Broadcast address to send to.
        port: UDP port (9 by convention).

    Raises:
        UnraidConfigurationError: The MAC address is malformed.
        UnraidConnectionError: The packet could not be sent.

    """
    packet = build_magic_packet(mac)
    loop = asyncio.get_running_loop()
    try:
        transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol,
            family=socket.AF_INET,
            allow_broadcast=True,
        )
    except OSError as err:
        raise UnraidConnectionError(f"Wake-on-LAN socket error: {err}") from err

    try:
        transport.sendto(packet, (broadcast, port))
    except OSError as err:
        raise UnraidConnectionError(f"Wake-on-LAN send failed: {err}") from err
    finally:
        transport.close()

    _LOGGER.info("Sent Wake-on-LAN packet to %s via %s:%s", mac, broadcast, port)
