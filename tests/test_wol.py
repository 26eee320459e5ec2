"""Tests for Wake-on-LAN."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from unraid_control.exceptions import UnraidConfigurationError, UnraidConnectionError
from unraid_control.wol import build_magic_packet, send_magic_packet


class TestBuildMagicPacket:
    """Tests for build_magic_packet."""

    def test_packet_layout(self) -> None:
        """Test six 0xFF bytes followed by the MAC sixteen times."""
        packet = build_magic_packet("aa:bb:cc:dd:ee:ff")

        assert len(packet) == 102
        assert packet[:6] == b"\xff" * 6
        assert packet[6:] == bytes.fromhex("aabbccddeeff") * 16

    def test_dash_separated(self) -> None:
        """Test dash separated addresses are accepted."""
        assert build_magic_packet("AA-BB-CC-DD-EE-FF") == build_magic_packet(
            "AA:BB:CC:DD:EE:FF"
        )

    def test_invalid_mac(self) -> None:
        """Test malformed addresses are rejected."""
        with pytest.raises(UnraidConfigurationError):
            build_magic_packet("not-a-mac")


class TestSendMagicPacket:
    """Tests for send_magic_packet."""

    async def test_sends_broadcast(self) -> None:
        """Test the packet is sent to the broadcast address and port."""
        transport = MagicMock()
        loop = asyncio.get_running_loop()

        with patch.object(
            loop,
            "create_datagram_endpoint",
            AsyncMock(return_value=(transport, MagicMock())),
        ) as endpoint:
            await send_magic_packet("AA:BB:CC:DD:EE:FF", "192.168.1.255")

        assert endpoint.call_args.kwargs["allow_broadcast"] is True
        transport.sendto.assert_called_once_with(
            build_magic_packet("AA:BB:CC:DD:EE:FF"), ("192.168.1.255", 9)
        )
        transport.close.assert_called_once()

    async def test_socket_error(self) -> None:
        """Test socket errors surface as connection errors."""
        loop = asyncio.get_running_loop()

        with patch.object(
            loop,
            "create_datagram_endpoint",
            AsyncMock(side_effect=OSError("Network is unreachable")),
        ):
            with pytest.raises(UnraidConnectionError):
                await send_magic_packet("AA:BB:CC:DD:EE:FF")

    async def test_invalid_mac_sends_nothing(self) -> None:
        """Test an invalid MAC fails before a socket is opened."""
        loop = asyncio.get_running_loop()

        with patch.object(loop, "create_datagram_endpoint", AsyncMock()) as endpoint:
            with pytest.raises(UnraidConfigurationError):
                await send_magic_packet("zz")

        endpoint.assert_not_called()
