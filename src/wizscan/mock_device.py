"""Mock WiZ bulb for development and testing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from wizscan.core.protocol import (
    GET_MODEL_CONFIG,
    GET_PILOT,
    GET_SYSTEM_CONFIG,
    SET_PILOT,
    WIZ_PORT,
)
from wizscan.models.device import (
    BRIGHTNESS_RANGE,
    CHANNEL_RANGE,
    COLOR_TEMP_RANGE,
    SPEED_RANGE,
    clamp,
)

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class _BulbProtocol(asyncio.DatagramProtocol):
    def __init__(self, bulb: MockBulb) -> None:
        self._bulb = bulb
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        reply = self._bulb.handle_datagram(data)
        if reply is not None and self.transport is not None:
            self.transport.sendto(reply, addr)


@dataclass
class MockBulb:
    """Answers getPilot, setPilot, getSystemConfig and getModelConfig over UDP."""

    mac: str = "a8bb50aabbcc"
    module_name: str = "ESP01_SHRGB_03"
    fw_version: str = "1.28.0"
    host: str = "127.0.0.1"
    port: int = WIZ_PORT
    rssi: int = -55

    state: bool = False
    dimming: int = 100
    temp: int | None = 2700
    rgb: tuple[int, int, int] | None = None
    scene_id: int = 0
    speed: int = 100

    requests: list[dict[str, Any]] = field(default_factory=list, repr=False)
    _transport: asyncio.DatagramTransport | None = field(default=None, repr=False)

    @property
    def bound_port(self) -> int | None:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")[1]

    async def start(self) -> None:
        """Bind the UDP socket; ``port=0`` picks a free port."""
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _BulbProtocol(self), local_addr=(self.host, self.port)
        )
        logger.info(
            "Mock bulb %s listening on %s:%d", self.mac, self.host, self.bound_port
        )

    async def stop(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("Mock bulb %s stopped", self.mac)

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    def handle_datagram(self, data: bytes) -> bytes | None:
        try:
            request = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.debug("Ignoring malformed datagram: %r", data)
            return None
        if not isinstance(request, dict):
            return None

        self.requests.append(request)
        method = request.get("method")
        params = request.get("params") or {}
        logger.debug("Received %s %s", method, params)

        if method == GET_PILOT:
            body: dict[str, Any] = {"result": self.pilot()}
        elif method == SET_PILOT:
            if not isinstance(params, dict):
                body = self._error(INVALID_PARAMS, "Invalid params")
            else:
                self.apply(params)
                body = {"result": {"success": True}}
        elif method == GET_SYSTEM_CONFIG:
            body = {"result": self.system_config()}
        elif method == GET_MODEL_CONFIG:
            body = {"result": {"ps": 1, "pwmFreq": 1000, "fanSpeed": 0}}
        else:
            body = self._error(METHOD_NOT_FOUND, "Method not found")

        reply = {"method": method, "env": "pro", **body}
        return json.dumps(reply).encode("utf-8")

    def pilot(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "mac": self.mac,
            "rssi": self.rssi,
            "state": self.state,
            "sceneId": self.scene_id,
            "dimming": self.dimming,
        }
        if self.scene_id:
            result["speed"] = self.speed
        if self.rgb is not None:
            result["r"], result["g"], result["b"] = self.rgb
        elif self.temp is not None:
            result["temp"] = self.temp
        return result

    def system_config(self) -> dict[str, Any]:
        return {
            "mac": self.mac,
            "homeId": 0,
            "roomId": 0,
            "moduleName": self.module_name,
            "fwVersion": self.fw_version,
            "groupId": 0,
        }

    def apply(self, params: dict[str, Any]) -> None:
        if "state" in params:
            self.state = bool(params["state"])
        if "dimming" in params:
            self.dimming = clamp(int(params["dimming"]), BRIGHTNESS_RANGE)
        if "temp" in params:
            self.temp = clamp(int(params["temp"]), COLOR_TEMP_RANGE)
            self.rgb = None
            self.scene_id = 0
        if {"r", "g", "b"} <= params.keys():
            self.rgb = (
                clamp(int(params["r"]), CHANNEL_RANGE),
                clamp(int(params["g"]), CHANNEL_RANGE),
                clamp(int(params["b"]), CHANNEL_RANGE),
            )
            self.scene_id = 0
        if "sceneId" in params:
            self.scene_id = int(params["sceneId"])
        if "speed" in params:
            self.speed = clamp(int(params["speed"]), SPEED_RANGE)

    @staticmethod
    def _error(code: int, message: str) -> dict[str, Any]:
        return {"error": {"code": code, "message": message}}


async def run_mock_bulb(
    host: str = "0.0.0.0",
    port: int = WIZ_PORT,
    mac: str = "a8bb50aabbcc",
) -> None:
    """Run a mock bulb until interrupted."""
    bulb = MockBulb(host=host, port=port, mac=mac)
    await bulb.run_forever()
