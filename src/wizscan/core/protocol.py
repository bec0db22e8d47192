"""WiZ local control protocol client.

Requests and replies are single UTF-8 JSON datagrams on UDP port 38899.
Every request gets its own endpoint, so a reply is matched to its request by
socket lifetime and no request id is needed.
"""

from __future__ import annotations

import asyncio
import errno
import json
import logging
import socket
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from wizscan.core.errors import (
    FatalNetworkError,
    NetworkError,
    ProtocolError,
    RequestTimeout,
    WizError,
)
from wizscan.models import RGB, DeviceState, StateUpdate
from wizscan.models.device import (
    BRIGHTNESS_RANGE,
    CHANNEL_RANGE,
    COLOR_TEMP_RANGE,
    SPEED_RANGE,
    clamp,
)

logger = logging.getLogger(__name__)

WIZ_PORT = 38899
DEFAULT_TIMEOUT = 2.0

GET_PILOT = "getPilot"
SET_PILOT = "setPilot"
GET_SYSTEM_CONFIG = "getSystemConfig"
GET_MODEL_CONFIG = "getModelConfig"

RECOVERABLE_ERRNOS = frozenset(
    {
        errno.ECONNREFUSED,
        errno.ECONNRESET,
        errno.ECONNABORTED,
        errno.EHOSTUNREACH,
        errno.ENETUNREACH,
        errno.EHOSTDOWN,
        errno.ENETDOWN,
    }
)


class ResponseError(BaseModel):
    code: int
    message: str = ""


class WizResponse(BaseModel):
    method: str | None = None
    env: str | None = None
    result: dict[str, Any] | None = None
    error: ResponseError | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None and self.error is None


class PilotResult(BaseModel):
    """The ``result`` object of a ``getPilot`` reply."""

    model_config = {"populate_by_name": True, "extra": "allow"}

    mac: str | None = None
    rssi: int | None = None
    state: bool | None = None
    scene_id: int | None = Field(default=None, alias="sceneId")
    temp: int | None = None
    dimming: int | None = None
    speed: int | None = None
    r: int | None = None
    g: int | None = None
    b: int | None = None
    c: int | None = None
    w: int | None = None

    def to_state(self) -> DeviceState:
        rgb = None
        if self.r is not None and self.g is not None and self.b is not None:
            rgb = RGB(r=self.r, g=self.g, b=self.b)
        return DeviceState(
            power=bool(self.state),
            brightness=self.dimming,
            color_temp=self.temp,
            rgb=rgb,
            speed=self.speed,
            scene_id=self.scene_id,
        )


def encode_command(method: str, params: dict[str, Any] | None = None) -> bytes:
    return json.dumps({"method": method, "params": params or {}}).encode("utf-8")


def decode_response(data: bytes) -> WizResponse:
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"Invalid JSON response: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError("Response is not a JSON object")
    try:
        return WizResponse.model_validate(payload)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed response: {exc}") from exc


def parse_pilot(response: WizResponse) -> PilotResult | None:
    if response.result is None:
        return None
    try:
        return PilotResult.model_validate(response.result)
    except ValidationError as exc:
        raise ProtocolError(f"Malformed pilot result: {exc}") from exc


def build_pilot_params(update: StateUpdate) -> dict[str, Any]:
    """Wire parameters for the fields set on ``update``, clamped to range."""
    params: dict[str, Any] = {}
    if update.power is not None:
        params["state"] = update.power
    if update.brightness is not None:
        params["dimming"] = clamp(update.brightness, BRIGHTNESS_RANGE)
    if update.color_temp is not None:
        params["temp"] = clamp(update.color_temp, COLOR_TEMP_RANGE)
    if update.rgb is not None:
        params["r"] = clamp(update.rgb.r, CHANNEL_RANGE)
        params["g"] = clamp(update.rgb.g, CHANNEL_RANGE)
        params["b"] = clamp(update.rgb.b, CHANNEL_RANGE)
    if update.speed is not None:
        params["speed"] = clamp(update.speed, SPEED_RANGE)
    if update.scene_id is not None:
        params["sceneId"] = update.scene_id
    return params


def classify_os_error(exc: OSError) -> WizError:
    if isinstance(exc, socket.gaierror) or exc.errno in RECOVERABLE_ERRNOS:
        return NetworkError(f"Connection error: {exc}")
    return FatalNetworkError(str(exc) or exc.__class__.__name__)


class _ReplyProtocol(asyncio.DatagramProtocol):
    def __init__(self, reply: asyncio.Future[bytes]) -> None:
        self._reply = reply

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._reply.done():
            self._reply.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self._reply.done():
            self._reply.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and not self._reply.done():
            self._reply.set_exception(exc)


class WizClient:
    def __init__(self, port: int = WIZ_PORT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.port = port
        self.timeout = timeout

    async def send_command(
        self,
        ip: str,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> WizResponse:
        loop = asyncio.get_running_loop()
        reply: asyncio.Future[bytes] = loop.create_future()
        wait = self.timeout if timeout is None else timeout

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReplyProtocol(reply),
                remote_addr=(ip, self.port),
                family=socket.AF_INET,
            )
        except OSError as exc:
            raise classify_os_error(exc) from exc

        try:
            transport.sendto(encode_command(method, params))
            data = await asyncio.wait_for(reply, timeout=wait)
        except asyncio.TimeoutError as exc:
            raise RequestTimeout(f"No reply from {ip} within {wait:.2f}s") from exc
        except OSError as exc:
            raise classify_os_error(exc) from exc
        finally:
            transport.close()

        return decode_response(data)

    async def probe(self, ip: str, timeout: float | None = None) -> WizResponse | None:
        """Query state; a reply with a result means a bulb lives at ``ip``."""
        try:
            response = await self.send_command(ip, GET_PILOT, timeout=timeout)
        except RequestTimeout:
            logger.debug("No response from %s (timeout)", ip)
            return None
        except WizError as exc:
            logger.debug("Probe of %s failed: %s", ip, exc)
            return None
        return response if response.result is not None else None

    async def get_state(self, ip: str) -> DeviceState | None:
        try:
            pilot = parse_pilot(await self.send_command(ip, GET_PILOT))
        except WizError as exc:
            logger.warning("Failed to get state for %s: %s", ip, exc)
            return None
        return pilot.to_state() if pilot is not None else None

    async def get_system_config(self, ip: str) -> dict[str, Any] | None:
        return await self._query(ip, GET_SYSTEM_CONFIG)

    async def get_model_config(self, ip: str) -> dict[str, Any] | None:
        return await self._query(ip, GET_MODEL_CONFIG)

    async def set_power(self, ip: str, power: bool) -> bool:
        return await self._set_pilot(ip, {"state": power})

    async def set_state(self, ip: str, update: StateUpdate) -> bool:
        return await self._set_pilot(ip, build_pilot_params(update))

    async def set_scene(self, ip: str, scene_id: int, speed: int = 100) -> bool:
        params = {
            "sceneId": scene_id,
            "speed": clamp(speed, SPEED_RANGE),
            "state": True,
        }
        return await self._set_pilot(ip, params)

    async def set_brightness(self, ip: str, brightness: int) -> bool:
        params = {"dimming": clamp(brightness, BRIGHTNESS_RANGE), "state": True}
        return await self._set_pilot(ip, params)

    async def set_color_temp(self, ip: str, kelvin: int) -> bool:
        params = {"temp": clamp(kelvin, COLOR_TEMP_RANGE), "state": True}
        return await self._set_pilot(ip, params)

    async def set_rgb(self, ip: str, r: int, g: int, b: int) -> bool:
        params = {
            "r": clamp(r, CHANNEL_RANGE),
            "g": clamp(g, CHANNEL_RANGE),
            "b": clamp(b, CHANNEL_RANGE),
            "state": True,
        }
        return await self._set_pilot(ip, params)

    async def _query(self, ip: str, method: str) -> dict[str, Any] | None:
        try:
            response = await self.send_command(ip, method)
        except WizError as exc:
            logger.debug("%s on %s failed: %s", method, ip, exc)
            return None
        if response.result is not None:
            logger.debug("%s from %s: %s", method, ip, response.result)
        return response.result

    async def _set_pilot(self, ip: str, params: dict[str, Any]) -> bool:
        try:
            response = await self.send_command(ip, SET_PILOT, params)
        except WizError as exc:
            logger.warning("setPilot %s on %s failed: %s", params, ip, exc)
            return False
        if response.error is not None:
            logger.warning(
                "Device %s rejected setPilot: %s (code %d)",
                ip,
                response.error.message,
                response.error.code,
            )
        return response.ok
