from __future__ import annotations

import json

from wizscan.mock_device import MockBulb


def _call(bulb: MockBulb, method: str, params: object = None) -> dict:
    request = {"method": method, "params": params or {}}
    reply = bulb.handle_datagram(json.dumps(request).encode())
    assert reply is not None
    return json.loads(reply)


def test_get_pilot_reports_current_state():
    bulb = MockBulb(mac="a8bb50aabbcc", state=True, dimming=60, temp=3000)

    reply = _call(bulb, "getPilot")

    assert reply["method"] == "getPilot"
    assert reply["result"]["mac"] == "a8bb50aabbcc"
    assert reply["result"]["state"] is True
    assert reply["result"]["dimming"] == 60
    assert reply["result"]["temp"] == 3000
    assert "r" not in reply["result"]


def test_set_pilot_switches_between_colour_modes():
    bulb = MockBulb()

    _call(bulb, "setPilot", {"r": 10, "g": 20, "b": 30})
    assert _call(bulb, "getPilot")["result"]["r"] == 10

    _call(bulb, "setPilot", {"temp": 1000, "dimming": 500})
    pilot = _call(bulb, "getPilot")["result"]
    assert pilot["temp"] == 2200
    assert pilot["dimming"] == 100
    assert "r" not in pilot

    _call(bulb, "setPilot", {"sceneId": 5, "speed": 90})
    pilot = _call(bulb, "getPilot")["result"]
    assert pilot["sceneId"] == 5
    assert pilot["speed"] == 90


def test_unknown_method_and_bad_params():
    bulb = MockBulb()

    assert _call(bulb, "pulse")["error"] == {
        "code": -32601,
        "message": "Method not found",
    }
    assert _call(bulb, "setPilot", [1, 2])["error"]["code"] == -32602


def test_malformed_datagrams_are_ignored():
    bulb = MockBulb()

    assert bulb.handle_datagram(b"\xff\xfe") is None
    assert bulb.handle_datagram(b"[]") is None
    assert bulb.requests == []
