from __future__ import annotations

# Wire protocol (ASCII, one command per line; canonical list lives here)

DELIMITER = "\n"
ENCODING = "ascii"

CLICK_LEFT = "CLICK:LEFT"
CLICK_RIGHT = "CLICK:RIGHT"
MOVE_PREFIX = "MOVE:"

# Well-known Serial Port Profile service class
SERIAL_PORT_SERVICE_UUID = "00001101-0000-1000-8000-00805f9b34fb"
