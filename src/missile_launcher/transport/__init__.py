"""Transport layer: USB HID access to the launcher."""

from .usb_connection import DeviceInfo, DeviceNotFoundError, USBConnection
