"""USB HID connection to the Dream Cheeky missile launcher.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The launcher is a single-interface HID device: output reports go out
as SET_REPORT control transfers, status comes back on interrupt
endpoint 0x81.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..protocol.commands import OUTPUT_REPORT_SIZE
from ..protocol.parser import INPUT_REPORT_SIZE

logger = logging.getLogger(__name__)

VENDOR_ID = 0x0A81
PRODUCT_ID = 0x0701
HID_INTERFACE = 0
EP_IN = 0x81
READ_TIMEOUT_MS = 1000

# HID class request used by the pyusb backend
HID_SET_REPORT = 0x09
HID_REQUEST_TYPE_OUT = 0x21  # host-to-device | class | interface
HID_REPORT_TYPE_OUTPUT = 0x02


class DeviceNotFoundError(ConnectionError):
    """Raised when no launcher with the expected VID/PID can be opened."""


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""


class USBConnection:
    """Manages the USB HID connection to the launcher.

    Usage::

        with USBConnection() as conn:
            conn.write(encode(Command.GET_STATUS))
            status = conn.read()

    The device is released when the ``with`` block exits, whether or not
    the body raised.
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._detached_kernel_driver = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def backend(self) -> str:
        return self._backend

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def __enter__(self) -> USBConnection:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> DeviceInfo:
        """Open a connection to the launcher, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            DeviceNotFoundError: If the device cannot be found or opened.
        """
        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise DeviceNotFoundError(
                f"Could not open missile launcher "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the device is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        device = hid.device()
        device.open(self._vendor_id, self._product_id)
        try:
            device.set_nonblocking(False)
            info = DeviceInfo(
                vendor_id=self._vendor_id,
                product_id=self._product_id,
                manufacturer=device.get_manufacturer_string() or "",
                product=device.get_product_string() or "",
            )
        except Exception:
            device.close()
            raise

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = info

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise DeviceNotFoundError("Device not found via pyusb")

        detached = False
        claimed = False
        try:
            if dev.is_kernel_driver_active(HID_INTERFACE):
                dev.detach_kernel_driver(HID_INTERFACE)
                detached = True

            usb.util.claim_interface(dev, HID_INTERFACE)
            claimed = True

            info = DeviceInfo(
                vendor_id=self._vendor_id,
                product_id=self._product_id,
                manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
                product=usb.util.get_string(dev, dev.iProduct) or "",
            )
        except Exception:
            # Hand the device back to the kernel as we found it
            try:
                if claimed:
                    usb.util.release_interface(dev, HID_INTERFACE)
                if detached:
                    dev.attach_kernel_driver(HID_INTERFACE)
                usb.util.dispose_resources(dev)
            except Exception as e:
                logger.warning("Error releasing device after failed open: %s", e)
            raise

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._detached_kernel_driver = detached
        self._device_info = info

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
                if self._detached_kernel_driver:
                    self._device.attach_kernel_driver(HID_INTERFACE)
                usb.util.dispose_resources(self._device)
        except Exception as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            self._detached_kernel_driver = False
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write a 2-byte output report to the device.

        Args:
            data: Report number followed by the command byte.

        Returns:
            Number of bytes written; negative if hidapi reports a failure.

        Raises:
            ConnectionError: If not connected.
            OSError: If the backend rejects the transfer.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if len(data) != OUTPUT_REPORT_SIZE:
            raise ValueError(
                f"Output report must be {OUTPUT_REPORT_SIZE} bytes, got {len(data)}"
            )

        if self._backend == "hidapi":
            return self._device.write(data)
        elif self._backend == "pyusb":
            report_id = data[0]
            # The control transfer carries the report number in wValue
            written = self._device.ctrl_transfer(
                HID_REQUEST_TYPE_OUT,
                HID_SET_REPORT,
                (HID_REPORT_TYPE_OUTPUT << 8) | report_id,
                HID_INTERFACE,
                data[1:],
                READ_TIMEOUT_MS,
            )
            return written + 1
        else:
            raise RuntimeError(f"Unknown backend: {self._backend}")

    def read(
        self,
        size: int = INPUT_REPORT_SIZE,
        timeout_ms: int = READ_TIMEOUT_MS,
    ) -> bytes | None:
        """Read an input report from the device.

        Args:
            size: Number of bytes to read.
            timeout_ms: Read timeout in milliseconds.

        Returns:
            The report bytes, or None if the read failed or timed out.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        try:
            if self._backend == "hidapi":
                data = self._device.read(size, timeout_ms)
                if data:
                    return bytes(data)
                return None
            elif self._backend == "pyusb":
                data = self._device.read(EP_IN, size, timeout=timeout_ms)
                return bytes(data) or None
        except Exception as e:
            logger.debug("Read error: %s", e)
            return None
        return None
