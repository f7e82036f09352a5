# ABOUTME: BLE scanning abstraction for passive BTHome advertisement listening
# ABOUTME: Provides Protocol interface, bleak implementation, and MockScanner for testing without hardware
from typing import Protocol, Optional
import asyncio
from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from bthome_sniffer.objects import BTHOME_UUID


class AbstractScanner(Protocol):
    """Protocol for BLE scanners that return MAC address and payload tuples."""

    async def scan(self, duration_s: int) -> list[tuple[str, bytes]]:
        """
        Scan for BTHome advertisements for the specified duration.

        Args:
            duration_s: Duration to scan in seconds

        Returns:
            List of (mac_address, service_data_bytes) tuples
        """
        ...


def extract_bthome_payload(advertisement_data: AdvertisementData) -> Optional[bytes]:
    """
    Return the service data advertised under the BTHome UUID, if any.

    Args:
        advertisement_data: Advertisement data reported by bleak

    Returns:
        Raw BTHome payload bytes, or None if the advertisement carries none
    """
    if not advertisement_data.service_data:
        return None

    for uuid, data in advertisement_data.service_data.items():
        if str(uuid).lower() == BTHOME_UUID and data:
            return bytes(data)
    return None


class BleakScannerImpl:
    """
    Real BLE scanner implementation using bleak.

    Collects every advertisement carrying BTHome service data. Repeated
    advertisements from the same device are all kept, in arrival order.
    """

    def __init__(self):
        self.advertisements: list[tuple[str, bytes]] = []

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        payload = extract_bthome_payload(advertisement_data)
        if payload is not None:
            self.advertisements.append((device.address.upper(), payload))

    async def scan(self, duration_s: int) -> list[tuple[str, bytes]]:
        """
        Scan for BTHome advertisements using bleak.

        Args:
            duration_s: Duration to scan in seconds

        Returns:
            List of (mac_address, payload_bytes) tuples

        Raises:
            RuntimeError: If BLE adapter is unavailable or scanning fails
        """
        self.advertisements = []

        try:
            scanner = BleakScanner(detection_callback=self._detection_callback)
            await scanner.start()
            await asyncio.sleep(duration_s)
            await scanner.stop()

        except Exception as e:
            raise RuntimeError(f"BLE scan failed: {e}") from e

        return list(self.advertisements)


class MockScanner:
    """
    Mock BLE scanner for testing without hardware.

    Returns preconfigured list of (MAC, payload) tuples on each scan() call.
    """

    def __init__(self, data: Optional[list[tuple[str, bytes]]] = None):
        self.data = data or []

    async def scan(self, duration_s: int) -> list[tuple[str, bytes]]:
        # Simulate async behavior with small delay
        await asyncio.sleep(0.01)
        return self.data.copy()


def get_scanner(use_mock: bool = False, data: Optional[list[tuple[str, bytes]]] = None) -> AbstractScanner:
    """
    Factory function to get appropriate scanner implementation.

    Args:
        use_mock: If True, return MockScanner; otherwise return BleakScannerImpl
        data: Test data for MockScanner (only used when use_mock=True)

    Returns:
        Scanner instance implementing AbstractScanner protocol
    """
    if use_mock:
        return MockScanner(data)
    else:
        return BleakScannerImpl()
