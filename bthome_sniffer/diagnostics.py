# ABOUTME: BTHome sniffer tool for watching and troubleshooting sensor advertisements
# ABOUTME: Prints every decoded BTHome payload (or its decode error) and can save a JSON capture
import argparse
import asyncio
import json
from collections import Counter
from datetime import datetime
from typing import Optional
from dataclasses import dataclass, asdict

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from bthome_sniffer.parser import parse_service_data
from bthome_sniffer.scanner import extract_bthome_payload


@dataclass
class Advertisement:
    """Single BTHome advertisement capture."""
    timestamp: str
    mac_address: str
    name: Optional[str]
    rssi: int
    payload: str  # hex string
    parse_result: dict  # success flag plus decoded service data or error


class DiagnosticScanner:
    """
    BLE scanner for watching BTHome devices.

    Captures every advertisement carrying BTHome service data, optionally
    restricted to a single MAC address, and decodes it.
    """

    def __init__(self, target_mac: Optional[str] = None, quiet: bool = False):
        """
        Initialize diagnostic scanner.

        Args:
            target_mac: MAC address to monitor (case-insensitive), None for all devices
            quiet: If True, suppress console output
        """
        self.target_mac = target_mac.upper() if target_mac else None
        self.quiet = quiet
        self.advertisements: list[Advertisement] = []
        self.running = True

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        mac = device.address.upper()
        if self.target_mac and mac != self.target_mac:
            return

        payload = extract_bthome_payload(advertisement_data)
        if payload is None:
            return

        ad = self.capture(mac, payload, rssi=advertisement_data.rssi or 0, name=device.name)

        if not self.quiet:
            self._display_advertisement(ad)

    def capture(self, mac: str, payload: bytes, rssi: int = 0, name: Optional[str] = None) -> Advertisement:
        """
        Decode a BTHome payload and store the result.

        Args:
            mac: Device MAC address
            payload: Raw BTHome service data
            rssi: Signal strength in dBm
            name: Advertised local name, if any

        Returns:
            The stored Advertisement
        """
        try:
            service_data = parse_service_data(payload)
            parse_result = {"success": True, "service_data": service_data.to_dict()}
        except ValueError as e:
            parse_result = {
                "success": False,
                "error": str(e),
                "error_type": type(e).__name__,
            }

        ad = Advertisement(
            timestamp=datetime.now().isoformat(timespec='milliseconds'),
            mac_address=mac,
            name=name,
            rssi=rssi,
            payload=payload.hex(),
            parse_result=parse_result
        )
        self.advertisements.append(ad)
        return ad

    def _display_advertisement(self, ad: Advertisement):
        print(f"\n[{ad.timestamp}] {ad.mac_address} ({ad.name or 'unknown'}) RSSI: {ad.rssi} dBm")
        print(f"  Data (hex): {ad.payload}")

        if not ad.parse_result["success"]:
            print(f"  BTHome parse: ❌ FAILED - {ad.parse_result['error']}")
            return

        data = ad.parse_result["service_data"]
        flags = []
        if data["encrypted"]:
            flags.append("encrypted")
        if data["trigger_based"]:
            flags.append("trigger based")
        print(f"  BTHome v{data['version']} parse: ✅ SUCCESS {' '.join(flags)}".rstrip())
        for obj in data["objects"]:
            unit = f" {obj['unit']}" if obj["unit"] else ""
            print(f"    - {obj['name']} (0x{obj['object_id']:02X}): {obj['value']}{unit}")

    async def scan(self, duration: Optional[int] = None):
        """
        Start scanning for advertisements.

        Args:
            duration: Optional duration in seconds. If None, scan until interrupted.
        """
        print(f"Monitoring: {self.target_mac or 'all BTHome devices'}")
        if duration:
            print(f"Duration: {duration} seconds")
        else:
            print("Duration: Continuous (Ctrl+C to stop)")
        print("=" * 60)

        scanner = BleakScanner(detection_callback=self._detection_callback)

        try:
            await scanner.start()

            if duration:
                await asyncio.sleep(duration)
            else:
                while self.running:
                    await asyncio.sleep(1)

        except KeyboardInterrupt:
            if not self.quiet:
                print("\n\nScan interrupted by user")
        finally:
            await scanner.stop()

    def get_statistics(self) -> dict:
        """
        Calculate statistics from collected advertisements.

        Returns:
            Dictionary containing statistics
        """
        total = len(self.advertisements)
        if total == 0:
            return {
                "total_advertisements": 0,
                "successful_parses": 0,
                "failed_parses": 0,
                "parse_success_rate": 0.0,
                "errors_by_type": {},
                "average_rssi": 0.0,
                "devices_seen": []
            }

        successful_parses = sum(1 for ad in self.advertisements if ad.parse_result["success"])
        errors_by_type = Counter(
            ad.parse_result["error_type"]
            for ad in self.advertisements
            if not ad.parse_result["success"]
        )
        average_rssi = sum(ad.rssi for ad in self.advertisements) / total

        return {
            "total_advertisements": total,
            "successful_parses": successful_parses,
            "failed_parses": total - successful_parses,
            "parse_success_rate": round(successful_parses / total, 2),
            "errors_by_type": dict(errors_by_type),
            "average_rssi": round(average_rssi, 1),
            "devices_seen": sorted({ad.mac_address for ad in self.advertisements})
        }

    def save_json(self, filename: Optional[str] = None) -> str:
        """
        Save captured advertisements to JSON file.

        Args:
            filename: Optional filename. If None, auto-generate with timestamp.

        Returns:
            Path to saved file
        """
        if filename is None:
            # e.g. bthome_capture_A4C138B63A7A_20251103_142315.json
            target = self.target_mac.replace(":", "") if self.target_mac else "all"
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"bthome_capture_{target}_{timestamp}.json"

        data = {
            "mac_address": self.target_mac,
            "scan_start": self.advertisements[0].timestamp if self.advertisements else None,
            "scan_end": self.advertisements[-1].timestamp if self.advertisements else None,
            "advertisements": [asdict(ad) for ad in self.advertisements],
            "statistics": self.get_statistics()
        }

        with open(filename, 'w') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return filename


def main():
    """Main entry point for the sniffer tool."""
    parser = argparse.ArgumentParser(
        description='BTHome Sniffer - Watch and decode BTHome BLE advertisements',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch every BTHome device until Ctrl+C
  python -m bthome_sniffer.diagnostics

  # Monitor one device for 30 seconds
  python -m bthome_sniffer.diagnostics A4:C1:38:B6:36:7A --duration 30

  # Custom JSON filename, quiet mode
  python -m bthome_sniffer.diagnostics A4:C1:38:B6:36:7A --json capture.json --quiet
        """
    )

    parser.add_argument(
        'mac_address',
        nargs='?',
        help='MAC address of BLE device to monitor (default: all BTHome devices)'
    )

    parser.add_argument(
        '--duration',
        type=int,
        metavar='SECONDS',
        help='Scan duration in seconds (default: continuous until Ctrl+C)'
    )

    parser.add_argument(
        '--json',
        nargs='?',
        const='',  # Flag present but no value
        metavar='FILENAME',
        help='Save results to JSON file (auto-generates filename if not provided)'
    )

    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress console output (useful with --json)'
    )

    args = parser.parse_args()

    scanner = DiagnosticScanner(args.mac_address, quiet=args.quiet)

    try:
        asyncio.run(scanner.scan(duration=args.duration))
    except KeyboardInterrupt:
        pass

    if not args.quiet:
        print("\n" + "=" * 60)
        print("STATISTICS")
        print("=" * 60)
        stats = scanner.get_statistics()
        print(f"Total advertisements: {stats['total_advertisements']}")
        print(f"Successful parses: {stats['successful_parses']}")
        print(f"Failed parses: {stats['failed_parses']}")
        for error_type, count in stats['errors_by_type'].items():
            print(f"  - {error_type}: {count}")
        print(f"Parse success rate: {stats['parse_success_rate'] * 100:.1f}%")
        print(f"Average RSSI: {stats['average_rssi']} dBm")
        if stats['devices_seen']:
            print("Devices seen:")
            for mac in stats['devices_seen']:
                print(f"  - {mac}")

    if args.json is not None:
        filename = args.json if args.json else None
        saved_path = scanner.save_json(filename)
        print(f"\nResults saved to: {saved_path}")


if __name__ == '__main__':
    main()
