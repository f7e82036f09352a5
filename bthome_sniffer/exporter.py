# ABOUTME: HTTP server for exposing metrics, health, and decoded device data
# ABOUTME: Provides /healthz, /metrics, /status, and /devices endpoints via aiohttp
from dataclasses import dataclass, field
from typing import Any, Optional
from aiohttp import web

from prometheus_client import generate_latest

from bthome_sniffer.config import AppConfig
from bthome_sniffer.parser import ServiceData


@dataclass
class StatusTracker:
    """Tracks scan status and latest decoded data for /status and /devices."""
    scan_interval_seconds: int
    scan_duration_seconds: int
    last_scan_timestamp: int = 0
    devices_seen: int = 0
    packets_decoded: int = 0
    decode_errors: int = 0
    latest: dict[str, dict[str, Any]] = field(default_factory=dict)
    # Payloads of the last scan that saw each MAC, kept across scans
    last_packets: dict[str, list[ServiceData]] = field(default_factory=dict)

    def update(
        self,
        timestamp: int,
        num_devices: int,
        packets_decoded: int = 0,
        decode_errors: int = 0
    ) -> None:
        """Update scan status with latest scan results."""
        self.last_scan_timestamp = timestamp
        self.devices_seen = num_devices
        self.packets_decoded = packets_decoded
        self.decode_errors = decode_errors

    def record_device(self, device_name: str, mac: str, packet: ServiceData, timestamp: int) -> None:
        """Remember the most recent decoded payload of a device."""
        self.latest[device_name] = {
            "mac_address": mac,
            "timestamp": timestamp,
            "service_data": packet.to_dict(),
        }


CONFIG_KEY = web.AppKey('config', AppConfig)
STATUS_KEY = web.AppKey('status', StatusTracker)


async def healthz_handler(request: web.Request) -> web.Response:
    return web.Response(text="ok", status=200)


async def metrics_handler(request: web.Request) -> web.Response:
    """
    Prometheus metrics endpoint.

    Returns:
        200 OK with Prometheus metrics in text format
    """
    metrics_output = generate_latest()
    return web.Response(
        body=metrics_output,
        content_type='text/plain',
        charset='utf-8'
    )


async def status_handler(request: web.Request) -> web.Response:
    """
    Status endpoint returning scan metadata.

    Returns:
        200 OK with JSON containing scan status
    """
    status = request.app[STATUS_KEY]

    status_data = {
        "scan_interval_seconds": status.scan_interval_seconds,
        "scan_duration_seconds": status.scan_duration_seconds,
        "last_scan_timestamp": status.last_scan_timestamp,
        "devices_seen": status.devices_seen,
        "packets_decoded": status.packets_decoded,
        "decode_errors": status.decode_errors,
    }

    return web.json_response(status_data)


async def devices_handler(request: web.Request) -> web.Response:
    """
    Devices endpoint returning the latest decoded payload per device.

    Returns:
        200 OK with JSON mapping device name to its latest service data
    """
    status = request.app[STATUS_KEY]
    return web.json_response(status.latest)


def create_app(config: AppConfig, status_tracker: Optional[StatusTracker] = None) -> web.Application:
    """
    Create and configure aiohttp application.

    Args:
        config: Application configuration
        status_tracker: Optional StatusTracker for /status and /devices

    Returns:
        Configured aiohttp Application instance
    """
    app = web.Application()

    app[CONFIG_KEY] = config

    if status_tracker is None:
        status_tracker = StatusTracker(
            scan_interval_seconds=config.scan_interval_seconds,
            scan_duration_seconds=config.scan_duration_seconds
        )
    app[STATUS_KEY] = status_tracker

    app.router.add_get('/healthz', healthz_handler)
    app.router.add_get('/metrics', metrics_handler)
    app.router.add_get('/status', status_handler)
    app.router.add_get('/devices', devices_handler)

    return app
