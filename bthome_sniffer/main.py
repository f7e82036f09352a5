# ABOUTME: Main entry point for the BTHome Prometheus exporter service
# ABOUTME: Wires together scanner, decoder, metrics, and HTTP server
import argparse
import asyncio
import time
from aiohttp import web

from bthome_sniffer.config import AppConfig, load_config
from bthome_sniffer.logger import get_logger
from bthome_sniffer.scanner import get_scanner
from bthome_sniffer.parser import ServiceData, decode_header, parse_service_data
from bthome_sniffer.metrics import record_decode_error, update_metrics
from bthome_sniffer.exporter import create_app, StatusTracker


def aggregate_scan_results(
    scan_results: list[tuple[str, bytes]],
    config: AppConfig,
    logger
) -> tuple[dict[str, list[ServiceData]], int]:
    """
    Decode and group BTHome payloads by MAC address within a scan period.

    Args:
        scan_results: List of (mac_address, payload) tuples from scanner
        config: Application configuration; an empty devices mapping accepts every MAC
        logger: Logger instance for warnings and debug output

    Returns:
        Tuple of (decoded payloads per MAC in arrival order, number of decode errors)

    Behavior:
        - Exact duplicate payloads from the same MAC are decoded once
        - Encrypted payloads are skipped (decryption is not supported)
        - Undecodable payloads are counted and skipped
        - Warns if a known MAC was seen but ALL packets failed to decode
    """
    known_macs = set(config.devices.keys())

    payloads_by_mac: dict[str, list[bytes]] = {}
    for mac, payload in scan_results:
        mac = mac.upper()
        if known_macs and mac not in known_macs:
            continue
        payloads = payloads_by_mac.setdefault(mac, [])
        if payload not in payloads:
            payloads.append(payload)

    decoded: dict[str, list[ServiceData]] = {}
    decode_errors = 0

    for mac, payloads in payloads_by_mac.items():
        device_name = config.device_name(mac)
        packets = []
        failures = 0

        for payload in payloads:
            if payload and decode_header(payload[0])[0]:
                logger.debug(f"Skipping encrypted payload from {mac}")
                continue
            try:
                packets.append(parse_service_data(payload))
            except ValueError as e:
                failures += 1
                record_decode_error(device_name, e)
                logger.debug(f"Failed to decode payload {payload.hex()} from {mac}: {e}")

        decode_errors += failures
        if packets:
            decoded[mac] = packets
        elif failures and mac in known_macs:
            logger.warning(
                f"Device {mac} seen but all packets failed to decode. "
                f"Check sensor firmware or BTHome format compatibility."
            )

    return decoded, decode_errors


async def scan_loop(scanner, config, status_tracker, logger):
    """
    Background task that continuously scans for BTHome devices, decodes
    payloads, and updates metrics.

    Args:
        scanner: Scanner instance (MockScanner or BleakScannerImpl)
        config: Application configuration
        status_tracker: StatusTracker for updating scan metadata
        logger: Logger instance
    """
    while True:
        try:
            logger.info(f"Starting BLE scan for {config.scan_duration_seconds}s")
            results = await scanner.scan(config.scan_duration_seconds)

            decoded, decode_errors = aggregate_scan_results(results, config, logger)
            timestamp = int(time.time())

            packets_decoded = 0
            for mac, packets in decoded.items():
                device_name = config.device_name(mac)
                update_metrics(device_name, packets, status_tracker.last_packets.get(mac, ()))
                status_tracker.last_packets[mac] = packets
                status_tracker.record_device(device_name, mac, packets[-1], timestamp)
                packets_decoded += len(packets)
                logger.info(f"Updated metrics for {device_name}: {packets[-1].measurements()}")

            status_tracker.update(timestamp, len(decoded), packets_decoded, decode_errors)

            logger.info(
                f"Scan complete: {len(decoded)} devices updated, "
                f"{packets_decoded} packets decoded, {decode_errors} decode errors"
            )

            sleep_duration = config.scan_interval_seconds - config.scan_duration_seconds
            if sleep_duration > 0:
                await asyncio.sleep(sleep_duration)
            else:
                logger.warning(
                    f"scan_interval_seconds ({config.scan_interval_seconds}) "
                    f"is less than scan_duration_seconds ({config.scan_duration_seconds}). "
                    f"Running scans back-to-back."
                )

        except Exception as e:
            logger.error(f"Error in scan loop: {e}", exc_info=True)
            await asyncio.sleep(5)


async def start_background_tasks(app):
    scanner = app['scanner']
    config = app['config']
    status_tracker = app['status_tracker']
    logger = app['logger']

    app['scan_task'] = asyncio.create_task(
        scan_loop(scanner, config, status_tracker, logger)
    )


async def cleanup_background_tasks(app):
    app['scan_task'].cancel()
    try:
        await app['scan_task']
    except asyncio.CancelledError:
        pass  # Expected when cancelling the task


def main():
    """
    Main entry point. Parses CLI arguments, loads config, and starts the server.
    """
    parser = argparse.ArgumentParser(
        description='BTHome Sensor Prometheus Exporter'
    )
    parser.add_argument(
        '--config',
        type=str,
        required=True,
        help='Path to config YAML file'
    )
    parser.add_argument(
        '--mock-scanner',
        action='store_true',
        help='Use MockScanner instead of real BLE scanner (for testing)'
    )

    args = parser.parse_args()

    config = load_config(args.config)

    logger = get_logger(config)
    logger.info("Starting BTHome Sensor Prometheus Exporter")
    logger.info(f"Config loaded from {args.config}")
    if not config.devices:
        logger.info("No devices configured, exporting every BTHome device by MAC address")

    scanner = get_scanner(use_mock=args.mock_scanner)
    if args.mock_scanner:
        logger.info("Using MockScanner (no real BLE hardware)")
    else:
        logger.info("Using BleakScanner for real BLE devices")

    status_tracker = StatusTracker(
        scan_interval_seconds=config.scan_interval_seconds,
        scan_duration_seconds=config.scan_duration_seconds
    )

    app = create_app(config, status_tracker)

    # Objects needed by background tasks
    app['scanner'] = scanner
    app['config'] = config
    app['status_tracker'] = status_tracker
    app['logger'] = logger

    app.on_startup.append(start_background_tasks)
    app.on_cleanup.append(cleanup_background_tasks)

    logger.info(f"Starting HTTP server on port {config.listen_port}")
    web.run_app(app, host='0.0.0.0', port=config.listen_port)


if __name__ == '__main__':
    main()
