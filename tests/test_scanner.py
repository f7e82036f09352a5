# ABOUTME: Unit tests for BLE scanner abstraction
# ABOUTME: Tests BTHome service data extraction, MockScanner, and get_scanner factory
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from bthome_sniffer.objects import BTHOME_UUID
from bthome_sniffer.scanner import (
    BleakScannerImpl,
    MockScanner,
    extract_bthome_payload,
    get_scanner,
)

OTHER_UUID = "0000181a-0000-1000-8000-00805f9b34fb"


def make_device(address):
    device = MagicMock()
    device.address = address
    return device


def make_ad_data(service_data):
    ad_data = MagicMock()
    ad_data.service_data = service_data
    return ad_data


def test_extract_bthome_payload():
    ad_data = make_ad_data({
        OTHER_UUID: bytes([0x01, 0x02]),
        BTHOME_UUID: bytearray([0x40, 0x01, 0x64]),
    })

    assert extract_bthome_payload(ad_data) == bytes([0x40, 0x01, 0x64])


def test_extract_bthome_payload_uppercase_uuid():
    ad_data = make_ad_data({BTHOME_UUID.upper(): bytes([0x40])})

    assert extract_bthome_payload(ad_data) == bytes([0x40])


def test_extract_ignores_other_service_data():
    assert extract_bthome_payload(make_ad_data({OTHER_UUID: bytes([0x40, 0x01, 0x64])})) is None
    assert extract_bthome_payload(make_ad_data({})) is None
    assert extract_bthome_payload(make_ad_data(None)) is None


def test_extract_ignores_empty_bthome_payload():
    assert extract_bthome_payload(make_ad_data({BTHOME_UUID: b""})) is None


@pytest.mark.asyncio
async def test_mock_scanner_returns_copy_of_data():
    test_data = [("AA:BB:CC:DD:EE:FF", bytes([0x40, 0x01, 0x64]))]

    scanner = MockScanner(data=test_data)
    result1 = await scanner.scan(duration_s=5)
    result2 = await scanner.scan(duration_s=5)

    result1.append(("11:22:33:44:55:66", bytes([0xFF])))

    assert result2 == test_data


@pytest.mark.asyncio
async def test_mock_scanner_default_empty():
    scanner = MockScanner()

    assert await scanner.scan(duration_s=5) == []


def test_get_scanner_returns_mock_when_requested():
    test_data = [("AA:BB:CC:DD:EE:FF", bytes([0x40]))]
    scanner = get_scanner(use_mock=True, data=test_data)

    assert isinstance(scanner, MockScanner)
    assert scanner.data == test_data


def test_get_scanner_returns_bleak_by_default():
    assert isinstance(get_scanner(use_mock=False), BleakScannerImpl)


@pytest.mark.asyncio
async def test_bleak_scanner_basic_scan():
    scanner = BleakScannerImpl()

    with patch('bthome_sniffer.scanner.BleakScanner') as mock_scanner_class:
        mock_scanner_instance = AsyncMock()
        mock_scanner_class.return_value = mock_scanner_instance

        result = await scanner.scan(duration_s=0)

        mock_scanner_instance.start.assert_called_once()
        mock_scanner_instance.stop.assert_called_once()
        assert 'service_uuids' not in mock_scanner_class.call_args.kwargs
        assert result == []


def test_bleak_scanner_collects_bthome_advertisements():
    scanner = BleakScannerImpl()

    scanner._detection_callback(
        make_device("a4:c1:38:11:22:33"),
        make_ad_data({BTHOME_UUID: bytes([0x40, 0x02, 0x66, 0x08])})
    )
    scanner._detection_callback(
        make_device("A4:C1:38:44:55:66"),
        make_ad_data({OTHER_UUID: bytes([0x40, 0x01, 0x55])})
    )

    assert scanner.advertisements == [("A4:C1:38:11:22:33", bytes([0x40, 0x02, 0x66, 0x08]))]


def test_bleak_scanner_multiple_packets_same_device():
    """Repeated advertisements from one MAC are all kept, in order."""
    scanner = BleakScannerImpl()
    device = make_device("A4:C1:38:11:22:33")

    scanner._detection_callback(device, make_ad_data({BTHOME_UUID: bytes([0x40, 0x02, 0x66, 0x08])}))
    scanner._detection_callback(device, make_ad_data({BTHOME_UUID: bytes([0x40, 0x01, 0x55])}))

    assert [payload for _, payload in scanner.advertisements] == [
        bytes([0x40, 0x02, 0x66, 0x08]),
        bytes([0x40, 0x01, 0x55]),
    ]


@pytest.mark.asyncio
async def test_bleak_scanner_clears_previous_results():
    scanner = BleakScannerImpl()
    scanner.advertisements.append(("AA:BB:CC:DD:EE:FF", bytes([0xFF])))

    with patch('bthome_sniffer.scanner.BleakScanner') as mock_scanner_class:
        mock_scanner_class.return_value = AsyncMock()

        result = await scanner.scan(duration_s=0)

    assert result == []
    assert scanner.advertisements == []


@pytest.mark.asyncio
async def test_bleak_scanner_handles_scan_error():
    scanner = BleakScannerImpl()

    with patch('bthome_sniffer.scanner.BleakScanner') as mock_scanner_class:
        mock_scanner_instance = AsyncMock()
        mock_scanner_instance.start.side_effect = Exception("BLE adapter not found")
        mock_scanner_class.return_value = mock_scanner_instance

        with pytest.raises(RuntimeError, match="BLE scan failed"):
            await scanner.scan(duration_s=0)
