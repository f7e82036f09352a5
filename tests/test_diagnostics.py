"""
Tests for the BTHome sniffer tool.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from bthome_sniffer.diagnostics import DiagnosticScanner
from bthome_sniffer.objects import BTHOME_UUID


@pytest.fixture
def mock_device():
    device = MagicMock()
    device.address = "a4:c1:38:b6:36:7a"
    device.name = "ATC_B6367A"
    return device


@pytest.fixture
def mock_ad_data_bthome_v2():
    """Advertisement with a valid BTHome v2 packet: temp=25.0°C, humidity=60.5%."""
    ad_data = MagicMock()
    ad_data.rssi = -45
    ad_data.service_data = {
        BTHOME_UUID: bytes([0x40, 0x02, 0xC4, 0x09, 0x03, 0xA2, 0x17])
    }
    return ad_data


@pytest.fixture
def mock_ad_data_unknown_object():
    """Advertisement whose BTHome packet carries an unassigned object id."""
    ad_data = MagicMock()
    ad_data.rssi = -50
    ad_data.service_data = {
        BTHOME_UUID: bytes([0x40, 0x3B, 0xAA])
    }
    return ad_data


def test_diagnostic_scanner_initialization():
    scanner = DiagnosticScanner("a4:c1:38:b6:36:7a")

    assert scanner.target_mac == "A4:C1:38:B6:36:7A"
    assert scanner.quiet is False
    assert scanner.advertisements == []


def test_diagnostic_scanner_without_target():
    assert DiagnosticScanner().target_mac is None


def test_detection_callback_with_bthome_v2(mock_device, mock_ad_data_bthome_v2):
    scanner = DiagnosticScanner("A4:C1:38:B6:36:7A", quiet=True)

    scanner._detection_callback(mock_device, mock_ad_data_bthome_v2)

    assert len(scanner.advertisements) == 1
    ad = scanner.advertisements[0]

    assert ad.mac_address == "A4:C1:38:B6:36:7A"
    assert ad.name == "ATC_B6367A"
    assert ad.rssi == -45
    assert ad.payload == "4002c40903a217"
    assert ad.parse_result["success"] is True
    objects = ad.parse_result["service_data"]["objects"]
    assert [(obj["key"], obj["value"]) for obj in objects] == [("temperature", 25.0), ("humidity", 60.5)]


def test_detection_callback_with_decode_error(mock_device, mock_ad_data_unknown_object):
    scanner = DiagnosticScanner("A4:C1:38:B6:36:7A", quiet=True)

    scanner._detection_callback(mock_device, mock_ad_data_unknown_object)

    ad = scanner.advertisements[0]
    assert ad.parse_result["success"] is False
    assert ad.parse_result["error_type"] == "UnknownObjectIdError"
    assert "0x3B" in ad.parse_result["error"]


def test_detection_callback_ignores_other_devices(mock_ad_data_bthome_v2):
    scanner = DiagnosticScanner("A4:C1:38:B6:36:7A", quiet=True)

    wrong_device = MagicMock()
    wrong_device.address = "FF:FF:FF:FF:FF:FF"

    scanner._detection_callback(wrong_device, mock_ad_data_bthome_v2)

    assert scanner.advertisements == []


def test_detection_callback_ignores_non_bthome_data(mock_device):
    scanner = DiagnosticScanner(quiet=True)

    ad_data = MagicMock()
    ad_data.rssi = -45
    ad_data.service_data = {"0000181a-0000-1000-8000-00805f9b34fb": bytes([0x40, 0x01, 0x64])}

    scanner._detection_callback(mock_device, ad_data)

    assert scanner.advertisements == []


def test_detection_callback_prints_decoded_objects(mock_device, mock_ad_data_bthome_v2, capsys):
    scanner = DiagnosticScanner()

    scanner._detection_callback(mock_device, mock_ad_data_bthome_v2)

    output = capsys.readouterr().out
    assert "A4:C1:38:B6:36:7A" in output
    assert "BTHome v2" in output
    assert "temperature (0x02): 25.0 °C" in output


def test_get_statistics_empty():
    stats = DiagnosticScanner(quiet=True).get_statistics()

    assert stats["total_advertisements"] == 0
    assert stats["parse_success_rate"] == 0.0
    assert stats["devices_seen"] == []


def test_get_statistics_with_data(mock_device, mock_ad_data_bthome_v2, mock_ad_data_unknown_object):
    scanner = DiagnosticScanner(quiet=True)

    scanner._detection_callback(mock_device, mock_ad_data_bthome_v2)
    scanner._detection_callback(mock_device, mock_ad_data_unknown_object)

    stats = scanner.get_statistics()

    assert stats["total_advertisements"] == 2
    assert stats["successful_parses"] == 1
    assert stats["failed_parses"] == 1
    assert stats["parse_success_rate"] == 0.5
    assert stats["errors_by_type"] == {"UnknownObjectIdError": 1}
    assert stats["average_rssi"] == -47.5
    assert stats["devices_seen"] == ["A4:C1:38:B6:36:7A"]


def test_save_json_with_custom_filename(tmp_path, mock_device, mock_ad_data_bthome_v2):
    scanner = DiagnosticScanner("A4:C1:38:B6:36:7A", quiet=True)
    scanner._detection_callback(mock_device, mock_ad_data_bthome_v2)

    output_file = tmp_path / "capture.json"
    saved_path = scanner.save_json(str(output_file))

    assert saved_path == str(output_file)
    data = json.loads(output_file.read_text())

    assert data["mac_address"] == "A4:C1:38:B6:36:7A"
    assert len(data["advertisements"]) == 1
    assert data["advertisements"][0]["payload"] == "4002c40903a217"
    assert data["statistics"]["successful_parses"] == 1


def test_save_json_with_auto_filename(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    scanner = DiagnosticScanner(quiet=True)
    scanner.capture("A4:C1:38:B6:36:7A", bytes([0x40, 0x01, 0x64]))

    saved_path = scanner.save_json()

    assert saved_path.startswith("bthome_capture_all_")
    assert saved_path.endswith(".json")
    assert (tmp_path / saved_path).exists()


@pytest.mark.asyncio
async def test_scan_does_not_filter_on_advertised_service_uuids():
    """BTHome devices may carry 0xFCD2 only as a service data key."""
    scanner = DiagnosticScanner(quiet=True)
    scanner.running = False

    with patch('bthome_sniffer.diagnostics.BleakScanner') as mock_scanner_class:
        mock_scanner_instance = AsyncMock()
        mock_scanner_class.return_value = mock_scanner_instance

        await scanner.scan()

        mock_scanner_class.assert_called_once_with(detection_callback=scanner._detection_callback)
        mock_scanner_instance.start.assert_called_once()
        mock_scanner_instance.stop.assert_called_once()
