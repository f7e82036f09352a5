# ABOUTME: BTHome v2 object identifier catalog and event enumerations
# ABOUTME: Maps each one-byte object id to its wire format, scale factor, and unit
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from bthome_sniffer.errors import InvalidEnumCodeError, UnknownObjectIdError


# BTHome service data is advertised under this 16-bit UUID.
# bleak reports service data keys as lowercase 128-bit UUID strings.
BTHOME_UUID16 = 0xFCD2
BTHOME_UUID = "0000fcd2-0000-1000-8000-00805f9b34fb"


class ObjectId(IntEnum):
    """One-byte BTHome object identifiers."""

    # Misc
    PACKET_ID = 0x00

    # Sensor data
    BATTERY = 0x01
    TEMPERATURE = 0x02
    HUMIDITY = 0x03
    PRESSURE = 0x04
    ILLUMINANCE = 0x05
    MASS_KG = 0x06
    MASS_LB = 0x07
    DEWPOINT = 0x08
    COUNT_UINT8 = 0x09
    ENERGY_UINT24 = 0x0A
    POWER_UINT24 = 0x0B
    VOLTAGE_MILLI = 0x0C
    PM25 = 0x0D
    PM10 = 0x0E
    CO2 = 0x12
    TVOC = 0x13
    MOISTURE_UINT16 = 0x14
    HUMIDITY_UINT8 = 0x2E
    MOISTURE_UINT8 = 0x2F
    COUNT_UINT16 = 0x3D
    COUNT_UINT32 = 0x3E
    ROTATION = 0x3F
    DISTANCE_MM = 0x40
    DISTANCE_M = 0x41
    DURATION = 0x42
    CURRENT_UINT16 = 0x43
    SPEED = 0x44
    TEMPERATURE_DECI = 0x45
    UV_INDEX = 0x46
    VOLUME_DECI = 0x47
    VOLUME_MILLI = 0x48
    VOLUME_FLOW_RATE = 0x49
    VOLTAGE_DECI = 0x4A
    GAS_UINT24 = 0x4B
    GAS_UINT32 = 0x4C
    ENERGY_UINT32 = 0x4D
    VOLUME_UINT32 = 0x4E
    WATER = 0x4F
    TIMESTAMP = 0x50
    ACCELERATION = 0x51
    GYROSCOPE = 0x52
    TEXT = 0x53
    RAW = 0x54
    VOLUME_STORAGE = 0x55
    CONDUCTIVITY = 0x56
    TEMPERATURE_SINT8 = 0x57
    TEMPERATURE_SINT8_SCALED = 0x58
    COUNT_SINT8 = 0x59
    COUNT_SINT16 = 0x5A
    COUNT_SINT32 = 0x5B
    POWER_SINT32 = 0x5C
    CURRENT_SINT16 = 0x5D
    DIRECTION = 0x5E
    PRECIPITATION = 0x5F
    CHANNEL = 0x60
    ROTATIONAL_SPEED = 0x61

    # Binary sensor data
    GENERIC_BOOLEAN = 0x0F
    POWER_ON = 0x10
    OPENING = 0x11
    BATTERY_LOW = 0x15
    BATTERY_CHARGING = 0x16
    CARBON_MONOXIDE = 0x17
    COLD = 0x18
    CONNECTIVITY = 0x19
    DOOR = 0x1A
    GARAGE_DOOR = 0x1B
    GAS_DETECTED = 0x1C
    HEAT = 0x1D
    LIGHT = 0x1E
    LOCK = 0x1F
    MOISTURE_DETECTED = 0x20
    MOTION = 0x21
    MOVING = 0x22
    OCCUPANCY = 0x23
    PLUGGED_IN = 0x24
    PRESENCE = 0x25
    PROBLEM = 0x26
    RUNNING = 0x27
    SAFETY = 0x28
    SMOKE = 0x29
    SOUND = 0x2A
    TAMPER = 0x2B
    VIBRATION = 0x2C
    WINDOW = 0x2D

    # Events
    BUTTON = 0x3A
    DIMMER = 0x3C

    # Device information
    DEVICE_TYPE_ID = 0xF0
    FIRMWARE_VERSION_UINT32 = 0xF1
    FIRMWARE_VERSION_UINT24 = 0xF2


class ButtonEvent(IntEnum):
    NONE = 0x00
    PRESS = 0x01
    DOUBLE_PRESS = 0x02
    TRIPLE_PRESS = 0x03
    LONG_PRESS = 0x04
    LONG_DOUBLE_PRESS = 0x05
    LONG_TRIPLE_PRESS = 0x06
    HOLD_PRESS = 0x80


class DimmerEvent(IntEnum):
    NONE = 0x00
    ROTATE_LEFT = 0x01
    ROTATE_RIGHT = 0x02


@dataclass(frozen=True)
class ObjectSpec:
    """
    Decoding rule for one object identifier.

    Attributes:
        key: Measurement name reported to consumers (shared by codes that
            encode the same quantity at different widths)
        fmt: Wire format name understood by the parser
        factor: Scale factor for float results, None for integer results
        unit: Physical unit, None when dimensionless
    """
    key: str
    fmt: str
    factor: Optional[float] = None
    unit: Optional[str] = None


def _binary(key: str) -> ObjectSpec:
    return ObjectSpec(key, 'bool')


OBJECT_SPECS: dict[ObjectId, ObjectSpec] = {
    ObjectId.PACKET_ID: ObjectSpec('packet_id', 'uint8'),

    ObjectId.BATTERY: ObjectSpec('battery', 'uint8', unit='%'),
    ObjectId.TEMPERATURE: ObjectSpec('temperature', 'sint16', 0.01, '°C'),
    ObjectId.HUMIDITY: ObjectSpec('humidity', 'uint16', 0.01, '%'),
    ObjectId.PRESSURE: ObjectSpec('pressure', 'uint24', 0.01, 'hPa'),
    ObjectId.ILLUMINANCE: ObjectSpec('illuminance', 'uint24', 0.01, 'lux'),
    ObjectId.MASS_KG: ObjectSpec('mass_kg', 'uint16', 0.01, 'kg'),
    ObjectId.MASS_LB: ObjectSpec('mass_lb', 'uint16', 0.01, 'lb'),
    ObjectId.DEWPOINT: ObjectSpec('dewpoint', 'sint16', 0.01, '°C'),
    ObjectId.COUNT_UINT8: ObjectSpec('count', 'uint8'),
    ObjectId.ENERGY_UINT24: ObjectSpec('energy', 'uint24', 0.001, 'kWh'),
    ObjectId.POWER_UINT24: ObjectSpec('power', 'uint24', 0.01, 'W'),
    ObjectId.VOLTAGE_MILLI: ObjectSpec('voltage', 'uint16', 0.001, 'V'),
    ObjectId.PM25: ObjectSpec('pm25', 'uint16', unit='µg/m³'),
    ObjectId.PM10: ObjectSpec('pm10', 'uint16', unit='µg/m³'),
    ObjectId.CO2: ObjectSpec('co2', 'uint16', unit='ppm'),
    ObjectId.TVOC: ObjectSpec('tvoc', 'uint16', unit='µg/m³'),
    ObjectId.MOISTURE_UINT16: ObjectSpec('moisture', 'uint16', 0.01, '%'),
    ObjectId.HUMIDITY_UINT8: ObjectSpec('humidity', 'uint8', unit='%'),
    ObjectId.MOISTURE_UINT8: ObjectSpec('moisture', 'uint8', unit='%'),
    ObjectId.COUNT_UINT16: ObjectSpec('count', 'uint16'),
    ObjectId.COUNT_UINT32: ObjectSpec('count', 'uint32'),
    ObjectId.ROTATION: ObjectSpec('rotation', 'sint16', 0.1, '°'),
    ObjectId.DISTANCE_MM: ObjectSpec('distance_mm', 'uint16', unit='mm'),
    ObjectId.DISTANCE_M: ObjectSpec('distance_m', 'uint16', 0.1, 'm'),
    ObjectId.DURATION: ObjectSpec('duration', 'uint24', 0.001, 's'),
    ObjectId.CURRENT_UINT16: ObjectSpec('current', 'uint16', 0.001, 'A'),
    ObjectId.SPEED: ObjectSpec('speed', 'uint16', 0.01, 'm/s'),
    ObjectId.TEMPERATURE_DECI: ObjectSpec('temperature', 'sint16', 0.1, '°C'),
    ObjectId.UV_INDEX: ObjectSpec('uv_index', 'uint8', 0.1),
    ObjectId.VOLUME_DECI: ObjectSpec('volume', 'uint16', 0.1, 'L'),
    ObjectId.VOLUME_MILLI: ObjectSpec('volume_ml', 'uint16', unit='mL'),
    ObjectId.VOLUME_FLOW_RATE: ObjectSpec('volume_flow_rate', 'uint16', 0.001, 'm³/h'),
    ObjectId.VOLTAGE_DECI: ObjectSpec('voltage', 'uint16', 0.1, 'V'),
    ObjectId.GAS_UINT24: ObjectSpec('gas', 'uint24', 0.001, 'm³'),
    ObjectId.GAS_UINT32: ObjectSpec('gas', 'uint32', 0.001, 'm³'),
    ObjectId.ENERGY_UINT32: ObjectSpec('energy', 'uint32', 0.001, 'kWh'),
    ObjectId.VOLUME_UINT32: ObjectSpec('volume', 'uint32', 0.001, 'L'),
    ObjectId.WATER: ObjectSpec('water', 'uint32', 0.001, 'L'),
    ObjectId.TIMESTAMP: ObjectSpec('timestamp', 'uint48', unit='s'),
    ObjectId.ACCELERATION: ObjectSpec('acceleration', 'uint16', 0.001, 'm/s²'),
    ObjectId.GYROSCOPE: ObjectSpec('gyroscope', 'uint16', 0.001, '°/s'),
    ObjectId.TEXT: ObjectSpec('text', 'text'),
    ObjectId.RAW: ObjectSpec('raw', 'raw'),
    ObjectId.VOLUME_STORAGE: ObjectSpec('volume_storage', 'uint32', 0.001, 'L'),
    ObjectId.CONDUCTIVITY: ObjectSpec('conductivity', 'uint16', unit='µS/cm'),
    ObjectId.TEMPERATURE_SINT8: ObjectSpec('temperature', 'sint8', unit='°C'),
    ObjectId.TEMPERATURE_SINT8_SCALED: ObjectSpec('temperature', 'sint8', 0.35, '°C'),
    ObjectId.COUNT_SINT8: ObjectSpec('count', 'sint8'),
    ObjectId.COUNT_SINT16: ObjectSpec('count', 'sint16'),
    ObjectId.COUNT_SINT32: ObjectSpec('count', 'sint32'),
    ObjectId.POWER_SINT32: ObjectSpec('power', 'sint32', 0.01, 'W'),
    ObjectId.CURRENT_SINT16: ObjectSpec('current', 'sint16', 0.001, 'A'),
    ObjectId.DIRECTION: ObjectSpec('direction', 'uint16', 0.01, '°'),
    ObjectId.PRECIPITATION: ObjectSpec('precipitation', 'uint16', 0.1, 'mm'),
    ObjectId.CHANNEL: ObjectSpec('channel', 'uint8'),
    ObjectId.ROTATIONAL_SPEED: ObjectSpec('rotational_speed', 'uint16', unit='rpm'),

    ObjectId.GENERIC_BOOLEAN: _binary('generic_boolean'),
    ObjectId.POWER_ON: _binary('power_on'),
    ObjectId.OPENING: _binary('opening'),
    ObjectId.BATTERY_LOW: _binary('battery_low'),
    ObjectId.BATTERY_CHARGING: _binary('battery_charging'),
    ObjectId.CARBON_MONOXIDE: _binary('carbon_monoxide'),
    ObjectId.COLD: _binary('cold'),
    ObjectId.CONNECTIVITY: _binary('connectivity'),
    ObjectId.DOOR: _binary('door'),
    ObjectId.GARAGE_DOOR: _binary('garage_door'),
    ObjectId.GAS_DETECTED: _binary('gas_detected'),
    ObjectId.HEAT: _binary('heat'),
    ObjectId.LIGHT: _binary('light'),
    ObjectId.LOCK: _binary('lock'),
    ObjectId.MOISTURE_DETECTED: _binary('moisture_detected'),
    ObjectId.MOTION: _binary('motion'),
    ObjectId.MOVING: _binary('moving'),
    ObjectId.OCCUPANCY: _binary('occupancy'),
    ObjectId.PLUGGED_IN: _binary('plugged_in'),
    ObjectId.PRESENCE: _binary('presence'),
    ObjectId.PROBLEM: _binary('problem'),
    ObjectId.RUNNING: _binary('running'),
    ObjectId.SAFETY: _binary('safety'),
    ObjectId.SMOKE: _binary('smoke'),
    ObjectId.SOUND: _binary('sound'),
    ObjectId.TAMPER: _binary('tamper'),
    ObjectId.VIBRATION: _binary('vibration'),
    ObjectId.WINDOW: _binary('window'),

    ObjectId.BUTTON: ObjectSpec('button', 'button'),
    ObjectId.DIMMER: ObjectSpec('dimmer', 'dimmer'),

    ObjectId.DEVICE_TYPE_ID: ObjectSpec('device_type_id', 'uint16'),
    ObjectId.FIRMWARE_VERSION_UINT32: ObjectSpec('firmware_version', 'uint32'),
    ObjectId.FIRMWARE_VERSION_UINT24: ObjectSpec('firmware_version', 'uint24'),
}


def identifier_from_byte(value: int) -> ObjectId:
    """
    Resolve a raw object id byte against the catalog.

    Args:
        value: Object id byte read from the payload

    Returns:
        Matching ObjectId member

    Raises:
        UnknownObjectIdError: If the byte is not a known BTHome object id
    """
    try:
        return ObjectId(value)
    except ValueError:
        raise UnknownObjectIdError(value) from None


def button_event_from_byte(value: int) -> ButtonEvent:
    try:
        return ButtonEvent(value)
    except ValueError:
        raise InvalidEnumCodeError(value, 'ButtonEvent') from None


def dimmer_event_from_byte(value: int) -> DimmerEvent:
    try:
        return DimmerEvent(value)
    except ValueError:
        raise InvalidEnumCodeError(value, 'DimmerEvent') from None
