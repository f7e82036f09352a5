# ABOUTME: BTHome v2 service data decoder
# ABOUTME: Turns a raw service data payload into a header plus an ordered list of typed objects
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from bthome_sniffer.errors import InvalidTextEncodingError, TruncatedPayloadError
from bthome_sniffer.objects import (
    OBJECT_SPECS,
    ButtonEvent,
    DimmerEvent,
    ObjectId,
    ObjectSpec,
    button_event_from_byte,
    dimmer_event_from_byte,
    identifier_from_byte,
)

ENCRYPTED_FLAG = 0b00000001
TRIGGER_BASED_FLAG = 0b00000100
VERSION_SHIFT = 5

# Wire format name -> (byte width, signed)
INTEGER_FORMATS: dict[str, tuple[int, bool]] = {
    'uint8': (1, False),
    'sint8': (1, True),
    'uint16': (2, False),
    'sint16': (2, True),
    'uint24': (3, False),
    'sint24': (3, True),
    'uint32': (4, False),
    'sint32': (4, True),
    'uint48': (6, False),
    'uint64': (8, False),
}


@dataclass(frozen=True)
class DimmerAction:
    """Dimmer event together with the number of rotation steps."""
    event: DimmerEvent
    steps: int


ObjectValue = Union[float, int, bool, bytes, str, ButtonEvent, DimmerAction]


@dataclass(frozen=True)
class BTHomeObject:
    """One decoded (object id, value) record."""
    object_id: ObjectId
    value: ObjectValue

    @property
    def spec(self) -> ObjectSpec:
        return OBJECT_SPECS[self.object_id]

    @property
    def key(self) -> str:
        return self.spec.key

    @property
    def unit(self):
        return self.spec.unit

    @property
    def is_event(self) -> bool:
        return self.spec.fmt in ('button', 'dimmer')

    @property
    def is_measurement(self) -> bool:
        return self.spec.fmt == 'bool' or self.spec.fmt in INTEGER_FORMATS

    def to_dict(self) -> dict[str, Any]:
        value = self.value
        if isinstance(value, bytes):
            value = value.hex()
        elif isinstance(value, ButtonEvent):
            value = value.name.lower()
        elif isinstance(value, DimmerAction):
            value = {"event": value.event.name.lower(), "steps": value.steps}

        return {
            "object_id": int(self.object_id),
            "name": self.object_id.name.lower(),
            "key": self.key,
            "value": value,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ServiceData:
    """Decoded BTHome service data payload."""
    encrypted: bool
    trigger_based: bool
    version: int
    objects: tuple[BTHomeObject, ...] = ()

    def measurements(self) -> dict[str, float]:
        """
        Collect numeric and binary sensor values keyed by measurement name.

        Binary sensors are reported as 1.0/0.0. When the same measurement
        appears more than once the last value wins.

        Returns:
            Dictionary like {'temperature': 21.5, 'battery': 85.0}
        """
        result = {}
        for obj in self.objects:
            if obj.is_measurement:
                result[obj.key] = float(obj.value)
        return result

    def events(self) -> list[BTHomeObject]:
        """Return button and dimmer objects in wire order."""
        return [obj for obj in self.objects if obj.is_event]

    def to_dict(self) -> dict[str, Any]:
        return {
            "encrypted": self.encrypted,
            "trigger_based": self.trigger_based,
            "version": self.version,
            "objects": [obj.to_dict() for obj in self.objects],
        }


class PayloadReader:
    """Forward-only cursor over a payload buffer."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def read(self, size: int, what: str) -> bytes:
        """
        Consume exactly size bytes.

        Raises:
            TruncatedPayloadError: If fewer than size bytes remain
        """
        if self.remaining < size:
            raise TruncatedPayloadError(
                f"Incomplete {what} data: need {size} bytes, {self.remaining} left"
            )
        chunk = self._data[self._pos:self._pos + size]
        self._pos += size
        return chunk

    def read_byte(self, what: str) -> int:
        return self.read(1, what)[0]


def decode_header(header: int) -> tuple[bool, bool, int]:
    """
    Split the BTHome device information byte into its fields.

    Bit 0 is the encryption flag, bit 2 the trigger based flag and bits 5-7
    the format version. Reserved bits 1, 3 and 4 are ignored.

    Returns:
        Tuple of (encrypted, trigger_based, version)
    """
    encrypted = (header & ENCRYPTED_FLAG) != 0
    trigger_based = (header & TRIGGER_BASED_FLAG) != 0
    version = (header >> VERSION_SHIFT) & 0b111
    return encrypted, trigger_based, version


def _factor_decimals(factor: float) -> int:
    exponent = Decimal(str(factor)).as_tuple().exponent
    return max(0, -exponent)


def _read_number(reader: PayloadReader, spec: ObjectSpec) -> Union[int, float]:
    # int.from_bytes sign-extends from the declared width, not a wider storage type
    width, signed = INTEGER_FORMATS[spec.fmt]
    raw = int.from_bytes(reader.read(width, spec.key), 'little', signed=signed)
    if spec.factor is None:
        return raw
    return round(raw * spec.factor, _factor_decimals(spec.factor))


def _read_bool(reader: PayloadReader, spec: ObjectSpec) -> bool:
    # BTHome convention: a zero byte means the sensor state is active
    return reader.read_byte(spec.key) == 0


def _read_raw(reader: PayloadReader, spec: ObjectSpec) -> bytes:
    size = reader.read_byte(f"{spec.key} length")
    return reader.read(size, spec.key)


def _read_text(reader: PayloadReader, spec: ObjectSpec) -> str:
    data = _read_raw(reader, spec)
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidTextEncodingError(f"Text object is not valid UTF-8: {data.hex()}") from e


def _read_button(reader: PayloadReader, spec: ObjectSpec) -> ButtonEvent:
    return button_event_from_byte(reader.read_byte(spec.key))


def _read_dimmer(reader: PayloadReader, spec: ObjectSpec) -> DimmerAction:
    event_code, steps = reader.read(2, spec.key)
    return DimmerAction(event=dimmer_event_from_byte(event_code), steps=steps)


_VALUE_READERS = {
    'bool': _read_bool,
    'raw': _read_raw,
    'text': _read_text,
    'button': _read_button,
    'dimmer': _read_dimmer,
}
_VALUE_READERS.update({fmt: _read_number for fmt in INTEGER_FORMATS})


def read_object(reader: PayloadReader, object_id: ObjectId) -> BTHomeObject:
    """Decode the value following an object id byte."""
    spec = OBJECT_SPECS[object_id]
    value = _VALUE_READERS[spec.fmt](reader, spec)
    return BTHomeObject(object_id=object_id, value=value)


def parse_service_data(payload: bytes) -> ServiceData:
    """
    Parse a BTHome v2 service data payload.

    The payload starts with the device information byte, followed by
    back-to-back [object id][value] records until the end of the buffer.
    BTHome format: https://bthome.io/format/

    Args:
        payload: Service data bytes advertised under the BTHome UUID

    Returns:
        ServiceData with header flags and objects in wire order

    Raises:
        TruncatedPayloadError: If the header is missing or a value is incomplete
        UnknownObjectIdError: If an object id is not in the catalog
        InvalidTextEncodingError: If a text object is not valid UTF-8
        InvalidEnumCodeError: If a button or dimmer event code is unknown
    """
    reader = PayloadReader(payload)
    if reader.at_end():
        raise TruncatedPayloadError("Packet too short to contain BTHome header")

    encrypted, trigger_based, version = decode_header(reader.read_byte("header"))

    objects = []
    while not reader.at_end():
        object_id = identifier_from_byte(reader.read_byte("object id"))
        objects.append(read_object(reader, object_id))

    return ServiceData(
        encrypted=encrypted,
        trigger_based=trigger_based,
        version=version,
        objects=tuple(objects),
    )
