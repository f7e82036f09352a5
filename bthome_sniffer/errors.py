# ABOUTME: Exception hierarchy raised by the BTHome payload decoder
# ABOUTME: All errors subclass ValueError so callers can treat them as unparseable packets


class BTHomeDecodeError(ValueError):
    """Base exception for BTHome payload decoding errors."""

    pass


class TruncatedPayloadError(BTHomeDecodeError):
    """Payload ended before the header or an object value was complete."""

    pass


class UnknownObjectIdError(BTHomeDecodeError):
    """Object identifier byte is not part of the BTHome catalog."""

    def __init__(self, object_id: int):
        self.object_id = object_id
        super().__init__(f"Unknown object id 0x{object_id:02X}")


class InvalidTextEncodingError(BTHomeDecodeError):
    """Text object bytes are not valid UTF-8."""

    pass


class InvalidEnumCodeError(BTHomeDecodeError):
    """Event byte is outside of its enumeration (button or dimmer)."""

    def __init__(self, code: int, enum_name: str):
        self.code = code
        self.enum_name = enum_name
        super().__init__(f"Invalid {enum_name} code 0x{code:02X}")
