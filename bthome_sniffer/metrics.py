# ABOUTME: Prometheus metrics registry for decoded BTHome data
# ABOUTME: Defines gauges for object values and counters for events and decode errors
import time
from typing import Sequence

from prometheus_client import Counter, Gauge

from bthome_sniffer.objects import ButtonEvent, DimmerEvent
from bthome_sniffer.parser import DimmerAction, ServiceData


object_value_gauge = Gauge(
    'bthome_object_value',
    'Latest decoded value of a BTHome sensor or binary sensor object',
    ['device', 'object', 'unit']
)

events_counter = Counter(
    'bthome_events',
    'Button presses and dimmer rotation steps reported by BTHome devices',
    ['device', 'object', 'event']
)

decode_errors_counter = Counter(
    'bthome_decode_errors',
    'BTHome payloads that failed to decode',
    ['device', 'error']
)

packet_id_gauge = Gauge(
    'bthome_packet_id',
    'Packet id of the latest BTHome advertisement',
    ['device']
)

last_update_gauge = Gauge(
    'bthome_last_update_timestamp_seconds',
    'Unix timestamp of last decoded advertisement',
    ['device']
)

seen_gauge = Gauge(
    'bthome_seen',
    'Constant value 1 indicating device was seen in latest scan',
    ['device']
)


def update_metrics(
    device_name: str,
    packets: list[ServiceData],
    already_counted: Sequence[ServiceData] = ()
) -> None:
    """
    Update Prometheus metrics for a specific device.

    Args:
        device_name: Friendly name of the device (used as 'device' label)
        packets: Decoded payloads from the device, oldest first
        already_counted: Payloads whose events were counted by an earlier scan.
            Devices repeat an advertisement (same packet id, same objects) until
            the next reading, so events from these payloads are not counted again.
    """
    for packet in packets:
        repeated = packet in already_counted
        for obj in packet.objects:
            if obj.key == 'packet_id':
                packet_id_gauge.labels(device=device_name).set(obj.value)
            elif obj.is_measurement:
                object_value_gauge.labels(
                    device=device_name, object=obj.key, unit=obj.unit or ''
                ).set(float(obj.value))
            elif obj.is_event and not repeated:
                _record_event(device_name, obj.key, obj.value)

    last_update_gauge.labels(device=device_name).set(time.time())
    seen_gauge.labels(device=device_name).set(1)


def _record_event(device_name: str, key: str, value) -> None:
    if isinstance(value, DimmerAction):
        if value.event is not DimmerEvent.NONE and value.steps:
            events_counter.labels(
                device=device_name, object=key, event=value.event.name.lower()
            ).inc(value.steps)
    elif value is not ButtonEvent.NONE:
        events_counter.labels(device=device_name, object=key, event=value.name.lower()).inc()


def record_decode_error(device_name: str, error: Exception) -> None:
    """Count a failed decode, labelled by the exception class name."""
    decode_errors_counter.labels(device=device_name, error=type(error).__name__).inc()
