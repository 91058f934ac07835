"""
Serial Sensor Source
=====================
Reads newline-delimited records from a USB serial sensor (115200 baud).

Accepted line formats:
    {"hr": 82, "gsr": 3.4, "stress": 41}          JSON (heartRate/stressScore also accepted)
    82,3.4                                         CSV heartRate,gsr
    82,3.4,41                                      CSV heartRate,gsr,stressScore

Malformed lines are logged and dropped. Partial lines are buffered until the
newline arrives in a later read.
"""

import json
import logging
from typing import Callable, List, Optional, Sequence

import serial
import serial.tools.list_ports

from neuroflow.config.settings import (
    SERIAL_BAUD_RATE,
    SERIAL_MAX_LINE_BYTES,
    SERIAL_POLL_INTERVAL_SEC,
)
from neuroflow.errors import DeviceSelectionCancelled, TransportError
from neuroflow.scheduling import Scheduler, TimerHandle
from neuroflow.schemas import RawSample

logger = logging.getLogger("SerialSource")

PortChooser = Callable[[Sequence[str]], Optional[str]]


def list_serial_ports() -> List[str]:
    """Device paths of every serial port the OS currently reports."""
    return [p.device for p in serial.tools.list_ports.comports()]


def _to_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first_present(record: dict, *keys):
    for key in keys:
        if key in record:
            return record[key]
    return None


def parse_record(line: str) -> Optional[RawSample]:
    """
    Parse one line from the sensor.

    Returns:
        RawSample, or None when the line is not a valid record
    """
    text = line.strip()
    if not text:
        return None

    if text.startswith("{"):
        try:
            record = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(record, dict):
            return None
        heart_rate = _to_number(_first_present(record, "hr", "heartRate"))
        gsr = _to_number(record.get("gsr"))
        if heart_rate is None or gsr is None:
            return None
        return RawSample(
            heart_rate=heart_rate,
            gsr=gsr,
            stress_score=_to_number(_first_present(record, "stress", "stressScore")),
            battery_level=_to_number(_first_present(record, "battery", "battery_level")),
        )

    parts = [p.strip() for p in text.split(",")]
    if len(parts) not in (2, 3):
        return None
    values = [_to_number(p) for p in parts]
    if any(v is None for v in values):
        return None
    return RawSample(
        heart_rate=values[0],
        gsr=values[1],
        stress_score=values[2] if len(values) == 3 else None,
    )


class LineBuffer:
    """Accumulates raw bytes and yields complete decoded lines."""

    def __init__(self, max_line_bytes: int = SERIAL_MAX_LINE_BYTES):
        self.max_line_bytes = max_line_bytes
        self._pending = b""

    @property
    def pending(self) -> bytes:
        return self._pending

    def feed(self, chunk: bytes) -> List[str]:
        self._pending += chunk
        *complete, self._pending = self._pending.split(b"\n")

        if len(self._pending) > self.max_line_bytes:
            logger.warning(f"Discarding {len(self._pending)} bytes without a newline")
            self._pending = b""

        lines = []
        for raw in complete:
            text = raw.decode("utf-8", errors="replace").rstrip("\r")
            if text.strip():
                lines.append(text)
        return lines

    def clear(self):
        self._pending = b""


class SerialSource:
    """
    Signal source reading a serial sensor without blocking the event thread.

    The port is polled on the scheduler; each poll drains whatever bytes are
    waiting. A read fault stops the source and is reported through on_fault.
    """

    name = "serial"
    handshake_delay_sec = 0.0

    def __init__(
        self,
        scheduler: Scheduler,
        port: Optional[str] = None,
        baudrate: int = SERIAL_BAUD_RATE,
        port_chooser: Optional[PortChooser] = None,
        serial_factory: Callable = None,
        poll_interval_sec: float = SERIAL_POLL_INTERVAL_SEC,
    ):
        self.scheduler = scheduler
        self.port = port
        self.baudrate = baudrate
        self.port_chooser = port_chooser
        self.serial_factory = serial_factory or serial.Serial
        self.poll_interval_sec = poll_interval_sec

        self.battery_level = None
        self.ser = None
        self._buffer = LineBuffer()
        self._timer: Optional[TimerHandle] = None
        self._on_sample = None
        self._on_fault = None

        self.total_lines = 0
        self.malformed_lines = 0

    @property
    def running(self) -> bool:
        return self._timer is not None

    def _select_port(self) -> str:
        if self.port:
            return self.port
        ports = list_serial_ports()
        if self.port_chooser is not None:
            chosen = self.port_chooser(ports)
            if not chosen:
                raise DeviceSelectionCancelled("No serial port selected")
            return chosen
        if not ports:
            raise TransportError("No serial ports found")
        return ports[0]

    def open(self):
        """Select and open the port. Raises TransportError or DeviceSelectionCancelled."""
        port = self._select_port()
        handle = None
        try:
            handle = self.serial_factory(port, self.baudrate, timeout=0)
            handle.reset_input_buffer()
        except (serial.SerialException, OSError, ValueError) as e:
            if handle is not None:
                _close_quietly(handle)
            raise TransportError(f"Failed to open {port}: {e}") from e

        self.ser = handle
        self.port = port
        self._buffer.clear()
        logger.info(f"Opened serial port {port} @ {self.baudrate} baud")

    def start(self, on_sample: Callable[[RawSample], None], on_fault: Callable = None):
        if self._timer is not None:
            logger.warning("Already running")
            return
        if self.ser is None:
            raise TransportError("Serial port is not open")
        self._on_sample = on_sample
        self._on_fault = on_fault
        self._timer = self.scheduler.call_every(self.poll_interval_sec, self._poll)
        logger.info("Started serial reader")

    def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.ser is not None:
            _close_quietly(self.ser)
            self.ser = None
            logger.info("Stopped")
        self._buffer.clear()
        self._on_sample = None
        self._on_fault = None

    def _poll(self):
        if self.ser is None:
            return
        try:
            waiting = self.ser.in_waiting
            chunk = self.ser.read(waiting) if waiting else b""
        except (serial.SerialException, OSError) as e:
            on_fault = self._on_fault
            self.stop()
            logger.error(f"Serial read failed: {e}")
            if on_fault is not None:
                on_fault(TransportError(f"Serial read failed: {e}"))
            return

        if chunk:
            self.feed(chunk)

    def feed(self, chunk: bytes):
        """Push raw bytes through line framing and parsing."""
        for line in self._buffer.feed(chunk):
            self.total_lines += 1
            sample = parse_record(line)
            if sample is None:
                self.malformed_lines += 1
                logger.warning(f"Discarding malformed line: {line!r}")
                continue
            if sample.battery_level is not None:
                self.battery_level = sample.battery_level
            if self._on_sample is not None:
                self._on_sample(sample)

    def get_stats(self) -> dict:
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "open": self.ser is not None,
            "total_lines": self.total_lines,
            "malformed_lines": self.malformed_lines,
        }


def _close_quietly(handle):
    try:
        handle.close()
    except (serial.SerialException, OSError) as e:
        logger.error(f"Error closing port: {e}")
