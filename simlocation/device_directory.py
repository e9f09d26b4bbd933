"""Simulator discovery via ``simctl list devices available --json``."""

import json
from typing import Any, Iterable, List, Optional, Union

from simlocation.exceptions import DeviceListUnavailable
from simlocation.logging import get_logger
from simlocation.models import Device
from simlocation.process import ProcessRunner, SimctlRunner

logger = get_logger(__name__)

LIST_ARGS = ("list", "devices", "available", "--json")


def sort_devices(devices: Iterable[Device]) -> List[Device]:
    """Booted devices first, then everything else; each group by name."""
    return sorted(devices, key=lambda device: (not device.is_booted, device.name))


def parse_device_list(data: Union[bytes, str]) -> List[Device]:
    """
    Flatten simctl's runtime-grouped JSON into a sorted device list.

    Entries that are not explicitly available, or lack a string udid, name
    or state, are skipped.

    Raises:
        DeviceListUnavailable: If the output is not JSON of the expected shape
    """
    try:
        payload: Any = json.loads(data)
    except (TypeError, ValueError) as e:
        raise DeviceListUnavailable(f"Unparseable device list: {e}") from e

    runtimes = payload.get("devices") if isinstance(payload, dict) else None
    if not isinstance(runtimes, dict):
        raise DeviceListUnavailable("Device list has no 'devices' mapping")

    devices: List[Device] = []
    for runtime, entries in runtimes.items():
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, dict) or entry.get("isAvailable") is not True:
                continue
            udid = entry.get("udid")
            name = entry.get("name")
            state = entry.get("state")
            if not all(isinstance(value, str) for value in (udid, name, state)):
                continue
            devices.append(Device(udid, name, state, runtime))

    return sort_devices(devices)


def pick_default(devices: List[Device]) -> Optional[Device]:
    """Return the first booted device, else the first device, else None."""
    for device in devices:
        if device.is_booted:
            return device
    return devices[0] if devices else None


class DeviceDirectory:
    """Lists the simulators a location can be sent to."""

    def __init__(self, runner: Optional[ProcessRunner] = None):
        self._runner = runner or SimctlRunner()
        self.last_error: Optional[DeviceListUnavailable] = None

    def fetch(self) -> List[Device]:
        """
        Run the listing command once and parse it.

        Raises:
            DeviceListUnavailable: If the command fails or its output is unusable
        """
        result = self._runner.run(*LIST_ARGS)
        if not result.ok:
            raise DeviceListUnavailable(
                f"simctl list exited {result.returncode}: {result.stderr or 'no output'}"
            )
        return parse_device_list(result.stdout)

    def list_available(self) -> List[Device]:
        """Return the sorted device list, or [] if it cannot be obtained."""
        try:
            devices = self.fetch()
        except DeviceListUnavailable as e:
            logger.warning("Device list unavailable: %s", e)
            self.last_error = e
            return []
        self.last_error = None
        logger.debug("Found %d available device(s)", len(devices))
        return devices
