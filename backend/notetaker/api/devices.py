from __future__ import annotations

import logging

from fastapi import APIRouter
from pydantic import BaseModel

try:
    import sounddevice as sd
except Exception:
    sd = None  # Allow import on systems without PortAudio yet


logger = logging.getLogger("notetaker.api")

router = APIRouter(prefix="/devices", tags=["devices"])


class Device(BaseModel):
    id: str
    name: str
    is_default: bool = False


@router.get("")
def list_input_devices() -> dict[str, list[Device]]:
    inputs: list[Device] = []
    if sd is None:
        return {"inputs": inputs}

    try:
        devices = sd.query_devices()
        default_input = sd.default.device[0] if sd.default.device is not None else None
    except (OSError, sd.PortAudioError):
        logger.warning("Could not enumerate audio devices", exc_info=True)
        return {"inputs": inputs}

    for idx, dev in enumerate(devices):
        if dev.get("max_input_channels", 0) > 0:
            name = dev.get("name", f"Device {idx}")
            inputs.append(Device(id=str(idx), name=name, is_default=(idx == default_input)))
    return {"inputs": inputs}
