"""Meter registry package."""

from meter_reader.registry.registry import (
    DuplicateMeterNumberError,
    InvalidInputError,
    MeterRegistry,
    NotFoundError,
    RegistryError,
)

__all__ = [
    "DuplicateMeterNumberError",
    "InvalidInputError",
    "MeterRegistry",
    "NotFoundError",
    "RegistryError",
]
