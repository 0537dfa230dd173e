from .mock import MockBme680Driver
from .rpi_bme680 import I2C_ADDR_PRIMARY, I2C_ADDR_SECONDARY, Bme680Driver

__all__ = [
    "Bme680Driver",
    "I2C_ADDR_PRIMARY",
    "I2C_ADDR_SECONDARY",
    "MockBme680Driver",
]
