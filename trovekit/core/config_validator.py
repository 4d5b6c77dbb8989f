# /trovekit/core/config_validator.py
# Run at service startup to validate configuration before connecting.
from web3 import Web3

from trovekit.core.config import settings
from trovekit.core.logger import log


def validate():
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    if not settings.RPC_URL:
        errors.append("Missing required configuration: RPC_URL")

    for name, address in settings.contract_addresses.items():
        if not address:
            errors.append(f"Missing contract address: {name}")
        elif not Web3.is_address(address):
            errors.append(f"Malformed contract address for {name}: {address}")

    for var in ("USER_ADDRESS", "FRONTEND_TAG"):
        value = getattr(settings, var)
        if value and not Web3.is_address(value):
            errors.append(f"Malformed address in {var}: {value}")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")

if __name__ == "__main__":
    validate()
