"""
Environment-backed configuration for the userop SDK.

Contract addresses and gas settings live in a flat ``KEY=VALUE`` file
(``.env``). Values already present in the process environment take
precedence over the file.
"""
import os
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import dotenv_values, set_key
from pydantic import BaseModel, ValidationError
from web3 import Web3

from .exceptions import ConfigError
from .models import GasConfig

# Import portalocker for file locking
try:
    import portalocker
except ImportError:
    raise ImportError(
        "portalocker package is required for the config module. "
        "Install with: pip install portalocker"
    )

logger = logging.getLogger(__name__)

ADDRESS_KEYS: Dict[str, str] = {
    "entry_point": "ENTRY_POINT_ADDRESS",
    "account_factory": "ACCOUNT_FACTORY_ADDRESS",
    "sponsor_paymaster": "SPONSOR_PAYMASTER_ADDRESS",
    "mock_target": "MOCK_TARGET_ADDRESS",
    "smart_account": "SMART_ACCOUNT_ADDRESS",
}

GAS_KEYS: Dict[str, str] = {
    "verification_gas_limit": "VERIFICATION_GAS_LIMIT",
    "call_gas_limit": "CALL_GAS_LIMIT",
    "max_priority_fee_per_gas": "MAX_PRIORITY_FEE_PER_GAS",
    "max_fee_per_gas": "MAX_FEE_PER_GAS",
    "pre_verification_gas": "PRE_VERIFICATION_GAS",
}

# Fee values stay as gwei strings; the rest are gas units
_INT_GAS_FIELDS = ("verification_gas_limit", "call_gas_limit", "pre_verification_gas")


class ContractAddresses(BaseModel):
    """Deployed contract addresses known to the environment"""
    entry_point: Optional[str] = None
    account_factory: Optional[str] = None
    sponsor_paymaster: Optional[str] = None
    mock_target: Optional[str] = None
    smart_account: Optional[str] = None

    def require(self, *names: str) -> Tuple[str, ...]:
        """
        Return the named addresses, failing if any are unset.

        Raises:
            ConfigError: Listing every missing address
        """
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigError(
                f"Missing addresses: {', '.join(missing)}. Deploy the contracts and save their addresses first."
            )
        return tuple(getattr(self, name) for name in names)


class EnvStore:
    """Process-safe KEY=VALUE store for contract addresses and settings"""

    def __init__(self, env_path: Optional[str] = None):
        """
        Initialize the store.

        Args:
            env_path: Optional custom path for the .env file
        """
        # Use USEROP_ENV_PATH env var or default to ./.env
        if env_path:
            self.env_path = Path(env_path)
        else:
            self.env_path = Path(os.environ.get("USEROP_ENV_PATH") or ".env")

    def _get_lock_path(self) -> str:
        """Get path for the lock file"""
        return str(self.env_path) + '.lock'

    def _file_values(self) -> Dict[str, Optional[str]]:
        if not self.env_path.exists():
            return {}
        return dotenv_values(self.env_path)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a value, preferring the process environment over the file.

        Args:
            key: Variable name
            default: Returned when the key is unset or empty
        """
        value = os.environ.get(key) or self._file_values().get(key)
        return value if value else default

    def get_required(self, key: str) -> str:
        """
        Get a value that must be set.

        Raises:
            ConfigError: If the key is unset or empty
        """
        value = self.get(key)
        if not value:
            raise ConfigError(f"Required environment variable {key} is not set")
        return value

    def save_address(self, key: str, address: str) -> str:
        """
        Persist an address to the .env file and the current process environment.

        Existing keys are updated in place; new keys are appended.

        Args:
            key: Variable name (e.g. ENTRY_POINT_ADDRESS)
            address: Contract address

        Returns:
            The checksummed address that was written

        Raises:
            ConfigError: If the address is malformed
        """
        if not Web3.is_address(address):
            raise ConfigError(f"Invalid address for {key}: {address!r}")
        address = Web3.to_checksum_address(address)

        with portalocker.Lock(self._get_lock_path(), timeout=10):
            if not self.env_path.exists():
                self.env_path.parent.mkdir(parents=True, exist_ok=True)
                self.env_path.touch()
            set_key(str(self.env_path), key, address, quote_mode="never")

        os.environ[key] = address
        logger.info("Saved %s=%s to %s", key, address, self.env_path)
        return address

    def get_gas_config(self) -> GasConfig:
        """
        Build a GasConfig from the environment, using defaults for unset keys.

        Raises:
            ConfigError: If a value is not a valid number
        """
        values = {}
        for field, key in GAS_KEYS.items():
            raw = self.get(key)
            if raw is None:
                continue
            if field in _INT_GAS_FIELDS:
                try:
                    values[field] = int(raw)
                except ValueError as e:
                    raise ConfigError(f"{key} must be an integer, got {raw!r}") from e
            else:
                values[field] = raw
        try:
            return GasConfig(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid gas configuration: {e}") from e

    def get_addresses(self) -> ContractAddresses:
        """Read every known contract address; unset ones are None"""
        return ContractAddresses(**{field: self.get(key) for field, key in ADDRESS_KEYS.items()})
