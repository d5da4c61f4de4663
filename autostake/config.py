"""
Configuration loading and validation for autostake.

The run is described by a YAML file; a few values can be overridden from the
environment:

    AUTOSTAKE_CONFIG             path of the YAML file (default: config.yaml)
    AUTOSTAKE_RPC_URL            overrides ``rpc``
    AUTOSTAKE_PRIVATE_KEYS_FILE  overrides ``privateKeysFile``
"""
import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from web3 import Web3

from .exceptions import ConfigError
from .models import LifecycleSettings, Range, RunParameters, ether_bounds_wei

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
# Monad staking precompile
DEFAULT_CONTRACT_ADDRESS = "0x0000000000000000000000000000000000001000"
DEFAULT_EXPLORER_TX_URL = "https://testnet.monadexplorer.com/tx"

_ENV_OVERRIDES = {
    "AUTOSTAKE_RPC_URL": "rpc",
    "AUTOSTAKE_PRIVATE_KEYS_FILE": "privateKeysFile",
}


class AppConfig(BaseModel):
    """Validated contents of the YAML configuration file."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    stake: Range
    delay: Range
    validators: List[int] = Field(..., min_length=1)
    private_keys_file: str = Field(..., alias="privateKeysFile", min_length=1)
    rpc: str = Field(..., min_length=1)
    contract_address: str = Field(DEFAULT_CONTRACT_ADDRESS, alias="contractAddress")
    explorer_tx: str = Field(DEFAULT_EXPLORER_TX_URL, alias="explorerTx")

    max_fee_gwei: float = Field(3.0, alias="maxFeeGwei", gt=0)
    gas_poll_interval: float = Field(5.0, alias="gasPollInterval", gt=0)
    gas_wait_timeout: float = Field(300.0, alias="gasWaitTimeout", gt=0)
    retry_count: int = Field(5, alias="retryCount", ge=1)
    retry_backoff: float = Field(2.0, alias="retryBackoff", ge=0)
    receipt_poll_interval: float = Field(3.0, alias="receiptPollInterval", gt=0)
    receipt_timeout: float = Field(60.0, alias="receiptTimeout", gt=0)
    connect_timeout: float = Field(10.0, alias="connectTimeout", gt=0)
    grace_period: float = Field(30.0, alias="gracePeriod", ge=0)

    @field_validator("validators")
    @classmethod
    def _check_validators(cls, value: List[int]) -> List[int]:
        for validator_id in value:
            if not 0 <= validator_id < 2 ** 64:
                raise ValueError(f"validator id out of range: {validator_id}")
        if len(set(value)) != len(value):
            raise ValueError("validator ids must be unique")
        return value

    @field_validator("stake")
    @classmethod
    def _check_stake_in_wei(cls, value: Range) -> Range:
        min_wei, max_wei = ether_bounds_wei(value)
        if max_wei <= min_wei:
            raise ValueError(f"stake range is empty once converted to wei: [{min_wei}, {max_wei})")
        return value

    @field_validator("contract_address")
    @classmethod
    def _check_contract_address(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError(f"not a valid address: {value}")
        return Web3.to_checksum_address(value)

    def run_parameters(self) -> RunParameters:
        return RunParameters(
            stake=self.stake,
            delay=self.delay,
            validators=tuple(self.validators),
            contract_address=self.contract_address,
            rpc_url=self.rpc,
            explorer_tx_url=self.explorer_tx,
        )

    def lifecycle_settings(self) -> LifecycleSettings:
        return LifecycleSettings(
            max_fee_wei=Web3.to_wei(Decimal(str(self.max_fee_gwei)), "gwei"),
            gas_poll_interval=self.gas_poll_interval,
            gas_wait_timeout=self.gas_wait_timeout,
            retry_count=self.retry_count,
            retry_backoff=self.retry_backoff,
            receipt_poll_interval=self.receipt_poll_interval,
            receipt_timeout=self.receipt_timeout,
        )


def resolve_config_path(path: Optional[Union[str, Path]] = None,
                        env: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if env is None else env
    return Path(path or env.get("AUTOSTAKE_CONFIG") or DEFAULT_CONFIG_PATH)


def load_config(path: Optional[Union[str, Path]] = None,
                env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load, override and validate the configuration.

    A relative ``privateKeysFile`` is resolved against the directory of the
    configuration file.

    Args:
        path: YAML file (falls back to AUTOSTAKE_CONFIG, then config.yaml)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    env = os.environ if env is None else env
    config_path = resolve_config_path(path, env)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_path} must contain a mapping")

    data = _apply_env_overrides(data, env)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration in {config_path}: {e}") from e

    keys_path = Path(config.private_keys_file)
    if not keys_path.is_absolute():
        config = config.model_copy(
            update={"private_keys_file": str(config_path.parent / keys_path)}
        )

    logger.debug(f"Loaded configuration from {config_path}")
    return config


def _apply_env_overrides(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    result = dict(data)
    for env_name, key in _ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            logger.debug(f"Overriding {key} from {env_name}")
            result[key] = value
    return result
