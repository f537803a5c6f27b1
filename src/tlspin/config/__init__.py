import logging
from os import path
from pathlib import Path
from copy import deepcopy
from typing import Union

import yaml

from ..bundle import certificates_in_bundle, read_certificate_file
from ..exceptions import (
    ConfigurationError,
    CONFIGURATION_ERROR_CONFIG_FILE,
    CONFIGURATION_ERROR_FLAG,
    CONFIGURATION_ERROR_PIN_FILE,
)
from ..pinning import PinningMode
from ..policy import SecurityPolicy
from ..validator import SystemChainValidator

__module__ = "tlspin.config"

logger = logging.getLogger(__name__)
DEFAULT_CONFIG = ".tlspin-config.yaml"
CONFIG_PATH = f"{path.expanduser('~')}/.config/tlspin"


def _deep_merge(*args) -> dict:
    assert len(args) >= 2, "_deep_merge requires at least two dicts to merge"
    result = deepcopy(args[0])
    if not isinstance(result, dict):
        raise AttributeError(
            f"_deep_merge only takes dict arguments, got {type(result)} {result}"
        )
    for merge_dict in args[1:]:
        if not isinstance(merge_dict, dict):
            raise AttributeError(
                f"_deep_merge only takes dict arguments, got {type(merge_dict)} {merge_dict}"
            )
        for key, merge_val in merge_dict.items():
            result_val = result.get(key)
            if isinstance(result_val, dict) and isinstance(merge_val, dict):
                result[key] = _deep_merge(result_val, merge_val)
            else:
                result[key] = deepcopy(merge_val)
    return result


def _validate_flag(section: dict, name: str) -> bool:
    value = section.get(name)
    if not isinstance(value, bool):
        raise ConfigurationError(CONFIGURATION_ERROR_FLAG.format(name=name, kind=type(value)))
    return value


def _resolve(file_name: str, base_dir: Union[str, None]) -> Path:
    file_path = Path(file_name).expanduser()
    if not file_path.is_absolute() and base_dir:
        file_path = Path(base_dir) / file_path
    return file_path


def base_config() -> dict:
    return yaml.safe_load(
        Path(path.join(str(Path(__file__).parent), "base.yaml")).read_bytes()
    )


def load_config(filename: str = DEFAULT_CONFIG) -> dict:
    config_path = Path(filename)
    if config_path.is_file():
        logger.debug(config_path.absolute())
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf8"))
        except yaml.YAMLError as ex:
            raise ConfigurationError(
                CONFIGURATION_ERROR_CONFIG_FILE.format(path=config_path)
            ) from ex
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(CONFIGURATION_ERROR_CONFIG_FILE.format(path=config_path))
        data.setdefault("_config_dir", str(config_path.absolute().parent))
        return data
    return {}


def _validate_config(combined_config: dict) -> dict:
    policy = combined_config.get("policy")
    validator = combined_config.get("validator")
    if not isinstance(policy, dict) or not isinstance(validator, dict):
        raise ConfigurationError("Configuration requires policy and validator sections")
    PinningMode.from_value(policy.get("pinning_mode"))
    if not isinstance(policy.get("pinned_certificates") or [], list):
        raise ConfigurationError("pinned_certificates must be a list of file paths")
    for name in ["allow_invalid_certificates", "validates_domain_name"]:
        _validate_flag(policy, name)
    _validate_flag(validator, "allow_fetching")
    return combined_config


def combine_configs(*configs) -> dict:
    return _validate_config(_deep_merge(base_config(), *configs))


def get_config(custom_values: Union[dict, None] = None) -> dict:
    user_config = load_config(path.join(CONFIG_PATH, DEFAULT_CONFIG))
    return combine_configs(user_config, custom_values or {})


def validator_from_config(config: dict) -> SystemChainValidator:
    config = combine_configs(config)
    section = config.get("validator") or {}
    cafile = section.get("cafile")
    if cafile:
        cafile = str(_resolve(cafile, config.get("_config_dir")))
    return SystemChainValidator(
        cafile=cafile,
        allow_fetching=_validate_flag(section, "allow_fetching"),
        revocation_mode=section.get("revocation_mode"),
    )


def policy_from_config(config: dict) -> SecurityPolicy:
    config = combine_configs(config)
    section = config.get("policy") or {}
    base_dir = config.get("_config_dir")
    mode = PinningMode.from_value(section.get("pinning_mode", PinningMode.NONE))
    pinned_certificates = set()
    if mode is not PinningMode.NONE:
        if section.get("certificate_bundle"):
            pinned_certificates.update(
                certificates_in_bundle(_resolve(section["certificate_bundle"], base_dir))
            )
        for file_name in section.get("pinned_certificates") or []:
            file_path = _resolve(file_name, base_dir)
            if not file_path.is_file():
                raise ConfigurationError(CONFIGURATION_ERROR_PIN_FILE.format(path=file_path))
            pinned_certificates.update(read_certificate_file(file_path))
    return SecurityPolicy(
        pinning_mode=mode,
        pinned_certificates=pinned_certificates,
        allow_invalid_certificates=_validate_flag(section, "allow_invalid_certificates"),
        validates_domain_name=_validate_flag(section, "validates_domain_name"),
        chain_validator=validator_from_config(config),
    )
