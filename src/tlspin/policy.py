import logging
from dataclasses import dataclass, field, replace as dataclass_replace
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Union

from . import evaluator
from .bundle import certificates_in_bundle
from .exceptions import ConfigurationError, CONFIGURATION_ERROR_FLAG
from .pinning import PinningMode, PinnedSet, build_pinned_set
from .trust import ServerTrust
from .validator import ChainValidator, SystemChainValidator

__module__ = "tlspin.policy"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecurityPolicy:
    """
    Evaluates server trust against the system trust store and, optionally,
    against pinned certificates or public keys.

    A policy never changes once built. The `replace` helpers return a new
    policy so a value can be shared by any number of connections and threads.

    pinning_mode: how pinned certificates are compared with the server chain
    pinned_certificates: DER encoded certificates to pin against, required
        for any mode other than PinningMode.NONE
    allow_invalid_certificates: tolerate chains the system does not trust;
        pins are still enforced. Combined with PinningMode.NONE every server
        is trusted, which is only suitable for development
    validates_domain_name: require the leaf certificate to match the hostname
        given to `evaluate_server_trust`
    chain_validator: the system trust evaluator
    """

    pinning_mode: PinningMode = PinningMode.NONE
    pinned_certificates: frozenset = field(default_factory=frozenset)
    allow_invalid_certificates: bool = False
    validates_domain_name: bool = True
    chain_validator: ChainValidator = field(
        default_factory=SystemChainValidator, compare=False, repr=False
    )
    pinned: PinnedSet = field(init=False, compare=False, repr=False)

    def __post_init__(self):
        mode = PinningMode.from_value(self.pinning_mode)
        for name in ["allow_invalid_certificates", "validates_domain_name"]:
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigurationError(
                    CONFIGURATION_ERROR_FLAG.format(name=name, kind=type(value))
                )
        if not callable(getattr(self.chain_validator, "validate", None)):
            raise TypeError(
                f"provided an invalid type {type(self.chain_validator)} for chain_validator, expected ChainValidator"
            )
        pinned = build_pinned_set(self.pinned_certificates, mode)
        object.__setattr__(self, "pinning_mode", mode)
        object.__setattr__(self, "pinned_certificates", pinned.certificates)
        object.__setattr__(self, "pinned", pinned)
        if mode is PinningMode.NONE and self.allow_invalid_certificates:
            logger.warning(
                "allow_invalid_certificates without pinning trusts every server, use only for development"
            )

    @classmethod
    def default_policy(cls) -> "SecurityPolicy":
        return _shared_default_policy()

    @classmethod
    def with_pinning_mode(
        cls,
        pinning_mode: Union[PinningMode, str],
        bundle: Union[str, Path, None] = None,
        **kwargs,
    ) -> "SecurityPolicy":
        mode = PinningMode.from_value(pinning_mode)
        pinned_certificates = frozenset()
        if mode is not PinningMode.NONE:
            pinned_certificates = certificates_in_bundle(bundle)
        return cls(pinning_mode=mode, pinned_certificates=pinned_certificates, **kwargs)

    @classmethod
    def with_pinned_certificates(
        cls,
        pinning_mode: Union[PinningMode, str],
        pinned_certificates: Iterable[bytes],
        **kwargs,
    ) -> "SecurityPolicy":
        return cls(
            pinning_mode=pinning_mode,
            pinned_certificates=pinned_certificates,
            **kwargs,
        )

    def replace(self, **changes) -> "SecurityPolicy":
        return dataclass_replace(self, **changes)

    def replace_pinned_certificates(
        self, pinned_certificates: Iterable[bytes]
    ) -> "SecurityPolicy":
        return self.replace(pinned_certificates=pinned_certificates)

    def evaluate_server_trust(
        self, server_trust: ServerTrust, domain: Union[str, None] = None
    ) -> bool:
        return evaluator.evaluate_server_trust(self, server_trust, hostname=domain)

    def to_dict(self) -> dict:
        return {
            "pinning_mode": self.pinning_mode.value,
            "pinned_certificates": sorted(cert.spki_pin for cert in self.pinned.anchors),
            "allow_invalid_certificates": self.allow_invalid_certificates,
            "validates_domain_name": self.validates_domain_name,
        }


@lru_cache(maxsize=1)
def _shared_default_policy() -> SecurityPolicy:
    return SecurityPolicy()


class SecurityPolicyBuilder:
    def __init__(self, policy: Union[SecurityPolicy, None] = None) -> None:
        policy = policy or SecurityPolicy.default_policy()
        self._values = {
            "pinning_mode": policy.pinning_mode,
            "pinned_certificates": policy.pinned_certificates,
            "allow_invalid_certificates": policy.allow_invalid_certificates,
            "validates_domain_name": policy.validates_domain_name,
            "chain_validator": policy.chain_validator,
        }

    def pinning_mode(self, mode: Union[PinningMode, str]) -> "SecurityPolicyBuilder":
        self._values["pinning_mode"] = mode
        return self

    def pinned_certificates(self, certificates: Iterable[bytes]) -> "SecurityPolicyBuilder":
        self._values["pinned_certificates"] = tuple(certificates)
        return self

    def bundle(self, location: Union[str, Path, None] = None) -> "SecurityPolicyBuilder":
        self._values["pinned_certificates"] = certificates_in_bundle(location)
        return self

    def allow_invalid_certificates(self, allow: bool = True) -> "SecurityPolicyBuilder":
        self._values["allow_invalid_certificates"] = allow
        return self

    def validates_domain_name(self, validate: bool = True) -> "SecurityPolicyBuilder":
        self._values["validates_domain_name"] = validate
        return self

    def chain_validator(self, validator: ChainValidator) -> "SecurityPolicyBuilder":
        self._values["chain_validator"] = validator
        return self

    def build(self) -> SecurityPolicy:
        return SecurityPolicy(**self._values)
