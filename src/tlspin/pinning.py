import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Iterable, Union

from . import certificate
from .certificate import Certificate
from .exceptions import (
    ConfigurationError,
    MalformedCertificateError,
    CONFIGURATION_ERROR_EMPTY_PINS,
    CONFIGURATION_ERROR_MALFORMED_PIN,
    CONFIGURATION_ERROR_PINNING_MODE,
)

__module__ = "tlspin.pinning"

logger = logging.getLogger(__name__)


class PinningMode(str, Enum):
    NONE = "none"
    PUBLIC_KEY = "public_key"
    CERTIFICATE = "certificate"

    @classmethod
    def from_value(cls, value: Union["PinningMode", str]) -> "PinningMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalised = value.strip().lower().replace("-", "_")
            for mode in cls:
                if mode.value == normalised or mode.name.lower() == normalised:
                    return mode
        raise ConfigurationError(
            CONFIGURATION_ERROR_PINNING_MODE.format(
                mode=value, modes=", ".join(mode.value for mode in cls)
            )
        )


@dataclass(frozen=True)
class PinnedSet:
    mode: PinningMode
    certificates: frozenset = field(default_factory=frozenset)
    comparison: frozenset = field(default_factory=frozenset)
    anchors: tuple = field(default_factory=tuple)

    def __contains__(self, candidate: bytes) -> bool:
        return candidate in self.comparison

    def __len__(self) -> int:
        return len(self.comparison)


def build_pinned_set(
    certificates: Union[Iterable[bytes], None], mode: PinningMode
) -> PinnedSet:
    """
    Parse and index the embedder supplied certificates for the given mode.

    The comparison set holds the DER blobs for certificate pinning and the
    SubjectPublicKeyInfo blobs for public key pinning; it is empty when no
    pinning is performed. Duplicates collapse by exact byte equality.
    """
    mode = PinningMode.from_value(mode)
    blobs = []
    for blob in certificates or []:
        if isinstance(blob, Certificate):
            blob = blob.der
        if isinstance(blob, (bytearray, memoryview)):
            blob = bytes(blob)
        blobs.append(blob)

    parsed: dict[bytes, Certificate] = {}
    for index, blob in enumerate(blobs):
        try:
            handle = certificate.parse(blob)
        except MalformedCertificateError as ex:
            raise ConfigurationError(
                CONFIGURATION_ERROR_MALFORMED_PIN.format(index=index, reason=ex)
            ) from ex
        parsed.setdefault(handle.der, handle)

    if mode is not PinningMode.NONE and not parsed:
        raise ConfigurationError(CONFIGURATION_ERROR_EMPTY_PINS.format(mode=mode.value))

    comparison = frozenset()
    if mode is PinningMode.CERTIFICATE:
        comparison = frozenset(parsed.keys())
    if mode is PinningMode.PUBLIC_KEY:
        comparison = frozenset(handle.spki for handle in parsed.values())
    logger.debug(
        f"pinned {len(parsed)} certificates for mode {mode.value}, {len(comparison)} comparison values"
    )
    return PinnedSet(
        mode=mode,
        certificates=frozenset(parsed.keys()),
        comparison=comparison,
        anchors=tuple(parsed.values()),
    )
