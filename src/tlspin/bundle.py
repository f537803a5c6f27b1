import logging
from os import getenv
from pathlib import Path
from typing import Iterable, Union

from . import constants
from .certificate import pem_to_der
from .exceptions import ConfigurationError, CONFIGURATION_ERROR_BUNDLE

__module__ = "tlspin.bundle"

logger = logging.getLogger(__name__)


def default_bundle_location() -> Path:
    return Path(getenv(constants.DEFAULT_BUNDLE_ENV, constants.DEFAULT_BUNDLE_PATH))


def certificates_in_bundle(
    location: Union[str, Path, None] = None,
    extensions: Iterable[str] = constants.PINNED_CERTIFICATE_EXTENSIONS,
) -> frozenset:
    """
    Read the certificates shipped in a bundle directory.

    Files are matched by extension only, their payloads are returned as DER
    bytes (PEM armoured files are unarmoured) and are not parsed here;
    malformed payloads surface when a policy is built from them.
    """
    bundle = Path(location) if location is not None else default_bundle_location()
    if not bundle.is_dir():
        raise ConfigurationError(CONFIGURATION_ERROR_BUNDLE.format(location=bundle))
    suffixes = {suffix.lower() for suffix in extensions}
    certificates = set()
    for file_path in sorted(bundle.iterdir()):
        if not file_path.is_file() or file_path.suffix.lower() not in suffixes:
            continue
        try:
            certificates.update(read_certificate_file(file_path))
        except (OSError, ValueError) as ex:
            logger.warning(f"bad certificate file {file_path}: {ex}")
    logger.debug(f"found {len(certificates)} certificates in bundle {bundle}")
    return frozenset(certificates)


def read_certificate_file(file_path: Union[str, Path]) -> list[bytes]:
    data = Path(file_path).read_bytes()
    return [der for der in pem_to_der(data) if der]
