import logging
from pathlib import Path
from typing import Union

from rich.console import Console

from .. import cli
from ..bundle import certificates_in_bundle, read_certificate_file
from ..certificate import parse
from ..exceptions import ConfigurationError, MalformedCertificateError

__module__ = "tlspin.cli.pins"

logger = logging.getLogger(__name__)


def _read(location: Path) -> list[bytes]:
    if location.is_dir():
        return sorted(certificates_in_bundle(location))
    return read_certificate_file(location)


def pins(paths: list[str], con: Union[Console, None] = None) -> list[str]:
    """
    Print the subject, SHA-256 fingerprint and SPKI pin of every certificate
    found in the given files or bundle directories.

    Returns the SPKI pins in the order they were printed.
    """
    results = []
    for location in [Path(p) for p in paths]:
        try:
            blobs = _read(location)
        except (OSError, ConfigurationError) as ex:
            logger.debug(ex, stack_info=True)
            cli.failln(str(ex), result_text="ERROR", con=con)
            continue
        for index, der in enumerate(blobs):
            try:
                cert = parse(der)
            except MalformedCertificateError as ex:
                logger.debug(ex, stack_info=True)
                cli.failln(f"{location} [{index}] {ex}", result_text="MALFORMED", con=con)
                continue
            cli.infoln(
                cert.subject,
                result_text="CERT",
                result_label=str(location),
                con=con,
            )
            cli.infoln(cert.sha256_fingerprint, result_text="SHA256", con=con)
            cli.passln(cert.spki_pin, result_text="PIN", con=con)
            results.append(cert.spki_pin)
    return results
