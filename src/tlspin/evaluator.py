import logging
from typing import TYPE_CHECKING, Union

from . import constants
from .certificate import public_key_bytes
from .pinning import PinningMode
from .trust import ServerTrust
from .validator import ChainValidationResult, parse_presented_chain

if TYPE_CHECKING:
    from .policy import SecurityPolicy

__module__ = "tlspin.evaluator"

logger = logging.getLogger(__name__)


def evaluate_server_trust(
    policy: "SecurityPolicy",
    server_trust: ServerTrust,
    hostname: Union[str, None] = None,
) -> bool:
    """
    Decide whether the presented chain should be trusted under the policy.

    Chain validation runs first (constrained to the hostname when the policy
    validates domain names and one was given, with the pinned certificates
    as extra trust anchors in certificate mode). Without pinning the system
    verdict decides, tolerated when invalid certificates are allowed. With
    pinning a failed verdict is fatal unless tolerated, and then at least one
    certificate of the chain must match the pinned certificates or their
    public keys.

    Every failure is a rejection, this never raises.
    """
    if not isinstance(server_trust, ServerTrust):
        logger.info(f"rejected, unsupported server trust {type(server_trust)}")
        return False
    if not server_trust.certificates:
        logger.info("rejected, the server presented no certificates")
        return False
    if len(server_trust.certificates) > constants.MAX_CHAIN_LENGTH:
        logger.info(
            f"rejected, chain length {len(server_trust.certificates)} exceeds {constants.MAX_CHAIN_LENGTH}"
        )
        return False

    validation_hostname = hostname if policy.validates_domain_name and hostname else None
    extra_anchors = None
    if policy.pinning_mode is PinningMode.CERTIFICATE:
        extra_anchors = policy.pinned.anchors

    try:
        result = policy.chain_validator.validate(
            server_trust, hostname=validation_hostname, extra_anchors=extra_anchors
        )
    except Exception as ex:  # pylint: disable=broad-except
        logger.warning(ex, exc_info=True)
        return False
    if not isinstance(result, ChainValidationResult):
        logger.warning(f"rejected, chain validator returned {type(result)}")
        return False

    if policy.pinning_mode is PinningMode.NONE:
        if result.system_verdict:
            logger.debug(f"accepted {hostname or 'unnamed host'}: {result.reason}")
            return True
        if policy.allow_invalid_certificates:
            logger.warning(f"accepted invalid certificate chain: {result.reason}")
            return True
        logger.info(f"rejected {hostname or 'unnamed host'}: {result.reason}")
        return False

    if not result.system_verdict and not policy.allow_invalid_certificates:
        logger.info(f"rejected {hostname or 'unnamed host'}: {result.reason}")
        return False

    try:
        if policy.pinning_mode is PinningMode.CERTIFICATE:
            matched = certificate_pinned(policy, result)
        else:
            matched = public_key_pinned(policy, result, server_trust)
    except Exception as ex:  # pylint: disable=broad-except
        logger.warning(ex, exc_info=True)
        return False

    if matched:
        logger.debug(f"accepted, {policy.pinning_mode.value} pin matched")
        return True
    logger.info(f"rejected, no {policy.pinning_mode.value} pin matched the server chain")
    return False


def certificate_pinned(policy: "SecurityPolicy", result: ChainValidationResult) -> bool:
    chain_der = {cert.der for cert in result.chain}
    return not chain_der.isdisjoint(policy.pinned.comparison)


def public_key_pinned(
    policy: "SecurityPolicy", result: ChainValidationResult, server_trust: ServerTrust
) -> bool:
    chain = result.chain
    if not chain:
        logger.debug("no validated chain, using the presented certificates")
        chain = parse_presented_chain(server_trust)
    for cert in chain:
        if public_key_bytes(cert) in policy.pinned.comparison:
            logger.debug(f"public key pin matched {cert.spki_pin} for {cert.subject}")
            return True
    return False
