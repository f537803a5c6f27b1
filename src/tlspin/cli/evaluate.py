import logging
from typing import Union

from rich.console import Console

from .. import cli, constants
from ..config import policy_from_config
from ..exceptions import TransportError
from ..transport import TLSTransport
from ..validator import parse_presented_chain

__module__ = "tlspin.cli.evaluate"

logger = logging.getLogger(__name__)


def evaluate(
    config: dict,
    hostname: str,
    port: int = 443,
    use_sni: bool = True,
    con: Union[Console, None] = None,
) -> bool:
    policy = policy_from_config(config)
    cli.infoln(
        f"pinning mode {policy.pinning_mode.value} with {len(policy.pinned)} pinned certificates",
        result_text="POLICY",
        con=con,
    )
    if policy.allow_invalid_certificates:
        cli.warnln("invalid certificate chains are tolerated", con=con)
    if not policy.validates_domain_name:
        cli.warnln("domain name validation is disabled", con=con)

    transport = TLSTransport(hostname, port)
    try:
        server_trust = transport.connect(use_sni=use_sni)
    except TransportError as ex:
        logger.debug(ex, stack_info=True)
        cli.failln(str(ex), result_text="ERROR", hostname=hostname, port=port, con=con)
        return False
    cli.infoln(
        f"Negotiated {transport.negotiated_protocol} {transport.peer_address}",
        hostname=hostname,
        port=port,
        con=con,
    )
    for cert in parse_presented_chain(server_trust):
        cli.infoln(
            cert.subject,
            result_text="CHAIN",
            result_label=cert.spki_pin,
            con=con,
        )

    trusted = policy.evaluate_server_trust(server_trust, domain=hostname)
    if trusted:
        cli.passln(
            "server trust evaluation", hostname=hostname, port=port, bold_result=True, con=con
        )
    else:
        cli.failln(
            "server trust evaluation", hostname=hostname, port=port, bold_result=True, con=con
        )
    logger.info(
        f"{hostname}:{port} {constants.DEFAULT_MAP[constants.RESULT_LEVEL_PASS if trusted else constants.RESULT_LEVEL_FAIL]}"
    )
    return trusted
