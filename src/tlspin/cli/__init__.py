from typing import Union

from rich.console import Console
from rich.table import Table

from .. import constants


def outputln(
    message: str,
    con: Union[Console, None] = None,
    result_level: str = constants.RESULT_LEVEL_INFO,
    result_text: Union[str, None] = None,
    result_label: str = "",
    hostname: Union[str, None] = None,
    port: Union[int, None] = None,
    aside: str = "",
    bold_result: bool = False,
):
    """
    Print one report row: a coloured result word and the message on the left,
    the label and the server (or `aside`) dimmed on the right. Nothing is
    printed without a console or for an unknown result level.
    """
    if not isinstance(con, Console) or result_level not in constants.CLI_COLOR_MAP:
        return
    color = constants.CLI_COLOR_MAP[result_level]
    if result_text is None:
        result_text = constants.DEFAULT_MAP[result_level]
    if hostname:
        aside += f"{hostname}:{port}" if port else hostname
    result = f"[{color}]{result_text}[/{color}]"
    if bold_result:
        result = f"[bold]{result}[/bold]"

    table = Table.grid(expand=True)
    table.add_column()
    table.add_column(justify="right", style="dim", no_wrap=True, overflow=None)
    table.add_row(f"{result} {message}", f"{result_label} {aside}".strip())
    con.print(table)


def infoln(message: str, con: Union[Console, None] = None, **kwargs):
    outputln(message, con=con, result_level=constants.RESULT_LEVEL_INFO, **kwargs)


def failln(message: str, con: Union[Console, None] = None, **kwargs):
    outputln(message, con=con, result_level=constants.RESULT_LEVEL_FAIL, **kwargs)


def passln(message: str, con: Union[Console, None] = None, **kwargs):
    outputln(message, con=con, result_level=constants.RESULT_LEVEL_PASS, **kwargs)


def warnln(message: str, con: Union[Console, None] = None, **kwargs):
    outputln(message, con=con, result_level=constants.RESULT_LEVEL_WARN, **kwargs)
