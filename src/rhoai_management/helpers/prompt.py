"""Interactive gates in front of destructive or irreversible actions."""

import logging
from typing import Dict, Optional

import click

log = logging.getLogger(__name__)

YES_ANSWERS = ("y", "yes")
NO_ANSWERS = ("n", "no")


def confirm(question: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question until a valid answer is given.

    Args:
        question: The question to ask, without the (y/n) hint.
        assume_yes: Answer yes without asking.

    Returns:
        True for yes, False for no.
    """
    if assume_yes:
        log.info("%s: yes (--yes given)", question)
        return True

    while True:
        answer = click.prompt(f"{question} (y/n)", default="", show_default=False)
        answer = answer.strip().lower()
        if answer in YES_ANSWERS:
            return True
        if answer in NO_ANSWERS:
            return False

        log.error("Invalid input. Please enter 'y' or 'n'")


def choose(question: str, aliases: Dict[str, str], preselected: Optional[str] = None) -> str:
    """Ask for one of a fixed set of values until a valid answer is given.

    Args:
        question: The question to ask.
        aliases: Maps every accepted answer, in lowercase, to its canonical value.
        preselected: An answer given upfront, e.g. from a command line option.

    Returns:
        The canonical value of the answer.

    Raises:
        click.BadParameter: If the preselected answer isn't accepted.
    """
    canonical = sorted(set(aliases.values()))
    hint = "/".join(canonical)

    if preselected is not None:
        value = aliases.get(preselected.strip().lower())
        if value is None:
            raise click.BadParameter(
                "'%s' is not one of %s" % (preselected, ", ".join(canonical))
            )
        return value

    while True:
        answer = click.prompt(f"{question} ({hint})", default="", show_default=False)
        value = aliases.get(answer.strip().lower())
        if value is not None:
            return value

        log.error("Invalid input. Please enter one of: %s", ", ".join(canonical))
