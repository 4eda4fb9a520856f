"""Colored status lines for the terminal."""

from __future__ import annotations

import sys

from colorama import Fore, Style

PREFIX = "[artifact]"


def info(msg: str) -> None:
    print(Fore.GREEN + msg + Style.RESET_ALL)


def warning(msg: str) -> None:
    print(Fore.YELLOW + msg + Style.RESET_ALL)


def error(msg: str) -> None:
    print(Fore.RED + msg + Style.RESET_ALL, file=sys.stderr)


def detail(msg: str) -> None:
    print(Style.DIM + f"{PREFIX} {msg}" + Style.RESET_ALL)
