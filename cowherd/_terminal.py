# SPDX-FileCopyrightText: Copyright (c) 2026, Cowherd Developers (See LICENSE for list)
# SPDX-License-Identifier: BSD 3-Clause License
"""Local terminal handling."""
from __future__ import annotations

import os
import shutil
import sys
import termios
import tty

from ._constants import REMOTE_TERM
from ._exceptions import TerminalModeError


class RawTerminal:
    """Put a terminal into raw mode for the duration of a ``with`` block.

    The previous mode is saved on entry and put back on exit, including when the
    block raises. :meth:`restore` may be called any number of times.

    Example:
        >>> with RawTerminal(sys.stdin.fileno()):
        ...     data = os.read(sys.stdin.fileno(), 1)
    """

    def __init__(self, fd: int | None = None) -> None:
        self.fd = sys.stdin.fileno() if fd is None else fd
        self._saved: list | None = None

    @property
    def is_raw(self) -> bool:
        return self._saved is not None

    def make_raw(self) -> None:
        if self._saved is not None:
            return
        try:
            saved = termios.tcgetattr(self.fd)
            tty.setraw(self.fd)
        except termios.error as e:
            raise TerminalModeError(f"Unable to put terminal into raw mode: {e}") from e
        self._saved = saved

    def restore(self) -> None:
        if self._saved is None:
            return
        saved, self._saved = self._saved, None
        termios.tcsetattr(self.fd, termios.TCSADRAIN, saved)

    def __enter__(self) -> RawTerminal:
        self.make_raw()
        return self

    def __exit__(self, *args) -> None:
        self.restore()


def terminal_size(fd: int | None = None) -> tuple[int, int]:
    """Return the ``(columns, rows)`` of the terminal on ``fd``.

    Falls back to :func:`shutil.get_terminal_size` when ``fd`` is not a terminal.
    """
    try:
        size = os.get_terminal_size(sys.stdin.fileno() if fd is None else fd)
    except OSError:
        size = shutil.get_terminal_size()
    return size.columns, size.lines


def shell_command(columns: int, rows: int) -> list[str]:
    """Build the remote command that starts an interactive shell.

    The remote pty is sized once, here. Later local resizes are not forwarded.
    """
    script = (
        f"TERM={REMOTE_TERM}; export TERM; "
        f"stty cols {columns} rows {rows}; "
        '[ -x /bin/bash ] && ([ -x /usr/bin/script ] && /usr/bin/script -q -c "/bin/bash" /dev/null '
        "|| exec /bin/bash) || exec /bin/sh"
    )
    return ["/bin/sh", "-c", script]
