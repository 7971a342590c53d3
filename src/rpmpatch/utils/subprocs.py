# -----------------------------------------------------------------------------
# BSD 3-Clause License
#
# Copyright (c) 2024-2025, Cisco Systems, Inc. and its affiliates
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# 3. Neither the name of the [organization] nor the names of its contributors
#    may be used to endorse or promote products derived from this software
#    without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# -----------------------------------------------------------------------------
"""Run the rpm, dnf and container commands rpmpatch drives."""

__all__ = (
    "CalledProcessError",
    "execute",
    "execute_combined_stdout",
    "execute_streamed",
)


import logging
import shlex
import subprocess

# Callers catch this without importing subprocess themselves.
from subprocess import CalledProcessError
from typing import Optional, Sequence, Tuple

_log = logging.getLogger(__name__)

# Lines of a failed command's output kept in the debug log.
_FAILURE_OUTPUT_LINES = 50


def _cmd_str(cmd: Sequence[str]) -> str:
    return shlex.join(cmd)


def _log_failure(cmd: Sequence[str], error: CalledProcessError) -> None:
    """Log a failed command and the tail of whatever it printed."""
    _log.debug(
        "Command %s failed with exit code %d", _cmd_str(cmd), error.returncode
    )
    for name in ("stdout", "stderr"):
        output = getattr(error, name)
        if not output:
            continue
        for line in output.splitlines()[-_FAILURE_OUTPUT_LINES:]:
            _log.debug("%s: %s", name, line)


def _run_captured(
    cmd: Sequence[str], *, merge_stderr: bool, verbose_logging: bool
) -> Tuple[str, Optional[str]]:
    """
    Run a command to completion with its output captured as text.

    :param cmd:
        The command and its arguments.
    :param merge_stderr:
        Send stderr into the stdout pipe, so that e.g. rpm's warnings stay
        interleaved with its progress lines.
    :param verbose_logging:
        Log the command line and its output when it succeeds. Failures are
        always logged.

    :return:
        The stdout and stderr text; stderr is None when merged.

    """
    if verbose_logging:
        _log.debug("Running command: %s", _cmd_str(cmd))
    try:
        proc = subprocess.run(
            cmd,
            check=True,
            encoding="utf-8",
            errors="replace",
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
        )
    except CalledProcessError as error:
        _log_failure(cmd, error)
        raise

    if verbose_logging:
        for line in proc.stdout.splitlines():
            _log.debug("stdout: %s", line)
    return proc.stdout, proc.stderr


def execute(
    cmd: Sequence[str], verbose_logging: bool = True
) -> Tuple[str, str]:
    """
    Run a command, returning its stdout and stderr separately.

    :raises CalledProcessError:
        If the command exits non-zero; its output is on the exception.

    """
    out, err = _run_captured(
        cmd, merge_stderr=False, verbose_logging=verbose_logging
    )
    return out, err or ""


def execute_combined_stdout(
    cmd: Sequence[str], verbose_logging: bool = True
) -> str:
    """Run a command, returning stdout and stderr as one string."""
    return _run_captured(
        cmd, merge_stderr=True, verbose_logging=verbose_logging
    )[0]


def execute_streamed(cmd: Sequence[str]) -> None:
    """
    Run a command with its output going straight to the console.

    Container runs and rpmbuild print progress for minutes at a time, so
    their output is not captured; a failure carries no output.

    """
    _log.debug("Running command (streamed): %s", _cmd_str(cmd))
    try:
        subprocess.run(cmd, check=True)
    except CalledProcessError as error:
        _log_failure(cmd, error)
        raise
    _log.debug("Streamed command finished: %s", _cmd_str(cmd))
