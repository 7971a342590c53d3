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

"""Module for running various RPM commands as a subprocess."""

__all__ = (
    "BuildError",
    "InstallSrpmError",
    "SetupTreeError",
    "ToolError",
    "install_srpm",
    "rpmbuild",
    "setup_tree",
)


import functools
import logging
import os
import pathlib
import shutil
import subprocess
from typing import Callable, List, Sequence

from ..utils import rpmglobals, subprocs

_logger = logging.getLogger(__name__)


class ToolError(Exception):
    """
    Base error class for rpm and dnf subprocess errors.

    """

    def __init__(
        self, exc: subprocess.CalledProcessError, msg_prefix: str
    ) -> None:
        """
        Initialize the class.

        :param exc:
            The subprocess exception which caused this.

        :param msg_prefix:
            The prefix for the error message.

        """
        super().__init__(exc, msg_prefix)
        self.exc = exc
        self.msg_prefix = msg_prefix

    def __str__(self) -> str:
        return f"{self.msg_prefix}: {str(self.exc)}"


class SetupTreeError(ToolError):
    """
    Error class for failures creating the rpmbuild tree.

    """

    def __init__(self, exc: subprocess.CalledProcessError) -> None:
        super().__init__(exc, "Failed to set up the rpmbuild tree")


class InstallSrpmError(ToolError):
    """
    Error class for failures installing a source RPM into the tree.

    """

    def __init__(
        self,
        srpm: pathlib.Path,
        exc: subprocess.CalledProcessError,
    ) -> None:
        super().__init__(exc, f"Failed to install SRPM {srpm}")


class BuildError(ToolError):
    """
    Error class for rpmbuild failures.

    """

    def __init__(
        self,
        spec: pathlib.Path,
        exc: subprocess.CalledProcessError,
    ) -> None:
        super().__init__(exc, f"rpmbuild of {spec.name} failed")


def _topdir_args(topdir: pathlib.Path) -> List[str]:
    """Arguments pointing rpm tools at the given rpmbuild tree."""
    return ["--define", f"_topdir {topdir}"]


def _run_rpm(
    cmd: Sequence[str],
    exc_creator: Callable[[subprocess.CalledProcessError], ToolError],
) -> str:
    """
    Internal helper to run an rpm tool.

    :param cmd:
        The command to run.

    :param exc_creator:
        Function to create an exception from a subprocess error.

    :return:
        The output from the command if successful.

    """
    try:
        out = subprocs.execute_combined_stdout(cmd)
    except subprocess.CalledProcessError as e:
        raise exc_creator(e) from e
    return out


def setup_tree(topdir: pathlib.Path) -> pathlib.Path:
    """
    Create the rpmbuild tree.

    rpmdev-setuptree only knows about the default location, so it is used
    when the default tree is wanted and it is installed (UBI 9 and 10);
    otherwise the directories are created directly.

    :param topdir:
        Top directory of the tree.

    :raises SetupTreeError:
        If rpmdev-setuptree fails.

    :return:
        The top directory.

    """
    default = pathlib.Path(os.path.expanduser(rpmglobals.DEFAULT_TOPDIR))
    if topdir == default and shutil.which("rpmdev-setuptree") is not None:
        _run_rpm(["rpmdev-setuptree"], SetupTreeError)
    else:
        _logger.info("Creating rpmbuild tree in %s", topdir)
        for subdir in rpmglobals.RPMBUILD_SUBDIRS:
            (topdir / subdir).mkdir(parents=True, exist_ok=True)
    return topdir


def install_srpm(srpm: pathlib.Path, topdir: pathlib.Path) -> str:
    """
    Install a source RPM into the rpmbuild tree.

    :param srpm:
        The source RPM.

    :param topdir:
        Top directory of the rpmbuild tree.

    :raises InstallSrpmError:
        If the rpm command failed.

    :return:
        The output from the rpm command.

    """
    _logger.debug("Installing %s into %s", srpm, topdir)
    return _run_rpm(
        ["rpm", *_topdir_args(topdir), "-ivh", str(srpm)],
        functools.partial(InstallSrpmError, srpm),
    )


def rpmbuild(
    spec: pathlib.Path, topdir: pathlib.Path, build_opts: Sequence[str] = ()
) -> None:
    """
    Build binary and source RPMs from a spec file.

    The output is streamed to the console, as builds take a long time.

    :param spec:
        The spec file.

    :param topdir:
        Top directory of the rpmbuild tree.

    :param build_opts:
        Extra options for rpmbuild, e.g. '--without doc'.

    :raises BuildError:
        If rpmbuild failed.

    """
    cmd = ["rpmbuild", *_topdir_args(topdir), "-ba", *build_opts, str(spec)]
    try:
        subprocs.execute_streamed(cmd)
    except subprocess.CalledProcessError as e:
        raise BuildError(spec, e) from e
