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

"""Module for running dnf commands as a subprocess."""

__all__ = (
    "BuildDepError",
    "DownloadSourceError",
    "InstallPackageError",
    "builddep",
    "download_source",
    "install_package",
    "is_available",
    "parse_build_requires",
)


import logging
import pathlib
import re
import subprocess
from typing import List

from ..utils import subprocs
from ._runrpm import ToolError

_logger = logging.getLogger(__name__)

# Version comparison operators in a BuildRequires line.
_OPERATORS = {"<", ">", "=", "<=", ">=", "=="}


class DownloadSourceError(ToolError):
    """
    Error class for failures downloading a source RPM.

    """

    def __init__(
        self, pkg_spec: str, exc: subprocess.CalledProcessError
    ) -> None:
        super().__init__(exc, f"Could not download SRPM for '{pkg_spec}'")
        self.pkg_spec = pkg_spec


class BuildDepError(ToolError):
    """
    Error class for failures installing build dependencies from a spec.

    """

    def __init__(
        self, spec: pathlib.Path, exc: subprocess.CalledProcessError
    ) -> None:
        super().__init__(
            exc, f"Failed to install build dependencies of {spec.name}"
        )


class InstallPackageError(ToolError):
    """
    Error class for failures installing a single package.

    """

    def __init__(self, pkg: str, exc: subprocess.CalledProcessError) -> None:
        super().__init__(exc, f"Failed to install {pkg}")


def download_source(pkg_spec: str, dest_dir: pathlib.Path) -> str:
    """
    Download the source RPM for a package from the enabled repos.

    :param pkg_spec:
        Package name, optionally followed by -<version>-<release>.

    :param dest_dir:
        Directory to download into.

    :raises DownloadSourceError:
        If dnf couldn't find or download the SRPM.

    :return:
        The output from dnf.

    """
    _logger.debug("Downloading source of %s into %s", pkg_spec, dest_dir)
    try:
        return subprocs.execute_combined_stdout(
            [
                "dnf",
                "-y",
                "download",
                "--source",
                "--destdir",
                str(dest_dir),
                pkg_spec,
            ]
        )
    except subprocess.CalledProcessError as e:
        raise DownloadSourceError(pkg_spec, e) from e


def builddep(spec: pathlib.Path) -> None:
    """
    Install the build dependencies declared by a spec file.

    :raises BuildDepError:
        If dnf failed.

    """
    try:
        subprocs.execute_streamed(["dnf", "-y", "builddep", str(spec)])
    except subprocess.CalledProcessError as e:
        raise BuildDepError(spec, e) from e


def install_package(pkg: str) -> None:
    """
    Install a single package.

    :raises InstallPackageError:
        If dnf failed.

    """
    try:
        subprocs.execute_combined_stdout(["dnf", "-y", "install", pkg])
    except subprocess.CalledProcessError as e:
        raise InstallPackageError(pkg, e) from e


def is_available(pkg: str) -> bool:
    """Return whether the enabled repos (or the system) provide a package."""
    try:
        subprocs.execute_combined_stdout(
            ["dnf", "list", pkg], verbose_logging=False
        )
    except subprocess.CalledProcessError:
        return False
    return True


def parse_build_requires(spec_text: str) -> List[str]:
    """
    Get the names of the build dependencies declared in spec text.

    Version constraints are dropped: 'BuildRequires: foo >= 1.2, bar' gives
    ['foo', 'bar']. Macros are not expanded.

    """
    names: List[str] = []
    for line in spec_text.splitlines():
        match = re.match(r"^BuildRequires\s*:\s*(.*)$", line, re.I)
        if match is None:
            continue
        tokens = [t for t in re.split(r"[,\s]+", match.group(1)) if t]
        skip_next = False
        for token in tokens:
            if skip_next:
                skip_next = False
            elif token in _OPERATORS:
                skip_next = True
            else:
                # Constraints written without spaces, e.g. 'foo>=1.2'.
                name = re.sub(r"[<>=].*", "", token)
                if name and name not in names:
                    names.append(name)
                skip_next = token[-1] in "<>="
    return names
