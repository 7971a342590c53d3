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

"""Export the unpacked source of a package for patch development."""

__all__ = ("ExportError", "export_source", "find_source_tarballs")


import logging
import pathlib
import shutil
import tarfile
from typing import List

from ..utils import buildutils, rpmglobals

_log = logging.getLogger(__name__)


class ExportError(Exception):
    """The source couldn't be copied to the output directory"""

    def __init__(self, dest: pathlib.Path, error: str) -> None:
        """Initialise an ExportError"""
        super().__init__(
            "Could not export source to {}: {}".format(dest, error)
        )


def find_source_tarballs(
    sources_dir: pathlib.Path, package: str
) -> List[pathlib.Path]:
    """Return the package's source tarballs in the SOURCES directory."""
    tarballs = set(sources_dir.glob(f"{package}-*.tar.*"))
    tarballs.update(sources_dir.glob(f"{package}_*.tar.*"))
    return sorted(t for t in tarballs if t.is_file())


def _extract(tarball: pathlib.Path, build_dir: pathlib.Path) -> None:
    """Extract a tarball, logging rather than failing on bad archives."""
    _log.info("    Extracting %s...", tarball.name)
    try:
        with tarfile.open(tarball, "r:*") as tar:
            buildutils.tar_extract_all(tar, build_dir)
    except (tarfile.TarError, AssertionError, OSError) as error:
        _log.warning("    Could not extract %s: %s", tarball.name, error)


def export_source(
    topdir: pathlib.Path, package: str, out_dir: pathlib.Path
) -> pathlib.Path:
    """
    Unpack the package source and copy it, with the spec and original
    sources, to the output directory.

    :param topdir:
        Top directory of the rpmbuild tree the SRPM was installed into.
    :param package:
        Name of the package.
    :param out_dir:
        Output directory; the source is exported under its 'source'
        subdirectory.

    :raises ExportError:
        If copying to the output directory fails.

    :returns:
        The directory the source was exported to.

    """
    _log.info("==> Export-only mode: Extracting source without building...")
    sources_dir = topdir / "SOURCES"
    build_dir = topdir / "BUILD"
    build_dir.mkdir(parents=True, exist_ok=True)
    for tarball in find_source_tarballs(sources_dir, package):
        _extract(tarball, build_dir)

    dest = out_dir / rpmglobals.SOURCE_EXPORT_DIR
    metadata = dest / rpmglobals.RPM_METADATA_DIR
    _log.info("==> Copying source to %s/...", dest)
    try:
        buildutils.copy_tree_contents(build_dir, dest)
        metadata.mkdir(parents=True, exist_ok=True)
        for subdir in ("SPECS", "SOURCES"):
            shutil.copytree(
                topdir / subdir, metadata / subdir, dirs_exist_ok=True
            )
    except OSError as error:
        raise ExportError(dest, str(error)) from error

    return dest
