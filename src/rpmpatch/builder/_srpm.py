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

"""Obtain the source RPM to rebuild."""

__all__ = (
    "SrpmDownloadError",
    "SrpmError",
    "SrpmNotAvailableError",
    "SrpmNotFoundError",
    "acquire_srpm",
    "download_url",
)


import logging
import os
import pathlib
import textwrap
import urllib.parse
from typing import Optional

import requests

from ..utils.config import BuildRequest
from . import _rundnf

_log = logging.getLogger(__name__)

# Seconds to wait for the server to respond; downloads themselves may take
# much longer.
_HTTP_TIMEOUT = 60
_CHUNK_SIZE = 1024 * 1024


class SrpmError(Exception):
    """Base class for failures obtaining a source RPM."""


class SrpmNotFoundError(SrpmError):
    """The given local SRPM file doesn't exist"""

    def __init__(self, srpm: str) -> None:
        """Initialise a SrpmNotFoundError"""
        super().__init__(
            "SRPM file not found: {}\n"
            "Make sure the file is mounted correctly.".format(srpm)
        )


class SrpmDownloadError(SrpmError):
    """The SRPM couldn't be downloaded from a URL"""

    def __init__(self, url: str, error: str) -> None:
        """Initialise a SrpmDownloadError"""
        super().__init__(
            "Failed to download SRPM from URL\nURL: {}\n{}".format(url, error)
        )


class SrpmNotAvailableError(SrpmError):
    """The SRPM isn't in the enabled repos"""

    def __init__(self, pkg_spec: str, package: str) -> None:
        """Initialise a SrpmNotAvailableError"""
        super().__init__(
            textwrap.dedent(
                f"""\
                Could not find '{pkg_spec}' in current repos.

                Possible reasons:
                  1. The version is not available in the enabled repositories
                  2. The version string format is incorrect
                  3. The package may be in a vault/archive repository

                Tips:
                  - Check available versions: dnf list --showduplicates {package}
                  - Use --srpm to provide a local SRPM file
                  - Use --url to download from external sources (Koji, CentOS Vault)
                  - Format should be: <name>-<version>-<release> (e.g., expat-2.5.0-1.el8_10)"""
            )
        )


def _url_filename(url: str) -> str:
    """File name to save a downloaded SRPM as."""
    name = os.path.basename(urllib.parse.urlparse(url).path)
    if not name:
        raise SrpmDownloadError(url, "URL does not name a file")
    return name


def download_url(url: str, dest_dir: pathlib.Path) -> pathlib.Path:
    """
    Download an SRPM from a URL.

    :param url:
        The URL to fetch.
    :param dest_dir:
        Directory to save the file in.

    :raises SrpmDownloadError:
        If the download fails for any reason.

    :returns:
        Path to the downloaded file.

    """
    dest = dest_dir / _url_filename(url)
    _log.info("==> Downloading SRPM from URL: %s", url)
    try:
        with requests.get(url, stream=True, timeout=_HTTP_TIMEOUT) as r:
            r.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                    f.write(chunk)
    except requests.RequestException as error:
        raise SrpmDownloadError(url, str(error)) from error
    _log.debug("Downloaded %s to %s", url, dest)
    return dest


def _download_from_repos(
    package: str, version: Optional[str], dest_dir: pathlib.Path
) -> pathlib.Path:
    """Download the SRPM with dnf and return its path."""
    if version:
        # Full NVR format: package-version-release (e.g. expat-2.2.5-17.el8_10)
        pkg_spec = f"{package}-{version}"
        _log.info("==> Downloading specific version: %s SRPM...", pkg_spec)
    else:
        pkg_spec = package
        _log.info(
            "==> Downloading latest %s SRPM from enabled repos...", package
        )

    try:
        _rundnf.download_source(pkg_spec, dest_dir)
    except _rundnf.DownloadSourceError as error:
        raise SrpmNotAvailableError(pkg_spec, package) from error

    found = sorted(dest_dir.glob(f"{package}-*.src.rpm"))
    if not found:
        raise SrpmNotAvailableError(pkg_spec, package)
    return found[0]


def acquire_srpm(request: BuildRequest, work_dir: pathlib.Path) -> pathlib.Path:
    """
    Obtain the SRPM for a request: a local file, a URL, or the repos.

    :param request:
        The build request.
    :param work_dir:
        Directory downloads are saved in.

    :raises SrpmError:
        If the SRPM can't be obtained.

    :returns:
        Path to the SRPM.

    """
    if request.srpm:
        _log.info("==> Using local SRPM file: %s", request.srpm)
        srpm = pathlib.Path(request.srpm)
        if not srpm.is_file():
            raise SrpmNotFoundError(request.srpm)
        return srpm
    elif request.url:
        return download_url(request.url, work_dir)
    else:
        return _download_from_repos(request.package, request.version, work_dir)
