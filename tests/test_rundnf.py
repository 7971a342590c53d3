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

"""Tests for the dnf wrappers."""

import pathlib
import subprocess

import pytest

from rpmpatch.builder import _rundnf
from rpmpatch.utils import subprocs


def _fail(cmd, *args, **kwargs):
    raise subprocess.CalledProcessError(1, cmd, "No match for argument")


def test_parse_build_requires_drops_constraints():
    spec = "\n".join(
        [
            "Name: x",
            "BuildRequires: gcc, make",
            "BuildRequires:  expat-devel >= 2.2  zlib-devel",
            "buildrequires: openssl-devel>=1.1",
            "BuildRequires: libxml2-devel>= 2.9 xz",
            "BuildRequires: pkgconfig(libffi) gcc",
            "Requires: not-a-build-dep",
        ]
    )
    assert _rundnf.parse_build_requires(spec) == [
        "gcc",
        "make",
        "expat-devel",
        "zlib-devel",
        "openssl-devel",
        "libxml2-devel",
        "xz",
        "pkgconfig(libffi)",
    ]


def test_parse_build_requires_none():
    assert _rundnf.parse_build_requires("Name: x\nRequires: y\n") == []


def test_download_source_command(monkeypatch, tmp_path: pathlib.Path):
    calls = []
    monkeypatch.setattr(
        subprocs,
        "execute_combined_stdout",
        lambda cmd, **kwargs: calls.append(cmd) or "",
    )
    _rundnf.download_source("expat-2.5.0-1.el9", tmp_path)
    assert calls == [
        [
            "dnf",
            "-y",
            "download",
            "--source",
            "--destdir",
            str(tmp_path),
            "expat-2.5.0-1.el9",
        ]
    ]


def test_download_source_failure(monkeypatch, tmp_path: pathlib.Path):
    monkeypatch.setattr(subprocs, "execute_combined_stdout", _fail)
    with pytest.raises(_rundnf.DownloadSourceError) as exc_info:
        _rundnf.download_source("nosuchpkg", tmp_path)
    assert exc_info.value.pkg_spec == "nosuchpkg"
    assert "Could not download SRPM for 'nosuchpkg'" in str(exc_info.value)


def test_builddep_failure(monkeypatch):
    monkeypatch.setattr(subprocs, "execute_streamed", _fail)
    with pytest.raises(_rundnf.BuildDepError, match="expat.spec"):
        _rundnf.builddep(pathlib.Path("/r/SPECS/expat.spec"))


def test_install_package_failure(monkeypatch):
    monkeypatch.setattr(subprocs, "execute_combined_stdout", _fail)
    with pytest.raises(_rundnf.InstallPackageError, match="Failed to install x"):
        _rundnf.install_package("x")


def test_is_available(monkeypatch):
    monkeypatch.setattr(
        subprocs, "execute_combined_stdout", lambda cmd, **kwargs: ""
    )
    assert _rundnf.is_available("xmlto")
    monkeypatch.setattr(subprocs, "execute_combined_stdout", _fail)
    assert not _rundnf.is_available("xmlto")
