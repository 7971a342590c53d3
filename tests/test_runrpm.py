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

"""Tests for the rpm tool wrappers."""

import pathlib
import subprocess

import pytest

from rpmpatch.builder import _runrpm
from rpmpatch.utils import subprocs


def test_setup_tree_creates_directories(monkeypatch, tmp_path: pathlib.Path):
    monkeypatch.setattr(_runrpm.shutil, "which", lambda name: None)
    topdir = tmp_path / "rpmbuild"
    assert _runrpm.setup_tree(topdir) == topdir
    assert sorted(p.name for p in topdir.iterdir()) == [
        "BUILD",
        "RPMS",
        "SOURCES",
        "SPECS",
        "SRPMS",
    ]


def test_setup_tree_uses_rpmdev_for_default_tree(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setattr(
        _runrpm.shutil, "which", lambda name: "/usr/bin/rpmdev-setuptree"
    )
    calls = []
    monkeypatch.setattr(
        subprocs,
        "execute_combined_stdout",
        lambda cmd, **kwargs: calls.append(cmd) or "",
    )
    _runrpm.setup_tree(tmp_path / "rpmbuild")
    assert calls == [["rpmdev-setuptree"]]


def test_install_srpm(monkeypatch, tmp_path: pathlib.Path):
    calls = []
    monkeypatch.setattr(
        subprocs,
        "execute_combined_stdout",
        lambda cmd, **kwargs: calls.append(cmd) or "ok",
    )
    srpm = tmp_path / "expat-2.5.0-1.el9.src.rpm"
    assert _runrpm.install_srpm(srpm, tmp_path) == "ok"
    assert calls == [
        ["rpm", "--define", f"_topdir {tmp_path}", "-ivh", str(srpm)]
    ]


def test_install_srpm_failure(monkeypatch, tmp_path: pathlib.Path):
    def fail(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, "error: bad header")

    monkeypatch.setattr(subprocs, "execute_combined_stdout", fail)
    srpm = tmp_path / "broken.src.rpm"
    with pytest.raises(_runrpm.InstallSrpmError) as exc_info:
        _runrpm.install_srpm(srpm, tmp_path)
    assert str(exc_info.value).startswith(f"Failed to install SRPM {srpm}: ")
    assert isinstance(exc_info.value, _runrpm.ToolError)


def test_rpmbuild_command(monkeypatch, tmp_path: pathlib.Path):
    calls = []
    monkeypatch.setattr(subprocs, "execute_streamed", calls.append)
    spec = tmp_path / "SPECS" / "expat.spec"
    _runrpm.rpmbuild(spec, tmp_path, ["--without", "docs"])
    assert calls == [
        [
            "rpmbuild",
            "--define",
            f"_topdir {tmp_path}",
            "-ba",
            "--without",
            "docs",
            str(spec),
        ]
    ]


def test_rpmbuild_failure(monkeypatch, tmp_path: pathlib.Path):
    def fail(cmd):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(subprocs, "execute_streamed", fail)
    with pytest.raises(_runrpm.BuildError, match="rpmbuild of expat.spec failed"):
        _runrpm.rpmbuild(tmp_path / "expat.spec", tmp_path)
