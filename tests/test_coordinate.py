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

"""Tests for the build co-ordination, with the external tools faked."""

import pathlib
import subprocess
from typing import List

import pytest

from rpmpatch.builder import (
    _coordinate,
    _export,
    _rundnf,
    _runrpm,
    _specpatch,
    _srpm,
    _workarounds,
)
from rpmpatch.utils.config import BuildRequest

SPEC = """\
Name: expat
Version: 2.5.0
Release: 1%{?dist}
Source0: expat-2.5.0.tar.xz
BuildRequires: gcc, make

%prep
%autosetup -N

%build
make
"""


class FakeTools:
    """Record the tool calls a build makes."""

    def __init__(self, topdir: pathlib.Path) -> None:
        self.topdir = topdir
        self.calls: List[str] = []
        self.built_spec = ""
        self.build_opts: List[str] = []

    def setup_tree(self, topdir):
        self.calls.append("setup_tree")
        for subdir in ("BUILD", "RPMS", "SOURCES", "SPECS", "SRPMS"):
            (topdir / subdir).mkdir(parents=True, exist_ok=True)
        return topdir

    def acquire_srpm(self, request, work_dir):
        self.calls.append("acquire_srpm")
        return work_dir / "expat-2.5.0-1.el9.src.rpm"

    def install_srpm(self, srpm, topdir):
        self.calls.append("install_srpm")
        (topdir / "SPECS" / "expat.spec").write_text(SPEC)
        return ""

    def apply_xmlto_workaround(self, spec, topdir):
        self.calls.append("xmlto")
        return ["--without", "docs"]

    def builddep(self, spec):
        self.calls.append("builddep")

    def rpmbuild(self, spec, topdir, build_opts=()):
        self.calls.append("rpmbuild")
        self.built_spec = spec.read_text()
        self.build_opts = list(build_opts)
        (topdir / "RPMS" / "x86_64").mkdir(parents=True)
        (topdir / "RPMS" / "x86_64" / "expat-2.5.0-1.el9.x86_64.rpm").write_text("")
        (topdir / "SRPMS" / "expat-2.5.0-1.el9.src.rpm").write_text("")


@pytest.fixture
def tools(monkeypatch, tmp_path: pathlib.Path) -> FakeTools:
    fake = FakeTools(tmp_path / "rpmbuild")
    monkeypatch.setattr(_runrpm, "setup_tree", fake.setup_tree)
    monkeypatch.setattr(_runrpm, "install_srpm", fake.install_srpm)
    monkeypatch.setattr(_runrpm, "rpmbuild", fake.rpmbuild)
    monkeypatch.setattr(_srpm, "acquire_srpm", fake.acquire_srpm)
    monkeypatch.setattr(_rundnf, "builddep", fake.builddep)
    monkeypatch.setattr(
        _workarounds, "apply_xmlto_workaround", fake.apply_xmlto_workaround
    )
    return fake


@pytest.fixture
def request_(tmp_path: pathlib.Path) -> BuildRequest:
    patches = tmp_path / "patches" / "9" / "expat"
    patches.mkdir(parents=True)
    (patches / "0001-fix-overflow.patch").write_text("--- a\n+++ b\n")
    (patches / "0002-fix-leak.patch").write_text("--- a\n+++ b\n")
    return BuildRequest(
        package="expat",
        ubi_version="9",
        out_directory=str(tmp_path / "out" / "9"),
        patches_directory=str(patches),
        topdir=str(tmp_path / "rpmbuild"),
        local=True,
    )


def test_build(tools: FakeTools, request_: BuildRequest, tmp_path):
    assert _coordinate.run(request_) == 0

    assert tools.calls == [
        "setup_tree",
        "acquire_srpm",
        "install_srpm",
        "xmlto",
        "builddep",
        "rpmbuild",
    ]
    assert "Patch900: 0001-fix-overflow.patch" in tools.built_spec
    assert "Patch901: 0002-fix-leak.patch" in tools.built_spec
    assert "%autosetup -p1" in tools.built_spec
    # The release is left alone.
    assert "Release: 1%{?dist}\n" in tools.built_spec
    assert tools.build_opts == ["--without", "docs"]

    sources = tools.topdir / "SOURCES"
    assert (sources / "0001-fix-overflow.patch").exists()
    out = tmp_path / "out" / "9"
    assert (out / "RPMS" / "x86_64" / "expat-2.5.0-1.el9.x86_64.rpm").exists()
    assert (out / "SRPMS" / "expat-2.5.0-1.el9.src.rpm").exists()


def test_empty_patch_set_fails_before_fetching(
    tools: FakeTools, request_: BuildRequest
):
    for patch in pathlib.Path(request_.patches_directory).iterdir():
        patch.unlink()
    assert _coordinate.run(request_) == 2
    assert tools.calls == []


def test_builddep_fallback(
    monkeypatch, tools: FakeTools, request_: BuildRequest, caplog
):
    def builddep(spec):
        raise _rundnf.BuildDepError(
            spec, subprocess.CalledProcessError(1, ["dnf", "builddep"])
        )

    installed = []

    def install_package(pkg):
        if pkg == "make":
            raise _rundnf.InstallPackageError(
                pkg, subprocess.CalledProcessError(1, ["dnf", "install"])
            )
        installed.append(pkg)

    monkeypatch.setattr(_rundnf, "builddep", builddep)
    monkeypatch.setattr(_rundnf, "install_package", install_package)

    assert _coordinate.run(request_) == 0
    assert installed == ["gcc"]
    assert "Skipping unavailable: make" in caplog.text
    assert "rpmbuild" in tools.calls


def test_unsupported_spec_fails(
    monkeypatch, tools: FakeTools, request_: BuildRequest, caplog
):
    def install_srpm(srpm, topdir):
        (topdir / "SPECS" / "expat.spec").write_text(
            "Name: expat\n%prep\ntar xf foo.tar\n"
        )

    monkeypatch.setattr(_runrpm, "install_srpm", install_srpm)
    assert _coordinate.run(request_) == 1
    assert "Unsupported spec style" in caplog.text
    assert "rpmbuild" not in tools.calls


def test_tool_failure(monkeypatch, tools: FakeTools, request_: BuildRequest):
    def rpmbuild(spec, topdir, build_opts=()):
        raise _runrpm.BuildError(
            spec, subprocess.CalledProcessError(1, ["rpmbuild"])
        )

    monkeypatch.setattr(_runrpm, "rpmbuild", rpmbuild)
    assert _coordinate.run(request_) == 1


def test_srpm_failure(monkeypatch, tools: FakeTools, request_: BuildRequest):
    def acquire_srpm(request, work_dir):
        raise _srpm.SrpmNotAvailableError("expat-9-9", "expat")

    monkeypatch.setattr(_srpm, "acquire_srpm", acquire_srpm)
    assert _coordinate.run(request_) == 1
    assert "install_srpm" not in tools.calls


def test_missing_spec(monkeypatch, tools: FakeTools, request_: BuildRequest):
    monkeypatch.setattr(_runrpm, "install_srpm", lambda srpm, topdir: "")
    assert _coordinate.run(request_) == 1


def test_export(
    monkeypatch, tools: FakeTools, request_: BuildRequest, capsys, tmp_path
):
    exported = []

    def export_source(topdir, package, out_dir):
        exported.append((topdir, package, out_dir))
        return out_dir / "source"

    monkeypatch.setattr(_export, "export_source", export_source)
    request_.export_only = True
    request_.patches_directory = str(tmp_path / "no-patches-yet")

    assert _coordinate.run(request_) == 0
    assert exported == [(tools.topdir, "expat", tmp_path / "out" / "9")]
    assert tools.calls == ["setup_tree", "acquire_srpm", "install_srpm"]
    assert "git format-patch -1 HEAD" in capsys.readouterr().out


def test_file_error_is_reported(
    monkeypatch, tools: FakeTools, request_: BuildRequest, caplog
):
    def inject_file(spec, patches):
        raise PermissionError(13, "Permission denied", str(spec))

    monkeypatch.setattr(_specpatch, "inject_file", inject_file)
    assert _coordinate.run(request_) == 1
    assert "ERROR: [Errno 13] Permission denied" in caplog.text
    assert "rpmbuild" not in tools.calls
