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

"""Tests for the rpmpatch utilities."""

import io
import logging
import pathlib
import tarfile

import pytest

from rpmpatch.utils import buildutils


def _make_tar(path: pathlib.Path, members) -> pathlib.Path:
    """Write a tarball of (name, kind, data-or-target) members."""
    with tarfile.open(path, "w:gz") as tar:
        for name, kind, value in members:
            info = tarfile.TarInfo(name)
            if kind == "file":
                data = value.encode()
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
            elif kind == "dir":
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            elif kind == "sym":
                info.type = tarfile.SYMTYPE
                info.linkname = value
                tar.addfile(info)
            else:
                info.type = tarfile.LNKTYPE
                info.linkname = value
                tar.addfile(info)
    return path


def test_yaml_arguments_round_trip(tmp_path: pathlib.Path):
    yaml_f = str(tmp_path / "args.yaml")
    data = {"package": "expat", "export_only": True, "srpm": None}
    buildutils.dump_yaml_arguments(yaml_f, data)
    assert buildutils.load_yaml_arguments(yaml_f) == data


def test_load_yaml_arguments_empty_file(tmp_path: pathlib.Path):
    yaml_f = tmp_path / "empty.yaml"
    yaml_f.write_text("")
    assert buildutils.load_yaml_arguments(str(yaml_f)) == {}


def test_load_yaml_arguments_needs_mapping(tmp_path: pathlib.Path):
    yaml_f = tmp_path / "list.yaml"
    yaml_f.write_text("- expat\n- zlib\n")
    with pytest.raises(AssertionError, match="mapping"):
        buildutils.load_yaml_arguments(str(yaml_f))


def test_get_file_hash_length(tmp_path: pathlib.Path):
    f = tmp_path / "f"
    f.write_bytes(b"abc")
    assert buildutils.get_file_hash_length(str(f)) == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad",
        3,
    )


def test_log_files(tmp_path: pathlib.Path, caplog):
    f = tmp_path / "0001-fix.patch"
    f.write_bytes(b"abc")
    with caplog.at_level(logging.DEBUG):
        buildutils.log_files([f], "patch set")
    assert "patch set:" in caplog.text
    assert "(3 bytes)" in caplog.text


def test_init_logging_rolls_over(tmp_path: pathlib.Path):
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    (log_dir / "run.log").write_text("previous run\n")
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        buildutils.init_logging(str(log_dir), "run.log")
        logging.getLogger("rpmpatch.test").debug("new run")
    finally:
        for handler in root.handlers[len(before) :]:
            handler.close()
        root.handlers = before
        root.setLevel(level)
    assert (log_dir / "run.log.1").read_text() == "previous run\n"
    assert "new run" in (log_dir / "run.log").read_text()


def test_copy_tree_contents_merges(tmp_path: pathlib.Path):
    src = tmp_path / "src"
    (src / "pkg-1.0").mkdir(parents=True)
    (src / "pkg-1.0" / "main.c").write_text("int main;")
    (src / "top.txt").write_text("top")
    dest = tmp_path / "dest"
    (dest / "pkg-1.0").mkdir(parents=True)
    (dest / "pkg-1.0" / "old.c").write_text("old")

    buildutils.copy_tree_contents(src, dest)

    assert (dest / "pkg-1.0" / "main.c").read_text() == "int main;"
    assert (dest / "pkg-1.0" / "old.c").exists()
    assert (dest / "top.txt").read_text() == "top"


def test_tar_extract_all_allows_internal_links(tmp_path: pathlib.Path):
    tarball = _make_tar(
        tmp_path / "ok.tar.gz",
        [
            ("pkg-1.0", "dir", None),
            ("pkg-1.0/README", "file", "hello"),
            ("pkg-1.0/README.md", "sym", "README"),
            ("pkg-1.0/COPY", "hard", "pkg-1.0/README"),
        ],
    )
    dest = tmp_path / "out"
    dest.mkdir()
    with tarfile.open(tarball) as tar:
        buildutils.tar_extract_all(tar, dest)
    assert (dest / "pkg-1.0" / "README.md").read_text() == "hello"


@pytest.mark.parametrize(
    "member, kind",
    [
        (("../evil", "file", "x"), "filename"),
        (("/etc/evil", "file", "x"), "filename"),
        (("pkg/link", "sym", "../../etc/passwd"), "symlink"),
        (("pkg/link", "sym", "/etc/passwd"), "symlink"),
        (("pkg/hard", "hard", "../outside"), "hardlink"),
    ],
)
def test_tar_extract_all_rejects_traversal(tmp_path: pathlib.Path, member, kind):
    tarball = _make_tar(tmp_path / "bad.tar.gz", [member])
    dest = tmp_path / "out"
    dest.mkdir()
    with tarfile.open(tarball) as tar:
        with pytest.raises(AssertionError, match=f"path traversal with {kind}"):
            buildutils.tar_extract_all(tar, dest)
    assert list(dest.iterdir()) == []


def test_tar_extract_all_uses_data_filter(monkeypatch, tmp_path: pathlib.Path):
    tarball = _make_tar(tmp_path / "ok.tar.gz", [("README", "file", "hi")])
    calls = []
    with tarfile.open(tarball) as tar:
        monkeypatch.setattr(
            tar, "extractall", lambda path, **kwargs: calls.append(kwargs)
        )
        buildutils.tar_extract_all(tar, tmp_path / "out")
    expected = {"filter": "data"} if hasattr(tarfile, "data_filter") else {}
    assert calls == [expected]
