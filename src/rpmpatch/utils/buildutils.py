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

"""rpmpatch utilities."""

import hashlib
import logging
import os
import pathlib
import shutil
import sys
import tarfile
from logging import handlers
from typing import Any, Dict, Iterable, List, Tuple, Union

logger = logging.getLogger(__name__)


def initialize_console_logging() -> None:
    """Initialize logging INFO messages to console."""
    root_logger = logging.getLogger()
    # Console message
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(logging.INFO)
    root_logger.addHandler(ch)


def init_logging(
    log_dir: str,
    log_file: str,
    *,
    debug: bool = False,
) -> logging.Logger:
    """
    Initialize stderr and debug file logging.

    Adds two handlers to the root logger:
      - Handler to output errors to stderr
      - Handler to output debug to the given (rotating) file.

    If used, should be called before any loggers are written to.

    :param log_dir:
        The directory to create the log_file in to.

    :param log_file:
        Logfile to write to

    :param debug:
        Also write debug messages to stderr.

    :returns root_logger:
        Logger that will be used for this file

    """
    log_file = os.path.join(log_dir, log_file)
    pathlib.Path(log_dir).mkdir(parents=True, exist_ok=True)

    # Define a handler which writes ERROR messages or higher to stderr.
    stderr_formatter = logging.Formatter("%(message)s")
    stderr_handler = logging.StreamHandler()
    stderr_handler.setFormatter(stderr_formatter)
    stderr_handler.setLevel(logging.DEBUG if debug else logging.ERROR)

    # Define a handler which writes DEBUG messages or higher to a
    # rotating log file.
    debug_formatter = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(name)-28s %(levelname)-6s %(message)s",
        datefmt="%m-%d %H:%M:%S",
    )
    debug_handler = handlers.RotatingFileHandler(
        log_file, maxBytes=50000000, backupCount=10
    )
    debug_handler.setFormatter(debug_formatter)
    debug_handler.setLevel(logging.DEBUG)

    # If the log file already exists, roll over so a new log file is
    # created for each run.
    if os.path.isfile(log_file) and os.path.getsize(log_file) > 0:
        debug_handler.doRollover()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(stderr_handler)
    root_logger.addHandler(debug_handler)

    return root_logger


def load_yaml_arguments(yaml_f: str) -> Union[Dict[str, Any], Any]:
    """Load build arguments from YAML."""
    try:
        import yaml
    except Exception as exc:
        raise AssertionError("Unable to import Yaml module.") from exc
    with open(yaml_f, "r", encoding="utf-8") as fd:
        data = yaml.safe_load(fd)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise AssertionError(
            "YAML file {} does not contain a mapping of options".format(yaml_f)
        )
    return data


def dump_yaml_arguments(yaml_f: str, data: Dict[str, Any]) -> None:
    """Dump build arguments to YAML."""
    try:
        import yaml
    except Exception as exc:
        raise AssertionError("Unable to import Yaml module.") from exc
    with open(yaml_f, "w", encoding="utf-8") as fd:
        fd.write(yaml.safe_dump(data, default_flow_style=False))


def get_file_hash_length(filename: str) -> Tuple[str, int]:
    """Return the SHA256 hash and length of the file with the given name"""
    with open(filename, "rb") as f:
        checksum = hashlib.sha256()
        length = 0
        keep_going = True
        while keep_going:
            data = f.read(4096)
            checksum.update(data)
            length += len(data)
            if len(data) == 0:
                keep_going = False
    return checksum.hexdigest(), length


def log_files(files: Iterable[pathlib.Path], description: str) -> None:
    """
    Log the full path and SHA256 hash of a list of files.

    :param files:
        Files to be logged.
    :param description:
        Description that precedes the file information in the log.

    """
    files_info: List[str] = []
    for file in files:
        sha256_hash, length = get_file_hash_length(str(file))
        files_info.append(f"  {file.resolve()}:")
        files_info.append(f"    sha256: {sha256_hash} ({length} bytes)")
    if files_info:
        logger.debug("%s:\n%s", description, "\n".join(files_info))


def copy_tree_contents(src_dir: pathlib.Path, dest_dir: pathlib.Path) -> None:
    """
    Copy everything under src_dir into dest_dir, merging into what is there.

    :param src_dir:
        Directory whose contents are copied.
    :param dest_dir:
        Destination directory, created if missing.

    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    for item in sorted(src_dir.iterdir()):
        target = dest_dir / item.name
        if item.is_dir() and not item.is_symlink():
            shutil.copytree(
                item, target, symlinks=True, dirs_exist_ok=True
            )
        else:
            shutil.copy2(item, target, follow_symlinks=False)
        logger.debug("Copied %s to %s", item, target)


def _escapes(member_path: str) -> bool:
    """Return whether an archive-relative path points outside the archive."""
    normalized = os.path.normpath(member_path)
    return (
        member_path.startswith("/")
        or normalized == ".."
        or normalized.startswith("../")
    )


def tar_extract_all(tar: tarfile.TarFile, path: pathlib.Path) -> None:
    """
    Safely extract tarfile contents avoiding the risk of a malicious tarfile
    containing elements with absolute paths, or relative paths writing outside
    the intended extract location.

    Source tarballs routinely contain symlinks, so these are allowed as long
    as their target stays inside the archive; a link pointing outside could
    otherwise be used in combination with the extract path of another member
    to cause that member to be written outside the intended extract location.
    """
    for elt in tar.getmembers():
        if _escapes(elt.name):
            bad_kind, bad_name = "filename", elt.name
        elif elt.issym() and _escapes(
            os.path.join(os.path.dirname(elt.name), elt.linkname)
        ):
            bad_kind, bad_name = "symlink", elt.name
        elif elt.islnk() and _escapes(elt.linkname):
            bad_kind, bad_name = "hardlink", elt.name
        else:
            continue
        raise AssertionError(
            "Attempted path traversal with {} {} in {!s}".format(
                bad_kind, bad_name, tar.name
            )
        )

    if hasattr(tarfile, "data_filter"):
        # Also drops setuid bits and archive ownership.
        tar.extractall(path, filter="data")
    else:
        tar.extractall(path)
