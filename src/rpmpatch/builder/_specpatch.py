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

"""
Inject patch files into an RPM spec file.

Given the text of a spec file and an ordered list of patch file names, this
module produces new spec text which declares each patch with a
``Patch<N>:`` tag and wires it into the ``%prep`` section, so that a
subsequent ``rpmbuild`` applies every patch.

Tag numbers start at 900 to stay clear of the package's own patches.

Three spec-authoring styles are handled:

- ``%autosetup``: applies every declared patch itself. Any ``-N`` (don't
  patch) flag is removed, including from combined flags like ``-Np1`` and
  from continuation lines, and ``-p1`` is added unless a strip level is
  already given.
- ``%autopatch``: likewise applies every declared patch; ``-p1`` is added
  unless a strip level is already given.
- manual: one ``%patch<N> -p1`` line per patch is inserted directly after
  the first ``%setup`` line.

A patch the spec already declares is not declared again; it is applied
under its existing tag number.

"""

__all__ = (
    "AmbiguousSpecStyleError",
    "EmptyPatchSetError",
    "MalformedSpecError",
    "PatchStyle",
    "PatchTag",
    "SpecPatchError",
    "TagAnchor",
    "TagPlacement",
    "UnsupportedSpecStyleError",
    "assign_patch_tags",
    "detect_patch_style",
    "find_declared_patches",
    "find_patches",
    "find_prep_range",
    "find_tag_placement",
    "inject",
    "inject_file",
)


import dataclasses
import enum
import logging
import pathlib
import re
from typing import List, Optional, Sequence, Tuple

from ..utils import rpmglobals

_log = logging.getLogger(__name__)


###############################################################################
#                               Custom exceptions                             #
###############################################################################


class SpecPatchError(Exception):
    """Base class for errors injecting patches into a spec file."""


class MalformedSpecError(SpecPatchError):
    """The spec file doesn't have exactly one %prep section."""

    def __init__(self, reason: str, spec_path: Optional[str] = None) -> None:
        """Initialise a MalformedSpecError"""
        self.reason = reason
        self.spec_path = spec_path
        where = f" {spec_path}" if spec_path else ""
        super().__init__(f"Malformed spec file{where}: {reason}")


class UnsupportedSpecStyleError(SpecPatchError):
    """The %prep section has nothing to anchor %patch lines to."""

    def __init__(self, spec_path: Optional[str] = None) -> None:
        """Initialise an UnsupportedSpecStyleError"""
        self.spec_path = spec_path
        where = f" {spec_path}" if spec_path else ""
        super().__init__(
            f"Unsupported spec style{where}: the %prep section uses neither "
            "%autosetup nor %autopatch, and has no %setup line after which "
            "%patch lines could be inserted"
        )


class AmbiguousSpecStyleError(SpecPatchError):
    """The %prep section uses more than one automatic patching directive."""

    def __init__(
        self, directives: Sequence[str], spec_path: Optional[str] = None
    ) -> None:
        """Initialise an AmbiguousSpecStyleError"""
        self.directives = list(directives)
        self.spec_path = spec_path
        where = f" {spec_path}" if spec_path else ""
        super().__init__(
            f"Ambiguous spec style{where}: the %prep section uses "
            f"{' and '.join(directives)}, so it is unclear how the injected "
            "patches should be applied"
        )


class EmptyPatchSetError(SpecPatchError):
    """There are no patches to inject."""

    def __init__(self, patches_dir: str) -> None:
        """Initialise an EmptyPatchSetError"""
        self.patches_dir = patches_dir
        super().__init__(
            f"Nothing to inject: no {rpmglobals.PATCH_GLOB} files found in "
            f"{patches_dir}"
        )


###############################################################################
#                                    Types                                    #
###############################################################################


class PatchStyle(enum.Enum):
    """How the %prep section applies patches."""

    AUTOSETUP = "%autosetup"
    AUTOPATCH = "%autopatch"
    MANUAL = "%setup"


class TagAnchor(enum.Enum):
    """Where a new Patch tag line is placed."""

    LAST_TAG_FOUND = "after the last Source/Patch tag"
    RELEASE_FOUND = "after the Release tag"
    APPEND_AT_END = "at the end of the spec"


@dataclasses.dataclass(frozen=True)
class TagPlacement:
    """
    Decision on where to insert a tag line.

    ``index`` is the position the new line is inserted at, i.e. one past the
    anchor line, or the number of lines when appending.
    """

    anchor: TagAnchor
    index: int


@dataclasses.dataclass(frozen=True)
class PatchTag:
    """A patch file and the tag number assigned to it."""

    number: int
    filename: str

    @property
    def tag_line(self) -> str:
        return f"Patch{self.number}: {self.filename}"

    @property
    def apply_line(self) -> str:
        return f"%patch{self.number} {rpmglobals.PATCH_STRIP_FLAG}"


###############################################################################
#                                  Patterns                                   #
###############################################################################

# Top-level sections which can end the %prep section.
_SECTION_RE = re.compile(
    r"^%(?:prep|build|install|check|clean|files|changelog|package"
    r"|description|pre|post|preun|postun|pretrans|posttrans|preuntrans"
    r"|postuntrans|verifyscript|generate_buildrequires|conf|sepolicy"
    r"|trigger\w*|filetrigger\w*|transfiletrigger\w*)\b"
)
_PREP_RE = re.compile(r"^%prep\b")
_SOURCE_OR_PATCH_TAG_RE = re.compile(r"^(?:Source|Patch)\d*\s*:", re.I)
_RELEASE_TAG_RE = re.compile(r"^Release\s*:", re.I)
_AUTOSETUP_RE = re.compile(r"^\s*%autosetup\b")
_AUTOPATCH_RE = re.compile(r"^\s*%autopatch\b")
_SETUP_RE = re.compile(r"^\s*%setup\b")
_PATCH_TAG_RE = re.compile(r"^Patch(\d*)\s*:\s*(.*?)\s*$", re.I)
_CONTINUATION_RE = re.compile(r"\s*\\\s*$")

# Options taking an argument, per directive. Parsed getopt style, so the
# argument may be glued on (-p1) or be the next word (-p 1).
_ARG_OPTIONS = {
    PatchStyle.AUTOSETUP: "abnpS",
    PatchStyle.AUTOPATCH: "mMpP",
}


def _apply_line_re(number: int) -> "re.Pattern[str]":
    """
    Pattern for a line in %prep applying the given patch number.

    Covers ``%patch900``, ``%patch 900`` and ``%patch -P 900``.
    """
    return re.compile(
        r"^\s*%patch(?:{n}|\s+{n}|.*\s-P\s*{n})(?:\s|$)".format(n=number)
    )


###############################################################################
#                                  Scanning                                   #
###############################################################################


def find_prep_range(lines: Sequence[str]) -> Tuple[int, int]:
    """
    Find the %prep section.

    :param lines:
        Lines of the spec file.

    :raises MalformedSpecError:
        If there is no %prep section, or more than one.

    :returns:
        Tuple of the index of the %prep line and the index one past the last
        line of the section: the next section line, or the number of lines.

    """
    prep_lines = [i for i, line in enumerate(lines) if _PREP_RE.match(line)]
    if not prep_lines:
        raise MalformedSpecError("no %prep section found")
    if len(prep_lines) > 1:
        raise MalformedSpecError(
            "found {} %prep sections (lines {})".format(
                len(prep_lines), ", ".join(str(i + 1) for i in prep_lines)
            )
        )

    start = prep_lines[0]
    for end in range(start + 1, len(lines)):
        if _SECTION_RE.match(lines[end]):
            return start, end
    _log.debug("%prep section runs to the end of the spec file")
    return start, len(lines)


def find_tag_placement(lines: Sequence[str]) -> TagPlacement:
    """
    Decide where the next Patch tag line goes.

    Last-match policy: after the last Source/Patch tag line anywhere in the
    spec; failing that after the first Release tag; failing that at the end.

    """
    last_tag: Optional[int] = None
    release: Optional[int] = None
    for i, line in enumerate(lines):
        if _SOURCE_OR_PATCH_TAG_RE.match(line):
            last_tag = i
        elif release is None and _RELEASE_TAG_RE.match(line):
            release = i

    if last_tag is not None:
        return TagPlacement(TagAnchor.LAST_TAG_FOUND, last_tag + 1)
    elif release is not None:
        return TagPlacement(TagAnchor.RELEASE_FOUND, release + 1)
    else:
        return TagPlacement(TagAnchor.APPEND_AT_END, len(lines))


def detect_patch_style(
    lines: Sequence[str], prep_range: Tuple[int, int]
) -> PatchStyle:
    """
    Work out how the %prep section applies patches.

    :raises AmbiguousSpecStyleError:
        If the section uses both %autosetup and %autopatch.
    :raises UnsupportedSpecStyleError:
        If the section uses neither and has no %setup line.

    """
    prep = lines[prep_range[0] : prep_range[1]]
    found = [
        style
        for style, pattern in (
            (PatchStyle.AUTOSETUP, _AUTOSETUP_RE),
            (PatchStyle.AUTOPATCH, _AUTOPATCH_RE),
        )
        if any(pattern.match(line) for line in prep)
    ]
    if len(found) > 1:
        raise AmbiguousSpecStyleError([style.value for style in found])
    elif found:
        return found[0]
    elif any(_SETUP_RE.match(line) for line in prep):
        return PatchStyle.MANUAL
    else:
        raise UnsupportedSpecStyleError()


def find_declared_patches(lines: Sequence[str]) -> List[PatchTag]:
    """Return the Patch tags the spec already declares, in spec order."""
    declared = []
    for line in lines:
        match = _PATCH_TAG_RE.match(line)
        if match:
            declared.append(PatchTag(int(match.group(1) or 0), match.group(2)))
    return declared


def assign_patch_tags(patches: Sequence[str]) -> List[PatchTag]:
    """Number the patches from the tag base, in order."""
    return [
        PatchTag(rpmglobals.PATCH_TAG_BASE + i, filename)
        for i, filename in enumerate(patches)
    ]


###############################################################################
#                                   Editing                                   #
###############################################################################


def _insert_tags(lines: List[str], tags: Sequence[PatchTag]) -> List[PatchTag]:
    """
    Insert a tag line for each patch not already declared.

    :returns:
        The tags to apply. A patch the spec already declares keeps the
        number of its existing tag line.

    """
    applied = []
    for tag in tags:
        declared = find_declared_patches(lines)
        existing = next(
            (d for d in declared if d.filename == tag.filename), None
        )
        if existing is not None:
            _log.info(
                "Spec already has patch tag for %s, skipping Patch tag insert",
                tag.filename,
            )
            if existing.number != tag.number:
                _log.warning(
                    "%s is declared as Patch%d, applying it under that "
                    "number instead of %d",
                    tag.filename,
                    existing.number,
                    tag.number,
                )
            applied.append(existing)
            continue

        clash = next((d for d in declared if d.number == tag.number), None)
        if clash is not None:
            _log.warning(
                "Patch%d is already declared for %s; rpmbuild will reject "
                "the duplicate tag added for %s",
                tag.number,
                clash.filename,
                tag.filename,
            )
        applied.append(tag)
        placement = find_tag_placement(lines)
        if placement.anchor is TagAnchor.APPEND_AT_END:
            _log.warning(
                "Spec has no Source, Patch or Release tags; appending %s to "
                "the end of the spec",
                tag.tag_line,
            )
        else:
            _log.debug("Inserting %s %s", tag.tag_line, placement.anchor.value)
        lines.insert(placement.index, tag.tag_line)
    return applied


def _directive_end(lines: Sequence[str], index: int, end: int) -> int:
    """Index one past a directive line and its backslash continuations."""
    while index < end - 1 and _CONTINUATION_RE.search(lines[index]):
        index += 1
    return index + 1


def _rewrite_options(
    block: Sequence[str], style: PatchStyle
) -> Tuple[List[str], bool]:
    """
    Drop -N from a directive's options and look for a strip level.

    Handles combined flags such as ``-Np1`` and options on continuation
    lines. Continuation lines left empty are removed.

    :param block:
        The directive line followed by its continuation lines.
    :param style:
        Which directive the block holds.

    :returns:
        The rewritten lines, and whether a -p strip level is set.

    """
    arg_options = _ARG_OPTIONS[style]
    has_strip_level = False
    want_arg = False
    seen_directive = False
    rewritten = []
    for line in block:
        tokens = re.split(r"(\s+)", line)
        for t, token in enumerate(tokens):
            if not token or token.isspace() or token == "\\":
                continue
            if not seen_directive:
                seen_directive = True
                continue
            if want_arg:
                want_arg = False
                continue
            if not token.startswith("-") or token.startswith("--"):
                continue

            kept = ""
            for k, flag in enumerate(token[1:], start=1):
                if flag in arg_options:
                    has_strip_level = has_strip_level or flag == "p"
                    kept += token[k:]
                    want_arg = k == len(token) - 1
                    break
                if not (style is PatchStyle.AUTOSETUP and flag == "N"):
                    kept += flag
            if kept:
                tokens[t] = "-" + kept
            else:
                tokens[t] = ""
                if t > 0 and tokens[t - 1].isspace():
                    tokens[t - 1] = ""
        rewritten.append("".join(tokens))

    def _is_empty(line: str) -> bool:
        return line.strip() in ("", "\\")

    result = rewritten[:1] + [
        line for line in rewritten[1:] if not _is_empty(line)
    ]
    if len(rewritten) > 1 and _is_empty(rewritten[-1]):
        # The last continuation line went, so the new last line ends the
        # directive.
        result[-1] = _CONTINUATION_RE.sub("", result[-1])
    return result, has_strip_level


def _wire_auto(
    lines: List[str], prep_range: Tuple[int, int], style: PatchStyle
) -> None:
    """Normalize the flags of %autosetup or %autopatch lines in %prep."""
    pattern = _AUTOSETUP_RE if style is PatchStyle.AUTOSETUP else _AUTOPATCH_RE
    i, end = prep_range
    while i < end:
        if not pattern.match(lines[i]):
            i += 1
            continue
        block_end = _directive_end(lines, i, end)
        block = lines[i:block_end]
        new_block, has_strip_level = _rewrite_options(block, style)
        if not has_strip_level:
            new_block[0] = re.sub(
                r"^(\s*{})".format(re.escape(style.value)),
                r"\1 " + rpmglobals.PATCH_STRIP_FLAG,
                new_block[0],
                count=1,
            )
        if new_block != block:
            _log.info(
                "Rewrote '%s' as '%s'",
                " ".join(line.strip() for line in block),
                " ".join(line.strip() for line in new_block),
            )
            lines[i:block_end] = new_block
            end -= len(block) - len(new_block)
        i += len(new_block)


def _wire_manual(
    lines: List[str], prep_range: Tuple[int, int], tags: Sequence[PatchTag]
) -> None:
    """Insert %patch lines after the first %setup line in %prep."""
    start, end = prep_range
    setup = next(i for i in range(start, end) if _SETUP_RE.match(lines[i]))
    prep = lines[start:end]
    to_apply = [
        tag.apply_line
        for tag in tags
        if not any(_apply_line_re(tag.number).match(line) for line in prep)
    ]
    _log.debug("Inserting after '%s': %s", lines[setup].strip(), to_apply)
    lines[setup + 1 : setup + 1] = to_apply


def inject(spec: str, patches: Sequence[str]) -> str:
    """
    Inject patches into the text of a spec file.

    :param spec:
        The text of the spec file.
    :param patches:
        Patch file names, in the order they should be applied. Must not be
        empty: callers should use :func:`find_patches`, which raises
        :class:`EmptyPatchSetError`.

    :raises MalformedSpecError:
        If the spec doesn't have exactly one %prep section.
    :raises AmbiguousSpecStyleError:
        If %prep uses both %autosetup and %autopatch.
    :raises UnsupportedSpecStyleError:
        If %prep uses neither and has no %setup line.

    :returns:
        The new text of the spec file.

    """
    assert patches, "inject() needs at least one patch"
    trailing_newline = spec.endswith("\n")
    lines = spec[:-1].split("\n") if trailing_newline else spec.split("\n")

    # Validate everything before editing anything.
    style = detect_patch_style(lines, find_prep_range(lines))
    tags = _insert_tags(lines, assign_patch_tags(patches))

    prep_range = find_prep_range(lines)
    _log.info("Spec uses %s style patching", style.value)
    if style is PatchStyle.MANUAL:
        _wire_manual(lines, prep_range, tags)
    else:
        _wire_auto(lines, prep_range, style)

    return "\n".join(lines) + ("\n" if trailing_newline else "")


def inject_file(spec_path: pathlib.Path, patches: Sequence[str]) -> None:
    """
    Inject patches into a spec file on disk.

    The file is only rewritten once the whole injection has succeeded.

    :param spec_path:
        Path to the spec file.
    :param patches:
        Patch file names, in the order they should be applied.

    """
    text = spec_path.read_text(encoding="utf-8")
    try:
        new_text = inject(text, patches)
    except MalformedSpecError as e:
        raise MalformedSpecError(e.reason, str(spec_path)) from e
    except AmbiguousSpecStyleError as e:
        raise AmbiguousSpecStyleError(e.directives, str(spec_path)) from e
    except UnsupportedSpecStyleError as e:
        raise UnsupportedSpecStyleError(str(spec_path)) from e
    spec_path.write_text(new_text, encoding="utf-8")
    _log.debug("Wrote patched spec %s", spec_path)


def find_patches(patches_dir: pathlib.Path) -> List[pathlib.Path]:
    """
    Find the patch set in a directory.

    :param patches_dir:
        Directory holding the patch files.

    :raises EmptyPatchSetError:
        If the directory holds no patch files.

    :returns:
        The patch files, sorted by name.

    """
    patches = sorted(
        p for p in patches_dir.glob(rpmglobals.PATCH_GLOB) if p.is_file()
    )
    if not patches:
        raise EmptyPatchSetError(str(patches_dir))
    return patches
