# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
"""Shared XML escaping for the libvirt XML fragments we render."""
from __future__ import annotations

from xml.sax.saxutils import escape as _sax_escape


def xml_escape(s: object) -> str:
    """Escape string for XML text and attribute contexts.

    Example:
        >>> xml_escape("a < b & c > d")
        'a &lt; b &amp; c &gt; d'
        >>> xml_escape("vol 'x'")
        'vol &apos;x&apos;'
    """
    return _sax_escape(str(s), entities={"'": "&apos;", '"': "&quot;"})


__all__ = ["xml_escape"]
