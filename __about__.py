# -*- coding: utf-8 -*-
# Umbra: Black-point estimation for ICC colour profiles.
#
# Copyright (c) 2026 opticsWolf
#
# SPDX-License-Identifier: LGPL-3.0-or-later

"""
Project metadata for the opticsWolf Umbra.
"""

from typing import Final

# Metadata Definitions
__title__: Final[str] = "Umbra"
__description__: Final[str] = (
    "Black-point detection for ICC colour profiles: darkest-colorant and "
    "perceptual round-trip estimates, plus toe fitting of destination "
    "round-trip responses for black-point compensation."
)
__version__: Final[str] = "0.1.0"
__author__: Final[str] = "opticsWolf"
__license__: Final[str] = "LGPL-3.0-or-later"
__copyright__: Final[str] = "Copyright (c) 2026 opticsWolf"

def metadata_summary() -> dict[str, str]:
    """Returns a dictionary of project metadata for introspection."""
    return {
        "title": __title__,
        "version": __version__,
        "author": __author__,
        "license": __license__,
        "description": __description__,
        "copyright": __copyright__,
    }
