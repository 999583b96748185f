# Copyright Red Hat
#
# fschron/__init__.py - File Chronicle package initialisation
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Fschron top-level package.
"""
from ._fschron import *  # noqa: F401, F403
from ._fschron import __all__  # noqa: F401

__version__ = "0.1.0"
