# Copyright Red Hat
#
# tests/snapshot/__init__.py - Snapshot engine test package
#
# This file is part of the fschron project.
#
# SPDX-License-Identifier: Apache-2.0
