# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

"""Hybrid session/token authentication gateway."""

__version__ = "0.1.0"
