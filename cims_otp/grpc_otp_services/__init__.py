# SPDX-License-Identifier: GPL-3.0-only
"""gRPC request boundary for phone verification."""
