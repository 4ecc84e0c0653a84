# SPDX-License-Identifier: GPL-3.0-only
"""Phone number OTP verification service for CIMS."""
