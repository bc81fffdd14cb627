# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for persistence.

This package contains:
- Database connections (PostgreSQL, SQLite for tests)
- Table definitions and the repository protocol
- Enrollment, session and link stores
"""
