"""Workshop Scheduler Backend.

Back-office library for a small ceramics workshop: enrollee rosters,
calendar sessions and attendance, kept consistent by the
enrollment/session reconciliation engine.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
