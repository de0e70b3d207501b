"""
Homestay Kernel - registration workflow core

The canonical lifecycle of a homestay-certificate application:
- A single enumerated status graph shared by every reviewer role
- Correction/resubmission loop with monotonic counters
- Amendment (service request) sub-workflow against approved certificates
- Optimistic concurrency and an append-only transition log
"""

__version__ = "0.1.0"
