# SPDX-License-Identifier: MIT
"""Package metadata.

The package version is the single source of truth for packaging.
"""

# Keep this as a simple assignment so the build backend can read it.
__version__ = '0.1.0'
