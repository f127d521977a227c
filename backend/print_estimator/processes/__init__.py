# processes/__init__.py

# This file makes the 'processes' directory a Python package.
# FDM printing is the only process; new processes get their own sub-package beside print_3d.

from . import print_3d

from .print_3d import Print3DProcessor

# Define what gets imported with 'from print_estimator.processes import *'
__all__ = [
    "print_3d",
    "Print3DProcessor",
]
