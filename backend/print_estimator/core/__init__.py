# core/__init__.py

# This file makes the 'core' directory a Python package.

from . import geometry
from . import utils
from . import common_types
from . import exceptions

# Define what gets imported with 'from print_estimator.core import *'
__all__ = [
    "geometry",
    "utils",
    "common_types",
    "exceptions"
]
