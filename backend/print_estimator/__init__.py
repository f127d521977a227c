# print_estimator/__init__.py

# This file makes the 'print_estimator' directory a Python package.

from . import core
from . import settings_store
from . import advisory
from . import processes

# Define what gets imported with 'from print_estimator import *'
__all__ = [
    "core",
    "settings_store",
    "advisory",
    "processes"
]
