"""
commontime - find the common time for a group.
"""

__version__ = "0.1.0"
