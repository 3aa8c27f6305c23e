"""
repairconnect - competitive repair quotes and workshop appointment scheduling.
"""

__version__ = "0.1.0"
