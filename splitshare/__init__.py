"""
SplitShare - split a shared bill item-by-item in a group chat.
"""

__version__ = "1.0.0"
