"""
Hub tracker: concurrent discovery and registration of packages published in
independently hosted repositories.
"""

__version__ = "0.1.0"
