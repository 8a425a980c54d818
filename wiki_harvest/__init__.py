# wiki_harvest/__init__.py
"""
WikiHarvest package initializer.
Defines package version; the CLI lives in :mod:`wiki_harvest.cli`.
"""
__version__ = "0.1.0"
