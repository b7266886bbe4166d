"""
Advanced Taxonomies: hierarchical taxonomies and tagging rules for Django.
"""
__version__ = "0.1.0"
