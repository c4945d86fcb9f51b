"""
Strata - layered knowledge resolution

Strata serves a curated knowledge base (topics, specialists, workflows)
assembled from prioritized content layers: an embedded baseline plus local
directories and git remotes that can override it.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
