"""
speclink - Spec lifecycle tracking

Keeps three representations of each Spec consistent: the markdown document,
the local SQLite store, and the linked GitHub issue.
"""

__version__ = "0.4.0"

# Re-export core models for convenience
from speclink.core.config.models import SpecLinkConfig
from speclink.core.specs.models import Phase, Spec, SpecMetadata

__all__ = ["Phase", "Spec", "SpecLinkConfig", "SpecMetadata", "__version__"]
