"""Session orchestration for the linking workspace.

- LinkingPipeline: catalogs -> linking mutations -> stats/coverage refresh
"""

from compliance_linker.pipeline.linking_pipeline import LinkingPipeline, display_rate

__all__ = ["LinkingPipeline", "display_rate"]
