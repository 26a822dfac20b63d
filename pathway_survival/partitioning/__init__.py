"""
Partitioning

Decomposes pathway graphs into connected modules over the measured genes.
"""

from .partitioner import Module, ModulePartitioner, PartitionConfig

__all__ = [
    "Module",
    "ModulePartitioner",
    "PartitionConfig",
]
