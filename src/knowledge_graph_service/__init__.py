"""Knowledge Graph Service: a shared entity/relation graph with time-decay relevance."""

__version__ = "2.0.0"
