"""docindex: document collections with scalar and vector (IVF) indexes."""

__version__ = "0.1.0"
