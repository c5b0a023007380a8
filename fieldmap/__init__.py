"""
🗺️ fieldmap
Toggle-gated field mapping engine: named string transformers applied in
declared order, driven by persisted integration mappings.
"""

__version__ = "1.0.0"
