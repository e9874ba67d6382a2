"""Video skimming, keyframe selection, feature clustering and summary evaluation."""

__version__ = "0.1.0"