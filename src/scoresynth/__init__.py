"""Multi-track score synthesis, playback scheduling and audio export."""

__version__ = "0.1.0"
