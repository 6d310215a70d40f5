"""framecast: compile media-composition requests into ffmpeg filter graphs."""

__version__ = "0.1.0"
