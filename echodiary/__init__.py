"""
echoDiary - a voice picture diary for children.

A command-line application that records a child's spoken diary entry,
transcribes it with Whisper, illustrates it with an image model and keeps
the entries in a local JSON file.
"""

__version__ = "1.0.0"
__description__ = "Voice picture diary for children"
