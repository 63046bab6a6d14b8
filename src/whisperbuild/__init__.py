"""whisperbuild - native build orchestration for whisper.cpp."""

__version__ = "0.1.0"
