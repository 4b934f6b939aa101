"""mcdex: Minecraft modpack maintenance from the command line."""

__version__ = "0.5.0"
