"""sshdeck: stored SSH profiles and commands, synced across devices"""

__version__ = "0.1.0"
