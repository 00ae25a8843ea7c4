"""dot-sync: track dotfiles and keep them in sync across machines."""

__version__ = "0.1.0"
