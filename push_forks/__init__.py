"""
Push Forks - Keep personal forks of Homebrew and its taps in sync.

This package provides a Homebrew external command that pushes the local
branches of the Homebrew repository and every installed tap to the
contributor's personal fork remote before opening a pull request.
"""

__version__ = "1.0.0"
