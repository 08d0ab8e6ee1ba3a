"""
Allow running the sync client as a module.

Usage:
    python -m compendium --status
"""

from .cli import main

if __name__ == "__main__":
    main()
