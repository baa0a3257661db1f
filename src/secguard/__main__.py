"""
Module entry point for SecGuard.

This allows running the CLI as:
python -m secguard
"""

from secguard.cli import main

if __name__ == "__main__":
    main()
