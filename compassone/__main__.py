"""Main entry point when executing compassone as a package.

This allows running the package using python -m compassone.
"""

from compassone.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
