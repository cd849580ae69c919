"""Main entry point for the libraryloans package."""

from libraryloans.cli import app

if __name__ == "__main__":
    app()
