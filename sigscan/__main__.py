"""
Module entry point for: python -m sigscan

Allows running the scanner directly as a module:
    python -m sigscan check <pdf_path>
    python -m sigscan scan [options]
    python -m sigscan serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
