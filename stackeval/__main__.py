"""
stackeval Module Entry Point
=============================

Allows running the stackeval CLI via: python -m stackeval
"""

from stackeval.cli import main

if __name__ == "__main__":
    main()
