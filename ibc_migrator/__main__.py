#!/usr/bin/env python3
"""
Main execution module for the IBC token migration tool
"""

from ibc_migrator.cli.commands import main

if __name__ == "__main__":
    main()
