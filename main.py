"""
Entry point for the CertMigrate command-line tool.

Exports certificates with their private keys from a user- or machine-scoped
store into password-protected PFX files, and imports such files back.
"""

from src.certmigrate.cli.commands import main

if __name__ == "__main__":
    main()
