"""Main entry point for the des_diffcrypt package."""
from des_diffcrypt.cli import cli


def main():
    """Main entry point function."""
    cli()


if __name__ == "__main__":
    main()
