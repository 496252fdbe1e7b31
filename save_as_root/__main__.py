"""Entry point: python -m save_as_root"""

from .cli import main


if __name__ == "__main__":
    main()
