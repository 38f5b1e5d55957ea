"""``python -m framepress`` 진입점."""

from framepress.cli import main

if __name__ == "__main__":
    main()
