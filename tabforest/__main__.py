"""Module entrypoint for ``python -m tabforest``.

All argument parsing happens in ``tabforest.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
