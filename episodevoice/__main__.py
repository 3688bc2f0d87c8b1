"""Module entrypoint for `python -m episodevoice`."""

from .cli import main

if __name__ == "__main__":
    main()
