"""Command-line interface: ``python -m lightingstudio``."""
from lightingstudio.main import main

if __name__ == "__main__":
    main()
