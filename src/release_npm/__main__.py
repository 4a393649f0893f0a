"""Allow ``python -m release_npm``."""

from release_npm.cli.app import main

if __name__ == "__main__":
    main()
