import sys

from relay_core.main import main

if __name__ == "__main__":
    sys.exit(main())
