import sys

from inbox_triage.app.cli import main

if __name__ == "__main__":
    sys.exit(main())
