import sys

from line_attendance.cli import main


if __name__ == "__main__":
    sys.exit(main())
