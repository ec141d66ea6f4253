"""Module entry point for the S3 file browser application."""
import argparse
import logging
import os
import sys

from PySide6 import QtWidgets

from .qt_view import BrowserWindow


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="volt-browser", description="Browse files stored in an S3 bucket.")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("VOLT_BROWSER_LOG_LEVEL", "WARNING"),
        help="logging level (default: %(default)s)",
    )
    args, qt_args = parser.parse_known_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QtWidgets.QApplication([sys.argv[0], *qt_args])
    window = BrowserWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
