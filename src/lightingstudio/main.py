"""
Application Initialization
==========================
This module constructs the MVC (Model-View-Controller) architecture and starts
the Qt Event Loop.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root. It:
1. Parses the command line and sets up logging.
2. Loads the LED dataset and instantiates the Store (Model).
3. Instantiates the Main Window (View), which builds the SceneComposer.
4. Prevents circular import errors by being the orchestrator.
"""
import argparse
import logging
import sys
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from lightingstudio.config import DEFAULT_DATASET_PATH, RenderConfig
from lightingstudio.logging_config import parse_level, setup_logging
from lightingstudio.model.dataset import PanelDataset
from lightingstudio.model.state import Mode, Store
from lightingstudio.view.main_window import VISIBLE_APP_NAME, MainWindow

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lighting-studio", description=VISIBLE_APP_NAME)
    parser.add_argument("--dataset", default=DEFAULT_DATASET_PATH, help="LED layout JSON file.")
    parser.add_argument("--log-level", default="INFO", help="debug, info, warning, error.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    parser.add_argument("--edit", action="store_true", help="Start in Design (edit) mode.")
    return parser


def load_dataset(path: str) -> PanelDataset:
    """A missing or unreadable dataset leaves the design view empty."""
    try:
        return PanelDataset.from_file(path)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not load LED dataset: {e}")
        return PanelDataset()


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # 1. Setup Logging (Console + Optional File)
    try:
        setup_logging(level=parse_level(args.log_level), log_file=args.log_file)
    except ValueError as e:
        parser.error(str(e))

    # 2. Create the Qt Application
    app = QApplication(sys.argv[:1])
    app.setApplicationName(VISIBLE_APP_NAME)

    # 3. Initialize the Data Model
    dataset = load_dataset(args.dataset)
    store = Store(mode=Mode.DESIGN if args.edit else Mode.LANDSCAPE)

    # 4. Initialize the Main Window, passing the model
    window = MainWindow(store, dataset, RenderConfig())
    window.show()

    # 5. Start Event Loop
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
