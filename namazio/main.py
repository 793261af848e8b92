import argparse
import logging
import sys

from namazio.core.app import NamazioApp


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def main():
    setup_basic_logging()

    parser = argparse.ArgumentParser(description='Namazio prayer times')
    parser.add_argument('--config',
                        help='Path to config file (default: ~/.namazio/config.yaml)')
    args = parser.parse_args()

    app = NamazioApp(config_path=args.config)
    app.run()


if __name__ == "__main__":
    main()
