"""
PDF Signature Scanner Service — Main Entry Point
=================================================
Starts the Flask-based signature scanning microservice.

Usage:
    python main.py                    # Default: 0.0.0.0:5000
    python main.py --port 8000        # Custom port
    python main.py --db signatures.sqlite --data-root /srv/documents
"""

import argparse
import logging

from sigscan.server import app, create_app

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="PDF Signature Scanner Service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=5000, help="Bind port")
    parser.add_argument("--db", default=None, help="SQLite database path")
    parser.add_argument("--data-root", default=None, help="Document data root")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    args = parser.parse_args()

    # create_app() initializes the tracking database
    logger.info("Creating Flask app (initializes DB)...")
    create_app({"DB_PATH": args.db, "DATA_ROOT": args.data_root})

    logger.info(f"Database path: {app.config['DB_PATH']}")
    logger.info(f"Starting server on {args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
