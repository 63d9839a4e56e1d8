"""
SILVER RAVENS — Rebellion Engine v1.0
Standalone sheet server. The engine owns the week; the browser and any
other client talk to it over HTTP and the /ws socket.

Run:  python silver_ravens.py [config.json]
API:  http://localhost:8000/docs
"""

import os
import sys
import uvicorn

from config import load_config, configure_logging
from web.routes import app, init_game

ENGINE_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_PATH = os.path.join(ENGINE_DIR, "rebellion.json")


def main():
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else CONFIG_PATH)
    configure_logging(config.log_level)

    # Initialize rebellion state
    game = init_game(config.data_dir, config=config)

    print("=" * 50)
    print("  SILVER RAVENS — Rebellion Engine v1.0")
    print("=" * 50)
    print(f"  Server: http://localhost:{config.port}")
    print(f"  Data:   {config.data_dir}")
    print(f"  Week {game.faction.week}, rank {game.faction.rank}, "
          f"next step: {game.phase.value}")
    print("  Press Ctrl+C to stop.")
    print("=" * 50)
    print()

    # Start server (blocking)
    uvicorn.run(app, host=config.host, port=config.port, log_level="warning")


if __name__ == "__main__":
    main()
