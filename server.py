"""Run the live chess server from a checkout: python server.py [--port 3001 --ws-port 3002]."""
from llmchess_live.server import main

if __name__ == "__main__":
    main()
