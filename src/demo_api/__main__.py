"""Run the demo API with uvicorn: python -m demo_api [host] [port]."""
import sys

import uvicorn


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    host = argv[0] if argv else "127.0.0.1"
    port = int(argv[1]) if len(argv) > 1 else 8000
    uvicorn.run("demo_api.api:app", host=host, port=port)


if __name__ == "__main__":
    main()
