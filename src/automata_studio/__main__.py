"""Entry point: python -m automata_studio [port]"""
import logging
import sys
import webbrowser
from automata_studio.app import BACKEND_URL, STORE_PATH, create_app


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    port = 8050
    if len(sys.argv) > 1:
        try:
            port = int(sys.argv[1])
        except ValueError:
            pass

    app = create_app()
    print(f"Starting Automata Studio at http://localhost:{port}")
    print(f"  backend: {BACKEND_URL}")
    print(f"  storage: {STORE_PATH}")
    webbrowser.open(f"http://localhost:{port}")
    app.run(debug=True, port=port, use_reloader=False)


if __name__ == "__main__":
    main()
