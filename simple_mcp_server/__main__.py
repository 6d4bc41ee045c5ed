from .web_server import run

if __name__ == "__main__":  # pragma: no cover
    run()
