"""`python -m askscript` starts the API server."""
from .app import display_welcome_banner, serve


def main():
    display_welcome_banner()
    serve()


if __name__ == "__main__":
    main()
