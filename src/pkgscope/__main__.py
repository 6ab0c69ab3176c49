"""Allow ``python -m pkgscope``."""

from pkgscope.cli import app

if __name__ == "__main__":
    app()
