#!/usr/bin/env python
"""
Linkscope - investigative neighborhood explorer entrypoint.
"""

from linkscope.ui import render_app


def main() -> None:
    render_app()


if __name__ == "__main__":
    main()
