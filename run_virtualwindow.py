#!/usr/bin/env python3
"""
VirtualWindow demo launcher.

Run this from the project root to open a one-million-row virtual list.
"""

import sys

if __name__ == '__main__':
    from virtualwindow.run_demo import run_demo, suppress_warnings
    suppress_warnings()
    sys.exit(run_demo())
