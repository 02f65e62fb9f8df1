#!/usr/bin/env python3
"""
Storage Load Generator
Concurrent read/write/delete traffic against S3, WebDAV or a local filesystem
"""
import sys

from loadgen.cli import main


if __name__ == '__main__':
    sys.exit(main())
