#!/usr/bin/env python3
"""
Issuance Controller API Server Launcher
"""

import os
import sys

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from dotenv import load_dotenv

from api import run_server
from monitoring import configure_logging

if __name__ == '__main__':
    load_dotenv()
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))
    run_server()
