"""
Pytest configuration for project root.

Ensures the flat top-level modules import in tests without an install.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))
